"""Clear exceptions for pyloadlynx: validation, preconditions, transport and blob format errors."""

from typing import Sequence

from .types import ValidationIssue


class PyLoadLynxError(Exception):
    """Base exception for pyloadlynx."""

    pass


class ValidationFailed(PyLoadLynxError):
    """Raised when a candidate point set has structural or monotonicity issues.

    Carries the complete issue list; nothing was mutated.
    """

    def __init__(self, issues: Sequence[ValidationIssue], message: str | None = None) -> None:
        self.issues = list(issues)
        if message is None:
            first = self.issues[0] if self.issues else None
            message = f"{len(self.issues)} validation issue(s)"
            if first is not None:
                message += f"; first: {first.path}: {first.message}"
        super().__init__(message)


class PreconditionError(PyLoadLynxError):
    """Raised when an operation is attempted in a state that cannot accept it (e.g. empty draft)."""

    pass


class TransportError(PyLoadLynxError):
    """Raised when a device call fails at the transport layer (network, timeout). Retryable."""

    def __init__(
        self,
        message: str,
        *,
        device_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.device_id = device_id
        self.cause = cause
        super().__init__(message)


class ProfileFormatError(PyLoadLynxError):
    """Raised when a persisted profile blob cannot be decoded."""

    pass


class InvalidLengthError(ProfileFormatError):
    def __init__(self, length: int, expected: int) -> None:
        self.length = length
        self.expected = expected
        super().__init__(f"Profile blob must be {expected} bytes, got {length}")


class UnsupportedFormatError(ProfileFormatError):
    def __init__(self, fmt_version: int) -> None:
        self.fmt_version = fmt_version
        super().__init__(f"Unsupported profile fmt_version: {fmt_version}")


class HwRevMismatchError(ProfileFormatError):
    def __init__(self, stored: int, expected: int) -> None:
        self.stored = stored
        self.expected = expected
        super().__init__(f"Profile hw_rev {stored} does not match expected {expected}")


class CrcMismatchError(ProfileFormatError):
    def __init__(self, stored: int, computed: int) -> None:
        self.stored = stored
        self.computed = computed
        super().__init__(f"Profile CRC mismatch: stored 0x{stored:08x}, computed 0x{computed:08x}")


class InvalidCountsError(ProfileFormatError):
    def __init__(self, counts: Sequence[int]) -> None:
        self.counts = list(counts)
        super().__init__(f"Invalid curve point counts: {self.counts}")
