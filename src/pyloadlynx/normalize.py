"""Normalize and validate calibration point sets: dedup, raw ordering, ranges, monotonicity."""

import logging
import math
import numbers
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

from .errors import ValidationFailed
from .types import (
    DAC_MAX,
    DAC_MIN,
    DEFAULT_MAX_POINTS,
    MEASURED_MAX,
    MEASURED_MIN,
    RAW_MAX,
    RAW_MIN,
    CurveKind,
    Point,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


def _xy(point: Any) -> Point:
    return point if isinstance(point, Point) else point.as_xy()


def normalize_points(points: Sequence[Any]) -> list[Any]:
    """
    Order a point set for conversion and storage.

    1. Collapse by measured value in input order, keeping the later entry.
    2. Stable sort ascending by raw.
    3. Collapse adjacent equal raw values, keeping the later entry.

    Works on ``Point`` pairs and on typed calibration points alike; never raises
    on content and always returns a new list.
    """
    last_index_by_measured: dict[Any, int] = {}
    for i, p in enumerate(points):
        last_index_by_measured[_xy(p).y] = i
    kept = [p for i, p in enumerate(points) if last_index_by_measured[_xy(p).y] == i]

    ordered = sorted(kept, key=lambda p: _xy(p).x)

    out: list[Any] = []
    for p in ordered:
        if out and _xy(out[-1]).x == _xy(p).x:
            out[-1] = p
        else:
            out.append(p)
    return out


@dataclass(frozen=True)
class NormalizeResult:
    """Normalized points for one curve plus every issue found on the way."""

    kind: CurveKind
    points: tuple[Any, ...]
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.issues

    def require(self) -> tuple[Any, ...]:
        """Return the normalized points, or raise ValidationFailed with the full issue list."""
        if self.issues:
            raise ValidationFailed(self.issues)
        return self.points


def _is_real(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def _as_int(value: Any) -> int | None:
    """Return value as int when it is an integral real number, else None."""
    if not _is_real(value):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if float(value).is_integer():
        return int(value)
    return None


def _check_point(kind: CurveKind, index: int, point: Any) -> ValidationIssue | None:
    """First structural defect of one point, or None. One issue per point."""
    if not isinstance(point, kind.point_type):
        return ValidationIssue(kind.issue_path(index), f"expected {kind.point_type.__name__}")

    raw = _as_int(point.raw)
    if raw is None:
        return ValidationIssue(kind.issue_path(index, "raw"), "raw must be an integer")
    if not RAW_MIN <= raw <= RAW_MAX:
        return ValidationIssue(kind.issue_path(index, "raw"), "raw out of range for i16")

    if kind.is_current:
        dac = _as_int(point.dac_code)
        if dac is None:
            return ValidationIssue(kind.issue_path(index, "dac_code"), "dac_code must be an integer")
        if not DAC_MIN <= dac <= DAC_MAX:
            return ValidationIssue(kind.issue_path(index, "dac_code"), "dac_code out of range for u16")

    measured_field = kind.measured_field
    measured = _as_int(point.measured)
    if measured is None:
        return ValidationIssue(kind.issue_path(index, measured_field), f"{measured_field} must be an integer")
    if not MEASURED_MIN <= measured <= MEASURED_MAX:
        return ValidationIssue(kind.issue_path(index, measured_field), f"{measured_field} out of range for i32")
    return None


def _coerce(kind: CurveKind, point: Any) -> Any:
    """Integral floats become ints; anything else is left for the issue list."""
    changes: dict[str, Any] = {}
    names = ("raw", "dac_code", kind.measured_field) if kind.is_current else ("raw", kind.measured_field)
    for name in names:
        value = getattr(point, name)
        as_int = _as_int(value)
        if as_int is not None and type(value) is not int:
            changes[name] = as_int
    return replace(point, **changes) if changes else point


def _orderable(kind: CurveKind, point: Any) -> bool:
    return isinstance(point, kind.point_type) and _is_real(point.raw) and _is_real(point.measured)


def check_cardinality(kind: CurveKind, count: int, max_points: int) -> ValidationIssue | None:
    if count < 1:
        return ValidationIssue(kind.path, f"points must contain 1..{max_points} items")
    if count > max_points:
        return ValidationIssue(kind.path, f"too many points (max {max_points})")
    return None


def check_monotonic(kind: CurveKind, points: Sequence[Any]) -> ValidationIssue | None:
    """Measured values must strictly increase in raw order; report the first violation only."""
    for prev, cur in zip(points, points[1:]):
        if cur.measured <= prev.measured:
            return ValidationIssue(
                kind.path,
                f"{kind.measured_field} must be strictly increasing for {kind.value}",
            )
    return None


def normalize_curve(
    kind: CurveKind | str,
    points: Sequence[Any],
    max_points: int = DEFAULT_MAX_POINTS,
) -> NormalizeResult:
    """
    Run the full normalization pipeline for one curve and collect every issue.

    Structural issues are reported against the caller's input index. Points whose
    raw or measured value cannot be ordered are left out of the dedup/sort passes.
    The returned points are only fit for Apply/Commit when ``result.ok``.
    """
    kind = CurveKind(kind)
    issues: list[ValidationIssue] = []
    usable: list[Any] = []
    for index, point in enumerate(points):
        issue = _check_point(kind, index, point)
        if issue is not None:
            issues.append(issue)
        if _orderable(kind, point):
            usable.append(_coerce(kind, point))

    normalized = normalize_points(usable)

    for check in (
        check_cardinality(kind, len(normalized), max_points),
        check_monotonic(kind, normalized),
    ):
        if check is not None:
            issues.append(check)

    if issues:
        logger.debug("normalize %s: %d point(s) in, %d issue(s)", kind.value, len(points), len(issues))
    return NormalizeResult(kind=kind, points=tuple(normalized), issues=tuple(issues))
