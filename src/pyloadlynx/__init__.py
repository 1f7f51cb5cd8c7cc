"""pyloadlynx: calibration core for the LoadLynx electronic load (curves, conversion, profile lifecycle)."""

__version__ = "0.1.0"

from .device_queue import DeviceQueues, call_with_retry
from .draft import Draft
from .eeprom import EepromFile, deserialize_profile, serialize_profile
from .errors import (
    PreconditionError,
    ProfileFormatError,
    PyLoadLynxError,
    TransportError,
    ValidationFailed,
)
from .normalize import NormalizeResult, normalize_curve, normalize_points
from .piecewise import (
    inverse_piecewise_linear,
    piecewise_linear,
    piecewise_linear_decimal,
    round_half_up,
)
from .profile import CalibrationProfile
from .store import ProfileStore
from .telemetry import TelemetrySample, preview
from .types import (
    ActiveInfo,
    CalMode,
    CurrentPoint,
    CurveKind,
    Point,
    ProfileSource,
    ValidationIssue,
    VoltagePoint,
)
from .validation import validate_curve, validate_curves, validate_profile

__all__ = [
    "__version__",
    "DeviceQueues",
    "call_with_retry",
    "Draft",
    "EepromFile",
    "deserialize_profile",
    "serialize_profile",
    "PreconditionError",
    "ProfileFormatError",
    "PyLoadLynxError",
    "TransportError",
    "ValidationFailed",
    "NormalizeResult",
    "normalize_curve",
    "normalize_points",
    "inverse_piecewise_linear",
    "piecewise_linear",
    "piecewise_linear_decimal",
    "round_half_up",
    "CalibrationProfile",
    "ProfileStore",
    "TelemetrySample",
    "preview",
    "ActiveInfo",
    "CalMode",
    "CurrentPoint",
    "CurveKind",
    "Point",
    "ProfileSource",
    "ValidationIssue",
    "VoltagePoint",
    "validate_curve",
    "validate_curves",
    "validate_profile",
]
