"""Core data model: curve kinds, calibration modes, point shapes, validation issues."""

from dataclasses import dataclass
from enum import Enum

RAW_MIN = -32768
RAW_MAX = 32767
DAC_MIN = 0
DAC_MAX = 65535
MEASURED_MIN = -(2**31)
MEASURED_MAX = 2**31 - 1

DEFAULT_MAX_POINTS = 5
CAL_FMT_VERSION = 1
# v4.2 -> 42
DIGITAL_HW_REV = 42


class CurveKind(str, Enum):
    """The four independent calibration curves held by a profile."""

    V_LOCAL = "v_local"
    V_REMOTE = "v_remote"
    CURRENT_CH1 = "current_ch1"
    CURRENT_CH2 = "current_ch2"

    @property
    def is_current(self) -> bool:
        return self in (CurveKind.CURRENT_CH1, CurveKind.CURRENT_CH2)

    @property
    def path(self) -> str:
        """Issue path prefix, e.g. ``current_ch1_points``."""
        return f"{self.value}_points"

    def issue_path(self, index: int | None = None, field: str | None = None) -> str:
        path = self.path
        if index is not None:
            path += f"[{index}]"
        if field is not None:
            path += f".{field}"
        return path

    @property
    def measured_field(self) -> str:
        return "measured_ma" if self.is_current else "measured_mv"

    @property
    def point_type(self) -> type:
        return CurrentPoint if self.is_current else VoltagePoint


class CalMode(str, Enum):
    """Device sampling mode; exactly one is active at a time."""

    OFF = "off"
    VOLTAGE = "voltage"
    CURRENT_CH1 = "current_ch1"
    CURRENT_CH2 = "current_ch2"

    @property
    def code(self) -> int:
        """Numeric ``cal_kind`` as reported by the device status stream."""
        return _MODE_CODES[self]

    @classmethod
    def from_code(cls, code: int | None) -> "CalMode":
        if code is None:
            return cls.OFF
        for mode, value in _MODE_CODES.items():
            if value == code:
                return mode
        raise ValueError(f"Unknown calibration mode code: {code}")

    @property
    def curves(self) -> tuple[CurveKind, ...]:
        """Curves whose raw samples the telemetry stream carries in this mode."""
        if self is CalMode.VOLTAGE:
            return (CurveKind.V_LOCAL, CurveKind.V_REMOTE)
        if self is CalMode.CURRENT_CH1:
            return (CurveKind.CURRENT_CH1,)
        if self is CalMode.CURRENT_CH2:
            return (CurveKind.CURRENT_CH2,)
        return ()


_MODE_CODES = {
    CalMode.OFF: 0,
    CalMode.VOLTAGE: 1,
    CalMode.CURRENT_CH1: 2,
    CalMode.CURRENT_CH2: 3,
}


class ProfileSource(str, Enum):
    FACTORY_DEFAULT = "factory-default"
    USER_CALIBRATED = "user-calibrated"


@dataclass(frozen=True)
class Point:
    """Generic (raw, physical) pair consumed by the piecewise converter."""

    x: float
    y: float


@dataclass(frozen=True)
class VoltagePoint:
    """Voltage calibration point: raw ADC code and measured millivolts."""

    raw: int
    measured_mv: int

    @property
    def measured(self) -> int:
        return self.measured_mv

    def as_xy(self) -> Point:
        return Point(self.raw, self.measured_mv)


@dataclass(frozen=True)
class CurrentPoint:
    """Current calibration point: raw ADC code, DAC setpoint code and measured milliamps."""

    raw: int
    dac_code: int
    measured_ma: int

    @property
    def measured(self) -> int:
        return self.measured_ma

    def as_xy(self) -> Point:
        return Point(self.raw, self.measured_ma)


CalibrationPoint = VoltagePoint | CurrentPoint


@dataclass(frozen=True)
class ValidationIssue:
    """One reportable defect, e.g. path ``current_ch1_points[2].dac_code``."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True)
class ActiveInfo:
    """Metadata of the working profile as reported by a ProfileStore."""

    source: ProfileSource
    fmt_version: int
    hw_rev: int

    def to_dict(self) -> dict[str, object]:
        return {
            "source": self.source.value,
            "fmt_version": self.fmt_version,
            "hw_rev": self.hw_rev,
        }
