"""CalibrationProfile: the four curves of one device plus format metadata."""

from dataclasses import dataclass, replace
from typing import Any, Iterator, Mapping, Sequence

from .types import (
    CAL_FMT_VERSION,
    DIGITAL_HW_REV,
    RAW_MAX,
    CurrentPoint,
    CurveKind,
    VoltagePoint,
)

_FIELD_BY_KIND = {
    CurveKind.V_LOCAL: "v_local",
    CurveKind.V_REMOTE: "v_remote",
    CurveKind.CURRENT_CH1: "current_ch1",
    CurveKind.CURRENT_CH2: "current_ch2",
}


@dataclass(frozen=True)
class CalibrationProfile:
    """
    Immutable snapshot of all four calibration curves.

    Snapshots never alias each other: every change goes through ``with_curve`` and
    yields a new profile. Whether a profile is factory or user calibrated is not
    stored here; a ProfileStore derives it from its lifecycle operations and from
    comparing RAM against its factory snapshot.
    """

    v_local: tuple[VoltagePoint, ...]
    v_remote: tuple[VoltagePoint, ...]
    current_ch1: tuple[CurrentPoint, ...]
    current_ch2: tuple[CurrentPoint, ...]
    fmt_version: int = CAL_FMT_VERSION
    hw_rev: int = DIGITAL_HW_REV

    @classmethod
    def factory_default(cls, hw_rev: int = DIGITAL_HW_REV) -> "CalibrationProfile":
        """Defaults approximating the uncalibrated conversions; every curve is non-empty."""
        current = (
            CurrentPoint(raw=0, dac_code=0, measured_ma=0),
            CurrentPoint(raw=25_000, dac_code=0, measured_ma=5_000),
        )
        voltage = (
            VoltagePoint(raw=0, measured_mv=0),
            VoltagePoint(raw=RAW_MAX, measured_mv=RAW_MAX * 124 // 100),
        )
        return cls(
            v_local=voltage,
            v_remote=voltage,
            current_ch1=current,
            current_ch2=current,
            fmt_version=CAL_FMT_VERSION,
            hw_rev=hw_rev,
        )

    def points_for(self, kind: CurveKind | str) -> tuple[Any, ...]:
        return getattr(self, _FIELD_BY_KIND[CurveKind(kind)])

    def with_curve(self, kind: CurveKind | str, points: Sequence[Any]) -> "CalibrationProfile":
        return replace(self, **{_FIELD_BY_KIND[CurveKind(kind)]: tuple(points)})

    def curves(self) -> Iterator[tuple[CurveKind, tuple[Any, ...]]]:
        for kind in CurveKind:
            yield kind, self.points_for(kind)

    def curve_equal(self, other: "CalibrationProfile", kind: CurveKind | str) -> bool:
        """Point-for-point comparison of one curve (raw, measured and dac_code for current)."""
        return self.points_for(kind) == other.points_for(kind)

    def points_equal(self, other: "CalibrationProfile") -> bool:
        return all(self.curve_equal(other, kind) for kind in CurveKind)

    def diverging_curves(self, other: "CalibrationProfile") -> list[CurveKind]:
        return [kind for kind in CurveKind if not self.curve_equal(other, kind)]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"fmt_version": self.fmt_version, "hw_rev": self.hw_rev}
        for kind, points in self.curves():
            out[kind.path] = points_to_dicts(kind, points)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalibrationProfile":
        """Inverse of ``to_dict``. Does not validate point content."""
        curves: dict[str, tuple[Any, ...]] = {}
        for kind in CurveKind:
            entries = data.get(kind.path, [])
            if kind.is_current:
                curves[_FIELD_BY_KIND[kind]] = tuple(
                    CurrentPoint(raw=e["raw"], dac_code=e["dac_code"], measured_ma=e["measured_ma"]) for e in entries
                )
            else:
                curves[_FIELD_BY_KIND[kind]] = tuple(
                    VoltagePoint(raw=e["raw"], measured_mv=e["measured_mv"]) for e in entries
                )
        return cls(
            fmt_version=int(data.get("fmt_version", CAL_FMT_VERSION)),
            hw_rev=int(data.get("hw_rev", DIGITAL_HW_REV)),
            **curves,
        )


def points_to_dicts(kind: CurveKind | str, points: Sequence[Any]) -> list[dict[str, Any]]:
    kind = CurveKind(kind)
    if kind.is_current:
        return [{"raw": p.raw, "dac_code": p.dac_code, "measured_ma": p.measured_ma} for p in points]
    return [{"raw": p.raw, "measured_mv": p.measured_mv} for p in points]
