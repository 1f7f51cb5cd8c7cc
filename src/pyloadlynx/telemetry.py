"""Live preview: convert the raw fields of a telemetry sample with the active calibration."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Sequence

from .errors import PreconditionError
from .piecewise import piecewise_linear, piecewise_linear_decimal
from .profile import CalibrationProfile
from .types import CalMode, CurveKind

# Raw sample field used for each curve.
_RAW_FIELD = {
    CurveKind.V_LOCAL: "raw_v_local",
    CurveKind.V_REMOTE: "raw_v_remote",
    CurveKind.CURRENT_CH1: "raw_current",
    CurveKind.CURRENT_CH2: "raw_current",
}

# Device status stream key -> sample attribute.
_STATUS_KEYS = {
    "raw_v_nr_100uv": "raw_v_local",
    "raw_v_rmt_100uv": "raw_v_remote",
    "raw_cur_100uv": "raw_current",
    "raw_dac_code": "raw_dac_code",
}


@dataclass(frozen=True)
class TelemetrySample:
    """Latest raw sample handed in by the caller; fields absent in the current mode are None."""

    raw_v_local: int | None = None
    raw_v_remote: int | None = None
    raw_current: int | None = None
    raw_dac_code: int | None = None
    mode: CalMode | None = None

    @classmethod
    def from_status(cls, status: Mapping[str, Any]) -> "TelemetrySample":
        """Build from a status stream record (``raw_*_100uv`` keys, optional ``cal_kind``)."""
        values = {attr: status.get(key) for key, attr in _STATUS_KEYS.items()}
        mode = CalMode.from_code(status["cal_kind"]) if "cal_kind" in status else None
        return cls(mode=mode, **values)


def required_fields(mode: CalMode | str) -> tuple[str, ...]:
    mode = CalMode(mode)
    if mode is CalMode.VOLTAGE:
        return ("raw_v_local", "raw_v_remote")
    if mode in (CalMode.CURRENT_CH1, CalMode.CURRENT_CH2):
        return ("raw_current", "raw_dac_code")
    return ()


def preview(
    source: CalibrationProfile | Mapping[CurveKind, Sequence[Any]],
    mode: CalMode | str,
    sample: TelemetrySample,
    exact: bool = False,
) -> dict[str, float | Decimal]:
    """
    Convert the raw fields relevant to ``mode`` into physical values.

    ``source`` is a profile (e.g. the applied RAM snapshot) or a per-curve mapping
    such as a Draft's curves. Returns ``{"v_local_mv": ..., "v_remote_mv": ...}`` in
    voltage mode and ``{"current_ch1_ma": ...}`` style keys in current modes.
    """
    mode = CalMode(mode)
    if mode is CalMode.OFF:
        raise PreconditionError("Calibration mode is off; the sample carries no raw fields")
    missing = [name for name in required_fields(mode) if getattr(sample, name) is None]
    if missing:
        raise PreconditionError(f"Sample lacks raw field(s) for {mode.value}: {', '.join(missing)}")

    convert = piecewise_linear_decimal if exact else piecewise_linear
    out: dict[str, float | Decimal] = {}
    for kind in mode.curves:
        if isinstance(source, CalibrationProfile):
            points = source.points_for(kind)
        else:
            points = source.get(kind, ())
        unit = "ma" if kind.is_current else "mv"
        out[f"{kind.value}_{unit}"] = convert(points, getattr(sample, _RAW_FIELD[kind]))
    return out
