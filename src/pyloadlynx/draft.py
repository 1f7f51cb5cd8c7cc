"""Draft: client-local capture buffers per curve, with JSON export/import."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from .errors import PreconditionError, ValidationFailed
from .normalize import NormalizeResult, normalize_curve
from .profile import CalibrationProfile
from .types import (
    DEFAULT_MAX_POINTS,
    ActiveInfo,
    CurrentPoint,
    CurveKind,
    ValidationIssue,
    VoltagePoint,
)
from .validation import validate_curves

if TYPE_CHECKING:
    from .store import ProfileStore

logger = logging.getLogger(__name__)

DRAFT_SCHEMA_VERSION = 3

# Accepted spellings for point object fields on import.
_RAW_KEYS = ("raw", "raw_100uv")
_DAC_KEYS = ("dac_code", "raw_dac_code")
_MV_KEYS = ("measured_mv", "mv", "meas_mv")
_MA_KEYS = ("measured_ma", "ma", "meas_ma")


class Draft:
    """
    Unsynced candidate points for each curve.

    A draft never touches device state by itself; :meth:`sync` is the only path to
    a ProfileStore and it goes through the same normalization as Apply/Commit.
    """

    def __init__(self, max_points: int = DEFAULT_MAX_POINTS) -> None:
        self._max_points = max_points
        self._curves: dict[CurveKind, list[Any]] = {kind: [] for kind in CurveKind}

    @classmethod
    def from_profile(cls, profile: CalibrationProfile, max_points: int = DEFAULT_MAX_POINTS) -> "Draft":
        draft = cls(max_points=max_points)
        for kind, points in profile.curves():
            draft._curves[kind] = list(points)
        return draft

    @property
    def max_points(self) -> int:
        return self._max_points

    @property
    def is_empty(self) -> bool:
        return not any(self._curves.values())

    def points(self, kind: CurveKind | str) -> list[Any]:
        return list(self._curves[CurveKind(kind)])

    def curves(self) -> dict[CurveKind, list[Any]]:
        return {kind: list(points) for kind, points in self._curves.items()}

    def capture(self, kind: CurveKind | str, point: VoltagePoint | CurrentPoint) -> None:
        """Append a captured (raw sample, operator value) point to one curve."""
        kind = CurveKind(kind)
        if not isinstance(point, kind.point_type):
            raise TypeError(f"{kind.value} expects {kind.point_type.__name__}, got {type(point).__name__}")
        self._curves[kind].append(point)
        logger.debug("draft capture %s: %s", kind.value, point)

    def remove(self, kind: CurveKind | str, index: int) -> Any:
        kind = CurveKind(kind)
        points = self._curves[kind]
        if not 0 <= index < len(points):
            raise PreconditionError(f"{kind.issue_path(index)} does not exist ({len(points)} point(s))")
        return points.pop(index)

    def undo(self, kind: CurveKind | str) -> Any:
        """Drop the most recent capture of one curve."""
        kind = CurveKind(kind)
        if not self._curves[kind]:
            raise PreconditionError(f"{kind.path} has nothing to undo")
        return self._curves[kind].pop()

    def clear(self, kind: CurveKind | str | None = None) -> None:
        if kind is None:
            for points in self._curves.values():
                points.clear()
        else:
            self._curves[CurveKind(kind)].clear()

    def validate(self) -> list[ValidationIssue]:
        """Pre-flight without touching a device; curves not captured yet are skipped."""
        return validate_curves(self._curves, self._max_points, skip_empty=True)

    def normalized(self, kind: CurveKind | str) -> NormalizeResult:
        return normalize_curve(kind, self._curves[CurveKind(kind)], self._max_points)

    def sync(self, store: "ProfileStore", kind: CurveKind | str, *, commit: bool = False) -> CalibrationProfile:
        """Explicitly push one curve to the store (Apply, or Commit with ``commit=True``)."""
        kind = CurveKind(kind)
        points = self._curves[kind]
        if not points:
            raise PreconditionError(f"Draft {kind.value} is empty. Nothing to sync.")
        if commit:
            return store.commit(kind, points)
        return store.apply(kind, points)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_snapshot(
        self,
        device_id: str = "local",
        active: ActiveInfo | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Structured snapshot of the draft; an empty draft cannot be exported."""
        if self.is_empty:
            raise PreconditionError("Draft is empty. Nothing to export.")
        now = now or datetime.now(timezone.utc)
        curves: dict[str, list[Any]] = {}
        for kind, points in self._curves.items():
            if kind.is_current:
                curves[kind.path] = [[[p.raw, p.dac_code], p.measured_ma] for p in points]
            else:
                curves[kind.path] = [[p.raw, p.measured_mv] for p in points]
        return {
            "schema_version": DRAFT_SCHEMA_VERSION,
            "generated_at": now.isoformat(),
            "device_id": device_id,
            "active_snapshot": active.to_dict() if active is not None else None,
            "curves": curves,
        }

    @classmethod
    def import_snapshot(cls, data: Any, max_points: int = DEFAULT_MAX_POINTS) -> "Draft":
        """
        Rebuild a draft from an exported snapshot.

        Accepts the current schema, a ``{"profile": {...}}`` wrapper or a bare curves
        object, with points as pairs or objects. Shape errors are collected and raised
        together as ValidationFailed; an empty result raises PreconditionError.
        """
        curves = _find_curves(data)
        issues: list[ValidationIssue] = []
        draft = cls(max_points=max_points)
        for kind in CurveKind:
            entries = curves.get(kind.path, [])
            if entries is None:
                continue
            if not isinstance(entries, list):
                issues.append(ValidationIssue(kind.path, "points must be a list"))
                continue
            for i, entry in enumerate(entries):
                point = _parse_point(kind, entry, kind.issue_path(i), issues)
                if point is not None:
                    draft._curves[kind].append(point)
        if issues:
            raise ValidationFailed(issues, "Import validation failed (shape/types)")
        if draft.is_empty:
            raise PreconditionError("Empty drafts are not supported for import.")
        logger.debug("imported draft: %s", {k.value: len(v) for k, v in draft._curves.items()})
        return draft

    def save(self, path: str | Path, device_id: str = "local", active: ActiveInfo | None = None) -> Path:
        path = Path(path)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.export_snapshot(device_id, active), f, indent=2)
        return path

    @classmethod
    def load(cls, path: str | Path, max_points: int = DEFAULT_MAX_POINTS) -> "Draft":
        with Path(path).open("r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValidationFailed([ValidationIssue("$", f"invalid JSON: {e.msg}")], "Invalid JSON file.") from e
        return cls.import_snapshot(data, max_points=max_points)


def _find_curves(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, dict):
        raise ValidationFailed([ValidationIssue("$", "snapshot must be an object")], "Missing curves object in JSON.")
    for key in ("curves", "profile"):
        candidate = data.get(key)
        if isinstance(candidate, dict):
            return candidate
    return data


def _number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _pick(obj: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in obj:
            return obj[key]
    return None


def _parse_point(kind: CurveKind, entry: Any, path: str, issues: list[ValidationIssue]) -> Any:
    """Shape check only; range and integer checks belong to normalization."""
    measured_keys = _MA_KEYS if kind.is_current else _MV_KEYS
    measured_name = kind.measured_field
    dac: Any = None

    if isinstance(entry, list):
        if kind.is_current:
            # [[raw, dac_code], measured]
            if len(entry) < 2 or not isinstance(entry[0], list) or len(entry[0]) < 2:
                issues.append(ValidationIssue(path, "point must be [[raw, dac_code], measured_ma]"))
                return None
            raw, dac, measured = entry[0][0], entry[0][1], entry[1]
            fields = ((f"{path}[0][0]", "raw", raw), (f"{path}[0][1]", "dac_code", dac), (f"{path}[1]", measured_name, measured))
        else:
            if len(entry) < 2:
                issues.append(ValidationIssue(path, "point must be [raw, measured_mv]"))
                return None
            raw, measured = entry[0], entry[1]
            fields = ((f"{path}[0]", "raw", raw), (f"{path}[1]", measured_name, measured))
    elif isinstance(entry, dict):
        raw = _pick(entry, _RAW_KEYS)
        measured = _pick(entry, measured_keys)
        fields = ((f"{path}.raw", "raw", raw), (f"{path}.{measured_name}", measured_name, measured))
        if kind.is_current:
            dac = _pick(entry, _DAC_KEYS)
            fields += ((f"{path}.dac_code", "dac_code", dac),)
    else:
        issues.append(ValidationIssue(path, "point must be an object or a list"))
        return None

    ok = True
    for field_path, name, value in fields:
        if not _number(value):
            issues.append(ValidationIssue(field_path, f"{name} must be a number"))
            ok = False
    if not ok:
        return None
    if kind.is_current:
        return CurrentPoint(raw=raw, dac_code=dac, measured_ma=measured)
    return VoltagePoint(raw=raw, measured_mv=measured)
