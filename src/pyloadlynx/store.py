"""ProfileStore: factory / RAM / EEPROM snapshots and the sampling mode of one device."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from .eeprom import SLOTS_PER_CURVE, EepromFile
from .errors import TransportError
from .normalize import normalize_curve
from .profile import CalibrationProfile
from .types import DEFAULT_MAX_POINTS, ActiveInfo, CalMode, CurveKind, ProfileSource

logger = logging.getLogger(__name__)

RESET_ALL = "all"


class ProfileStore:
    """
    Calibration state machine for one device.

    ``factory`` is fixed at construction. ``ram`` is the working profile and always
    present. ``eeprom`` is the persisted override or None. Every mutating call holds
    the instance lock for its whole duration and either fully succeeds or leaves the
    state untouched. Devices are independent: use one store per device.

    Pass an :class:`~pyloadlynx.eeprom.EepromFile` as ``storage`` to persist
    commits as a blob on disk; construction and :meth:`reboot` reload it.
    """

    def __init__(
        self,
        factory: CalibrationProfile | None = None,
        *,
        device_id: str = "local",
        max_points: int = DEFAULT_MAX_POINTS,
        eeprom: CalibrationProfile | None = None,
        storage: EepromFile | None = None,
    ) -> None:
        if max_points < 1:
            raise ValueError(f"max_points must be >= 1, got {max_points}")
        if storage is not None and max_points > SLOTS_PER_CURVE:
            raise ValueError(f"max_points {max_points} exceeds the {SLOTS_PER_CURVE} EEPROM slots per curve")
        self._device_id = device_id
        self._max_points = max_points
        self._factory = factory if factory is not None else CalibrationProfile.factory_default()
        self._storage = storage
        self._lock = threading.RLock()
        if eeprom is None and storage is not None:
            eeprom = storage.load()
        self._eeprom = eeprom
        self._boot()

    def _boot(self) -> None:
        self._mode = CalMode.OFF
        if self._eeprom is not None:
            self._ram = self._eeprom
            self._source = ProfileSource.USER_CALIBRATED
        else:
            self._ram = self._factory
            self._source = ProfileSource.FACTORY_DEFAULT

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def max_points(self) -> int:
        return self._max_points

    @property
    def factory(self) -> CalibrationProfile:
        return self._factory

    @property
    def ram(self) -> CalibrationProfile:
        return self._ram

    @property
    def eeprom(self) -> CalibrationProfile | None:
        return self._eeprom

    @property
    def mode(self) -> CalMode:
        return self._mode

    @property
    def source(self) -> ProfileSource:
        return self._source

    @property
    def active(self) -> ActiveInfo:
        with self._lock:
            return ActiveInfo(self._source, self._ram.fmt_version, self._ram.hw_rev)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "device_id": self._device_id,
                "mode": self._mode.value,
                "active": self.active.to_dict(),
                "ram": self._ram.to_dict(),
                "eeprom": self._eeprom.to_dict() if self._eeprom is not None else None,
            }

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def _persist(self, profile: CalibrationProfile | None) -> None:
        """Write ``profile`` to storage, or erase it for None. I/O failures raise TransportError."""
        if self._storage is None:
            return
        try:
            if profile is None:
                self._storage.erase()
            else:
                self._storage.store(profile)
        except OSError as e:
            logger.warning("[%s] EEPROM write failed: %s", self._device_id, e)
            raise TransportError(f"EEPROM write failed: {e}", device_id=self._device_id, cause=e) from e

    def _normalized_ram(self, kind: CurveKind | str, points: Sequence[Any]) -> tuple[CurveKind, CalibrationProfile]:
        result = normalize_curve(kind, points, self._max_points)
        if not result.ok:
            logger.info(
                "[%s] rejected %s: %d issue(s)", self._device_id, result.kind.value, len(result.issues)
            )
        normalized = result.require()
        return result.kind, self._ram.with_curve(result.kind, normalized)

    def apply(self, kind: CurveKind | str, points: Sequence[Any]) -> CalibrationProfile:
        """
        Normalize ``points`` and write them into RAM. Volatile until committed.

        Raises ValidationFailed (state unchanged) when the candidate set has any issue.
        """
        with self._lock:
            kind, ram = self._normalized_ram(kind, points)
            self._ram = ram
            self._source = ProfileSource.USER_CALIBRATED
            logger.info("[%s] applied %s (%d point(s))", self._device_id, kind.value, len(ram.points_for(kind)))
            return ram

    def commit(self, kind: CurveKind | str, points: Sequence[Any]) -> CalibrationProfile:
        """Apply, then persist the entire resulting RAM profile as the EEPROM snapshot."""
        with self._lock:
            kind, ram = self._normalized_ram(kind, points)
            self._persist(ram)
            self._ram = ram
            self._eeprom = ram
            self._source = ProfileSource.USER_CALIBRATED
            logger.info("[%s] committed %s", self._device_id, kind.value)
            return ram

    def reset(self, scope: CurveKind | str = RESET_ALL) -> CalibrationProfile:
        """
        Move back toward factory defaults. Never fails on content.

        ``"all"`` restores every curve and drops the EEPROM snapshot. A single curve is
        restored on its own; if RAM then equals factory across all four curves this is
        a full reset, otherwise the new RAM is persisted to EEPROM.
        Only a storage write can fail, as TransportError, and then nothing changes.
        """
        with self._lock:
            if scope == RESET_ALL:
                self._persist(None)
                self._ram = self._factory
                self._eeprom = None
                self._source = ProfileSource.FACTORY_DEFAULT
                logger.info("[%s] reset all curves to factory", self._device_id)
                return self._ram

            kind = CurveKind(scope)
            ram = self._ram.with_curve(kind, self._factory.points_for(kind))
            if ram.points_equal(self._factory):
                self._persist(None)
                self._ram = self._factory
                self._eeprom = None
                self._source = ProfileSource.FACTORY_DEFAULT
                logger.info("[%s] reset %s; profile matches factory", self._device_id, kind.value)
            else:
                self._persist(ram)
                self._ram = ram
                self._eeprom = ram
                self._source = ProfileSource.USER_CALIBRATED
                logger.info(
                    "[%s] reset %s; still diverging: %s",
                    self._device_id,
                    kind.value,
                    ", ".join(k.value for k in ram.diverging_curves(self._factory)),
                )
            return self._ram

    def select_mode(self, mode: CalMode | str) -> CalMode:
        """Select the sampling mode; the previous one is implicitly deselected."""
        mode = CalMode(mode)
        with self._lock:
            if mode is not self._mode:
                logger.debug("[%s] mode %s -> %s", self._device_id, self._mode.value, mode.value)
            self._mode = mode
            return mode

    def end_session(self) -> None:
        """Force the mode back to ``off``; called whenever a consuming session ends."""
        self.select_mode(CalMode.OFF)

    def reboot(self) -> CalibrationProfile:
        """Simulated power cycle: mode off, RAM reloaded from EEPROM or factory."""
        with self._lock:
            if self._storage is not None:
                self._eeprom = self._storage.load()
            self._boot()
            logger.info("[%s] reboot (source=%s)", self._device_id, self._source.value)
            return self._ram

    @contextmanager
    def calibration_session(self, mode: CalMode | str) -> Iterator["ProfileStore"]:
        """
        Enter ``mode`` for the duration of the block and always return to ``off``,
        whether the block completes or raises.
        """
        self.select_mode(mode)
        try:
            yield self
        finally:
            self.end_session()

    def __enter__(self) -> "ProfileStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_session()
