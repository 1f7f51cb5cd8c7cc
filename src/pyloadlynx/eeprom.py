"""Fixed-layout EEPROM blob for a persisted calibration profile, plus file-backed storage.

Layout (256 bytes, little endian):

    0        fmt_version  u8
    1        hw_rev       u8
    2..6     point counts u8 x4 (current_ch1, current_ch2, v_local, v_remote)
    6..8     reserved
    8..168   4 curves x 5 slots x 8 bytes: raw i16, dac_code u16, measured i32
    252..256 CRC-32 (IEEE) over bytes 0..252
"""

import logging
import struct
import zlib
from pathlib import Path

from .errors import (
    CrcMismatchError,
    HwRevMismatchError,
    InvalidCountsError,
    InvalidLengthError,
    ProfileFormatError,
    UnsupportedFormatError,
)
from .profile import CalibrationProfile
from .types import CAL_FMT_VERSION, DIGITAL_HW_REV, CurrentPoint, CurveKind, VoltagePoint

logger = logging.getLogger(__name__)

PROFILE_LEN = 256
CRC_LEN = 4
CRC_OFFSET = PROFILE_LEN - CRC_LEN
SLOTS_PER_CURVE = 5
POINT_LEN = 8

_OFF_FMT = 0
_OFF_HW_REV = 1
_OFF_COUNTS = 2
_OFF_POINTS = 8

_POINT = struct.Struct("<hHi")

# Storage order of the curves in the blob.
BLOB_ORDER = (
    CurveKind.CURRENT_CH1,
    CurveKind.CURRENT_CH2,
    CurveKind.V_LOCAL,
    CurveKind.V_REMOTE,
)


def crc32_ieee(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFF_FFFF


def serialize_profile(profile: CalibrationProfile) -> bytes:
    """Encode a profile into the 256-byte blob. Curves beyond 5 points are rejected."""
    out = bytearray(PROFILE_LEN)
    out[_OFF_FMT] = profile.fmt_version
    out[_OFF_HW_REV] = profile.hw_rev
    for curve_idx, kind in enumerate(BLOB_ORDER):
        points = profile.points_for(kind)
        if len(points) > SLOTS_PER_CURVE:
            raise ValueError(f"{kind.value} has {len(points)} points; blob holds at most {SLOTS_PER_CURVE}")
        out[_OFF_COUNTS + curve_idx] = len(points)
        for i, p in enumerate(points):
            dst = _OFF_POINTS + (curve_idx * SLOTS_PER_CURVE + i) * POINT_LEN
            dac = p.dac_code if kind.is_current else 0
            _POINT.pack_into(out, dst, p.raw, dac, p.measured)
    struct.pack_into("<I", out, CRC_OFFSET, crc32_ieee(bytes(out[:CRC_OFFSET])))
    return bytes(out)


def deserialize_profile(blob: bytes, expected_hw_rev: int = DIGITAL_HW_REV) -> CalibrationProfile:
    """Decode and verify a blob; raises a ProfileFormatError subclass on any mismatch."""
    if len(blob) != PROFILE_LEN:
        raise InvalidLengthError(len(blob), PROFILE_LEN)

    fmt_version = blob[_OFF_FMT]
    if fmt_version != CAL_FMT_VERSION:
        raise UnsupportedFormatError(fmt_version)
    hw_rev = blob[_OFF_HW_REV]
    if hw_rev != expected_hw_rev:
        raise HwRevMismatchError(hw_rev, expected_hw_rev)

    (stored_crc,) = struct.unpack_from("<I", blob, CRC_OFFSET)
    computed_crc = crc32_ieee(blob[:CRC_OFFSET])
    if stored_crc != computed_crc:
        raise CrcMismatchError(stored_crc, computed_crc)

    counts = list(blob[_OFF_COUNTS:_OFF_COUNTS + 4])
    if any(c == 0 or c > SLOTS_PER_CURVE for c in counts):
        raise InvalidCountsError(counts)

    profile = CalibrationProfile.factory_default(hw_rev)
    for curve_idx, kind in enumerate(BLOB_ORDER):
        points = []
        for i in range(counts[curve_idx]):
            src = _OFF_POINTS + (curve_idx * SLOTS_PER_CURVE + i) * POINT_LEN
            raw, dac, measured = _POINT.unpack_from(blob, src)
            if kind.is_current:
                points.append(CurrentPoint(raw=raw, dac_code=dac, measured_ma=measured))
            else:
                points.append(VoltagePoint(raw=raw, measured_mv=measured))
        profile = profile.with_curve(kind, points)
    return profile


class EepromFile:
    """
    File-backed stand-in for the device EEPROM: one profile blob per path.

    Writes are atomic (temp file + replace). ``load`` returns None when the file is
    absent; a corrupt blob is logged and also reported as absent so the device
    falls back to factory defaults instead of refusing to start.
    """

    def __init__(self, path: str | Path, hw_rev: int = DIGITAL_HW_REV) -> None:
        self._path = Path(path)
        self._hw_rev = hw_rev

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CalibrationProfile | None:
        if not self._path.exists():
            return None
        blob = self._path.read_bytes()
        try:
            return deserialize_profile(blob, self._hw_rev)
        except ProfileFormatError as e:
            logger.warning("Ignoring EEPROM image %s: %s", self._path, e)
            return None

    def store(self, profile: CalibrationProfile) -> None:
        blob = serialize_profile(profile)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(blob)
        tmp.replace(self._path)
        logger.debug("Wrote EEPROM image %s", self._path)

    def erase(self) -> None:
        if self._path.exists():
            self._path.unlink()
            logger.debug("Erased EEPROM image %s", self._path)
