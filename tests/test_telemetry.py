"""Tests for live telemetry preview."""

from decimal import Decimal

import pytest

from pyloadlynx import (
    CalibrationProfile,
    CalMode,
    CurrentPoint,
    CurveKind,
    PreconditionError,
    TelemetrySample,
    VoltagePoint,
    preview,
)
from pyloadlynx.telemetry import required_fields


@pytest.fixture
def profile() -> CalibrationProfile:
    return (
        CalibrationProfile.factory_default()
        .with_curve(CurveKind.V_LOCAL, [VoltagePoint(raw=0, measured_mv=0), VoltagePoint(raw=1000, measured_mv=1250)])
        .with_curve(CurveKind.V_REMOTE, [VoltagePoint(raw=1000, measured_mv=1000)])
        .with_curve(
            CurveKind.CURRENT_CH2,
            [CurrentPoint(raw=0, dac_code=0, measured_ma=0), CurrentPoint(raw=100, dac_code=5, measured_ma=50)],
        )
    )


def test_from_status() -> None:
    sample = TelemetrySample.from_status(
        {"raw_v_nr_100uv": 10, "raw_v_rmt_100uv": 11, "raw_cur_100uv": None, "cal_kind": 1}
    )
    assert sample == TelemetrySample(raw_v_local=10, raw_v_remote=11, mode=CalMode.VOLTAGE)


def test_from_status_without_mode() -> None:
    assert TelemetrySample.from_status({}).mode is None


def test_from_status_unknown_mode() -> None:
    with pytest.raises(ValueError):
        TelemetrySample.from_status({"cal_kind": 9})


@pytest.mark.parametrize(
    ("mode", "fields"),
    [
        (CalMode.OFF, ()),
        (CalMode.VOLTAGE, ("raw_v_local", "raw_v_remote")),
        ("current_ch1", ("raw_current", "raw_dac_code")),
    ],
)
def test_required_fields(mode, fields) -> None:
    assert required_fields(mode) == fields


def test_preview_voltage(profile: CalibrationProfile) -> None:
    sample = TelemetrySample(raw_v_local=400, raw_v_remote=500)
    values = preview(profile, CalMode.VOLTAGE, sample)
    assert values == {"v_local_mv": pytest.approx(500), "v_remote_mv": pytest.approx(500)}


def test_preview_current_exact(profile: CalibrationProfile) -> None:
    sample = TelemetrySample(raw_current=30, raw_dac_code=2)
    assert preview(profile, "current_ch2", sample, exact=True) == {"current_ch2_ma": Decimal(15)}


def test_preview_from_draft_curves() -> None:
    curves = {CurveKind.CURRENT_CH1: [CurrentPoint(raw=10, dac_code=1, measured_ma=20)]}
    sample = TelemetrySample(raw_current=5, raw_dac_code=1)
    assert preview(curves, CalMode.CURRENT_CH1, sample) == {"current_ch1_ma": pytest.approx(10)}


def test_preview_requires_mode(profile: CalibrationProfile) -> None:
    with pytest.raises(PreconditionError, match="off"):
        preview(profile, CalMode.OFF, TelemetrySample(raw_v_local=1))


def test_preview_requires_fields(profile: CalibrationProfile) -> None:
    with pytest.raises(PreconditionError, match="raw_dac_code"):
        preview(profile, CalMode.CURRENT_CH1, TelemetrySample(raw_current=1))
