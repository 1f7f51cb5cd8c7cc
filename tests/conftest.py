"""Shared fixtures for pyloadlynx tests."""

import pytest

from pyloadlynx import CurrentPoint, VoltagePoint


@pytest.fixture
def voltage_points() -> list[VoltagePoint]:
    return [
        VoltagePoint(raw=0, measured_mv=0),
        VoltagePoint(raw=10_000, measured_mv=12_450),
        VoltagePoint(raw=20_000, measured_mv=24_950),
    ]


@pytest.fixture
def current_points() -> list[CurrentPoint]:
    return [
        CurrentPoint(raw=200, dac_code=410, measured_ma=1_000),
        CurrentPoint(raw=1_010, dac_code=2_050, measured_ma=5_000),
    ]
