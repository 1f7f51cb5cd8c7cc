"""Tests for point normalization: dedup order, raw ordering, ranges and monotonicity."""

import pytest

from pyloadlynx import CurrentPoint, CurveKind, Point, VoltagePoint, normalize_curve, normalize_points
from pyloadlynx.errors import ValidationFailed


def test_normalize_points_sorts_by_raw() -> None:
    points = [Point(10, 1), Point(5, 0.5), Point(20, 2)]
    assert normalize_points(points) == [Point(5, 0.5), Point(10, 1), Point(20, 2)]


def test_normalize_points_keeps_later_duplicate_raw() -> None:
    points = [Point(10, 1), Point(10, 1.5), Point(5, 0.5)]
    assert normalize_points(points) == [Point(5, 0.5), Point(10, 1.5)]


def test_normalize_points_empty() -> None:
    assert normalize_points([]) == []


def test_normalize_points_collapses_measured_before_sorting() -> None:
    # Re-capture at the same target (y=1) overwrites the earlier sample even though
    # its raw sorts before it.
    points = [Point(12, 1), Point(30, 3), Point(11, 1)]
    assert normalize_points(points) == [Point(11, 1), Point(30, 3)]


@pytest.mark.parametrize(
    "points",
    [
        [],
        [Point(3, 1)],
        [Point(10, 1), Point(5, 0.5), Point(20, 2)],
        [Point(10, 1), Point(10, 1.5), Point(5, 0.5), Point(7, 1.5)],
        [Point(1, 5), Point(2, 4), Point(3, 3), Point(3, 9)],
    ],
)
def test_normalize_points_is_idempotent(points: list[Point]) -> None:
    once = normalize_points(points)
    assert normalize_points(once) == once


def test_normalize_curve_typed_points_are_idempotent() -> None:
    raw = [
        CurrentPoint(raw=200, dac_code=20, measured_ma=2000),
        CurrentPoint(raw=100, dac_code=10, measured_ma=1000),
        CurrentPoint(raw=150, dac_code=15, measured_ma=2000),
    ]
    first = normalize_curve(CurveKind.CURRENT_CH1, raw)
    second = normalize_curve(CurveKind.CURRENT_CH1, list(first.points))
    assert first.ok and second.ok
    assert first.points == second.points
    assert first.points == (
        CurrentPoint(raw=100, dac_code=10, measured_ma=1000),
        CurrentPoint(raw=150, dac_code=15, measured_ma=2000),
    )


def test_normalize_curve_ok() -> None:
    result = normalize_curve("v_local", [VoltagePoint(2000, 2480), VoltagePoint(1000, 1240)])
    assert result.ok
    assert result.kind is CurveKind.V_LOCAL
    assert result.require() == (VoltagePoint(1000, 1240), VoltagePoint(2000, 2480))


def test_normalize_curve_empty_is_cardinality_issue() -> None:
    result = normalize_curve(CurveKind.V_LOCAL, [])
    assert result.points == ()
    assert [(i.path, i.message) for i in result.issues] == [("v_local_points", "points must contain 1..5 items")]
    with pytest.raises(ValidationFailed):
        result.require()


def test_normalize_curve_too_many_points() -> None:
    points = [VoltagePoint(raw=i * 100, measured_mv=i * 120) for i in range(6)]
    result = normalize_curve(CurveKind.V_REMOTE, points)
    assert [i.message for i in result.issues] == ["too many points (max 5)"]
    assert normalize_curve(CurveKind.V_REMOTE, points, max_points=6).ok


def test_normalize_curve_monotonicity_violation() -> None:
    points = [VoltagePoint(100, 500), VoltagePoint(200, 400), VoltagePoint(300, 300)]
    result = normalize_curve(CurveKind.V_LOCAL, points)
    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue.path == "v_local_points"
    assert "strictly increasing" in issue.message
    assert "v_local" in issue.message


@pytest.mark.parametrize(
    ("point", "path", "message"),
    [
        (CurrentPoint(raw=40000, dac_code=1, measured_ma=1), "current_ch2_points[1].raw", "raw out of range for i16"),
        (CurrentPoint(raw=-32769, dac_code=1, measured_ma=1), "current_ch2_points[1].raw", "raw out of range for i16"),
        (CurrentPoint(raw=1.5, dac_code=1, measured_ma=1), "current_ch2_points[1].raw", "raw must be an integer"),
        (CurrentPoint(raw=500, dac_code=65536, measured_ma=1), "current_ch2_points[1].dac_code", "dac_code out of range for u16"),
        (CurrentPoint(raw=500, dac_code=-1, measured_ma=1), "current_ch2_points[1].dac_code", "dac_code out of range for u16"),
        (CurrentPoint(raw=500, dac_code="7", measured_ma=1), "current_ch2_points[1].dac_code", "dac_code must be an integer"),
        (CurrentPoint(raw=500, dac_code=7, measured_ma=0.25), "current_ch2_points[1].measured_ma", "measured_ma must be an integer"),
        (CurrentPoint(raw=500, dac_code=7, measured_ma=True), "current_ch2_points[1].measured_ma", "measured_ma must be an integer"),
        (CurrentPoint(raw=500, dac_code=7, measured_ma=2**31), "current_ch2_points[1].measured_ma", "measured_ma out of range for i32"),
        (CurrentPoint(raw=500, dac_code=7, measured_ma=1e12), "current_ch2_points[1].measured_ma", "measured_ma out of range for i32"),
    ],
)
def test_normalize_curve_structural_issue_paths(point: CurrentPoint, path: str, message: str) -> None:
    good = CurrentPoint(raw=0, dac_code=0, measured_ma=-100)
    result = normalize_curve(CurveKind.CURRENT_CH2, [good, point])
    structural = [i for i in result.issues if i.path != "current_ch2_points"]
    assert [(i.path, i.message) for i in structural] == [(path, message)]


def test_normalize_curve_reports_every_defect_at_once() -> None:
    points = [
        CurrentPoint(raw=100, dac_code=70000, measured_ma=10),
        CurrentPoint(raw=200, dac_code=5, measured_ma=5.5),
        CurrentPoint(raw=300, dac_code=5, measured_ma=1),
    ]
    result = normalize_curve(CurveKind.CURRENT_CH1, points)
    paths = [i.path for i in result.issues]
    assert "current_ch1_points[0].dac_code" in paths
    assert "current_ch1_points[1].measured_ma" in paths
    assert "current_ch1_points" in paths  # monotonicity


def test_normalize_curve_coerces_integral_floats() -> None:
    result = normalize_curve(CurveKind.V_LOCAL, [VoltagePoint(raw=10.0, measured_mv=12.0)])
    assert result.ok
    (point,) = result.points
    assert type(point.raw) is int and type(point.measured_mv) is int


def test_normalize_curve_rejects_wrong_shape() -> None:
    result = normalize_curve(CurveKind.CURRENT_CH1, [VoltagePoint(1, 1)])
    assert ("current_ch1_points[0]", "expected CurrentPoint") in [(i.path, i.message) for i in result.issues]


@pytest.mark.parametrize(("measured", "ok"), [(2**31 - 1, True), (2**31, False), (-(2**31), True), (-(2**31) - 1, False)])
def test_normalize_curve_measured_fits_i32(measured: int, ok: bool) -> None:
    result = normalize_curve(CurveKind.V_LOCAL, [VoltagePoint(raw=10, measured_mv=measured)])
    assert result.ok is ok
    if not ok:
        assert [(i.path, i.message) for i in result.issues] == [
            ("v_local_points[0].measured_mv", "measured_mv out of range for i32"),
        ]
