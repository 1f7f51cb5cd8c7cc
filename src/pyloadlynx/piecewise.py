"""Piecewise-linear raw <-> physical conversion, in float and exact decimal flavors."""

from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Any, Callable, Sequence, TypeVar

from .normalize import normalize_points
from .types import CurveKind, Point

N = TypeVar("N", float, Decimal)

# Wide enough that i16 raw codes and i32 measured values never round.
_DECIMAL_CONTEXT = Context(prec=50)


def curve_points(kind: CurveKind | str, points: Sequence[Any]) -> list[Point]:
    """Map typed calibration points of one curve onto generic (raw, measured) pairs."""
    kind = CurveKind(kind)
    return [p.as_xy() for p in points if isinstance(p, kind.point_type)]


def _dataset(points: Sequence[Any], inverse: bool) -> list[Point]:
    pairs = [p if isinstance(p, Point) else p.as_xy() for p in points]
    if inverse:
        pairs = [Point(p.y, p.x) for p in pairs]
    return normalize_points(pairs)


def _evaluate(dataset: list[Point], x: N, num: Callable[[Any], N]) -> N:
    if not dataset:
        return x

    if len(dataset) == 1:
        # Gain-only: implicit anchor at the origin.
        p = dataset[0]
        if p.x == 0:
            return num(p.y)
        return num(p.y) / num(p.x) * x

    for p0, p1 in zip(dataset, dataset[1:]):
        if num(p0.x) <= x <= num(p1.x):
            t = (x - num(p0.x)) / (num(p1.x) - num(p0.x))
            return num(p0.y) + t * (num(p1.y) - num(p0.y))

    if x < num(dataset[0].x):
        anchor, other = dataset[0], dataset[1]
    else:
        anchor, other = dataset[-1], dataset[-2]
    slope = (num(other.y) - num(anchor.y)) / (num(other.x) - num(anchor.x))
    return num(anchor.y) + slope * (x - num(anchor.x))


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def piecewise_linear(points: Sequence[Any], x: float) -> float:
    """
    Convert a raw code to a physical value.

    - no points: identity
    - one point: gain from an implicit origin anchor; a point at raw 0 is a pure offset
    - two or more: interpolate inside the bracketing segment, extend the first or
      last segment linearly outside the covered range (never clamped)
    """
    return _evaluate(_dataset(points, inverse=False), float(x), float)


def inverse_piecewise_linear(points: Sequence[Any], y: float) -> float:
    """Convert a physical value back to a raw code (same algorithm, axes swapped)."""
    return _evaluate(_dataset(points, inverse=True), float(y), float)


def piecewise_linear_decimal(points: Sequence[Any], x: Any) -> Decimal:
    """Exact decimal variant of :func:`piecewise_linear` for threshold comparisons."""
    dataset = _dataset(points, inverse=False)
    with localcontext(_DECIMAL_CONTEXT):
        return _evaluate(dataset, _to_decimal(x), _to_decimal)


def inverse_piecewise_linear_decimal(points: Sequence[Any], y: Any) -> Decimal:
    dataset = _dataset(points, inverse=True)
    with localcontext(_DECIMAL_CONTEXT):
        return _evaluate(dataset, _to_decimal(y), _to_decimal)


def round_half_up(value: Any) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(_to_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def within_tolerance(points: Sequence[Any], raw: Any, target: int, tolerance: Any = 0) -> bool:
    """True when the converted raw sample lies within ``tolerance`` of an integer target."""
    value = piecewise_linear_decimal(points, raw)
    return abs(value - _to_decimal(target)) <= _to_decimal(tolerance)
