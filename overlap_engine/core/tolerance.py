"""
Tolerance-aware comparisons.

Every boundary comparison in the engine goes through this module so that the
epsilon is applied exactly once. `is_within_range` widens raw bounds by the
epsilon; bounds that were already widened (constraint rectangles) are compared
with plain `<=` by their callers.
"""

from typing import Literal, Sequence

from .constants import TOLERANCE, COURT_ORIENTATION, CourtOrientation
from .models import Point2D


def is_equal(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    """a == b within epsilon."""
    return abs(a - b) <= epsilon


def is_less(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    """a < b by more than epsilon."""
    return a < b - epsilon


def is_less_or_equal(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    return a <= b + epsilon


def is_greater(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    """a > b by more than epsilon."""
    return a > b + epsilon


def is_greater_or_equal(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    return a >= b - epsilon


def compare(a: float, b: float, epsilon: float = TOLERANCE) -> int:
    """-1 if a < b, 0 if a ~= b, 1 if a > b."""
    if is_equal(a, b, epsilon):
        return 0
    return -1 if a < b else 1


def is_significant_difference(a: float, b: float, epsilon: float = TOLERANCE) -> bool:
    return abs(a - b) > epsilon


def round_to_precision(value: float, precision: int = 3) -> float:
    """Round to `precision` decimals (3 = millimetres)."""
    return round(value, precision)


def apply_tolerance(
    value: float,
    direction: Literal["min", "max"],
    epsilon: float = TOLERANCE
) -> float:
    """Widen a boundary so a value sitting exactly on it is accepted."""
    if direction == "min":
        return value - epsilon
    if direction == "max":
        return value + epsilon
    raise ValueError(f"Unknown tolerance direction {direction!r}")


def is_within_range(
    value: float,
    min_value: float,
    max_value: float,
    epsilon: float = TOLERANCE
) -> bool:
    """
    Range check on raw bounds, accepting [min - eps, max + eps].

    Do not pass bounds produced by `apply_tolerance`: that would widen twice.
    """
    return is_greater_or_equal(value, min_value, epsilon) and \
        is_less_or_equal(value, max_value, epsilon)


def clamp_with_tolerance(
    value: float,
    min_value: float,
    max_value: float,
    epsilon: float = TOLERANCE
) -> float:
    """Clamp only when the value is outside the range by more than epsilon."""
    if is_less(value, min_value, epsilon):
        return min_value
    if is_greater(value, max_value, epsilon):
        return max_value
    return value


def find_closest(target: float, values: Sequence[float]) -> float:
    """Value in `values` nearest to target."""
    if not values:
        raise ValueError("Cannot find closest value in empty sequence")
    return min(values, key=lambda v: abs(target - v))


def points_equal(a: Point2D, b: Point2D, epsilon: float = TOLERANCE) -> bool:
    """Both axes within epsilon."""
    return is_equal(a.x, b.x, epsilon) and is_equal(a.y, b.y, epsilon)


# ============================================================================
# Orientation-aware ordering
# ============================================================================

def lateral(x: float, orientation: CourtOrientation = COURT_ORIENTATION) -> float:
    """Project x onto the left -> right axis."""
    return x * orientation.left_to_right


def depth(y: float, orientation: CourtOrientation = COURT_ORIENTATION) -> float:
    """Project y onto the net -> endline axis."""
    return y * orientation.net_to_endline


def is_left_of(
    left_x: float,
    right_x: float,
    epsilon: float = TOLERANCE,
    orientation: CourtOrientation = COURT_ORIENTATION
) -> bool:
    """Left/right order holds. Ties within epsilon are accepted."""
    return is_less_or_equal(
        lateral(left_x, orientation), lateral(right_x, orientation), epsilon
    )


def is_in_front_of(
    front_y: float,
    back_y: float,
    epsilon: float = TOLERANCE,
    orientation: CourtOrientation = COURT_ORIENTATION
) -> bool:
    """Front/back order holds. Ties within epsilon are accepted."""
    return is_less_or_equal(
        depth(front_y, orientation), depth(back_y, orientation), epsilon
    )
