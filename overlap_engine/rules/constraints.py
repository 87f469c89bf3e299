"""Constraint rectangles for dragged players, with caching and metrics."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence

from pydantic import Field

from ..core.constants import TOLERANCE, COURT_ORIENTATION, CourtOrientation
from ..core.models import (
    PlayerState, Point2D, PositionBounds, COURT_BOUNDS, EXTENDED_BOUNDS
)
from ..core import neighbors
from ..core.tolerance import is_equal, is_greater_or_equal, is_less_or_equal
from ..core.validation import create_slot_map
from .cache import ConstraintCache, constraint_cache_key

logger = logging.getLogger("overlap_engine.constraints")


# ============================================================================
# Half-planes
# ============================================================================

@dataclass(frozen=True)
class HalfPlane:
    """
    One neighbor's limit on one axis.

    side="min": coordinate must be >= edge; side="max": coordinate must be <= edge.
    The edge sits one tolerance past the neighbor, so the rectangle keeps a
    strict separation while the rule check accepts ties.
    """
    axis: Literal["x", "y"]
    side: Literal["min", "max"]
    neighbor_value: float
    source_slot: int
    reason: str
    epsilon: float = TOLERANCE

    @property
    def edge(self) -> float:
        if self.side == "min":
            return self.neighbor_value + self.epsilon
        return self.neighbor_value - self.epsilon

    def is_satisfied(self, value: float) -> bool:
        """Same tie policy as the lineup rules."""
        if self.side == "min":
            return is_greater_or_equal(value, self.neighbor_value, self.epsilon)
        return is_less_or_equal(value, self.neighbor_value, self.epsilon)


def _side(sign: int, after_neighbor: bool) -> Literal["min", "max"]:
    """Raw-axis side for 'projected coordinate after/before the neighbor'."""
    if after_neighbor:
        return "min" if sign > 0 else "max"
    return "max" if sign > 0 else "min"


def half_planes(
    slot: int,
    positions: Mapping[int, PlayerState],
    is_server: bool = False,
    epsilon: float = TOLERANCE,
    orientation: CourtOrientation = COURT_ORIENTATION
) -> List[HalfPlane]:
    """
    Half-planes bounding `slot`:
    - left row neighbor: must stay right of it
    - right row neighbor: must stay left of it
    - column counterpart: front row stays nearer the net, back row farther

    The server has none. Neighbors that are missing, serving or without a
    finite position contribute nothing.
    """
    if is_server:
        return []

    def usable(s: Optional[int]) -> Optional[PlayerState]:
        if s is None:
            return None
        player = positions.get(s)
        if player is None or player.is_server or not player.has_finite_position:
            return None
        return player

    planes = []
    left = usable(neighbors.left_neighbor(slot))
    if left is not None:
        planes.append(HalfPlane(
            axis="x",
            side=_side(orientation.left_to_right, after_neighbor=True),
            neighbor_value=left.x,
            source_slot=left.slot,
            reason=f"Must stay right of {neighbors.slot_label(left.slot)} ({left.name})",
            epsilon=epsilon,
        ))

    right = usable(neighbors.right_neighbor(slot))
    if right is not None:
        planes.append(HalfPlane(
            axis="x",
            side=_side(orientation.left_to_right, after_neighbor=False),
            neighbor_value=right.x,
            source_slot=right.slot,
            reason=f"Must stay left of {neighbors.slot_label(right.slot)} ({right.name})",
            epsilon=epsilon,
        ))

    other = usable(neighbors.counterpart(slot))
    if other is not None:
        front = neighbors.is_front_row(slot)
        planes.append(HalfPlane(
            axis="y",
            side=_side(orientation.net_to_endline, after_neighbor=not front),
            neighbor_value=other.y,
            source_slot=other.slot,
            reason=(
                f"Must stay in front of {neighbors.slot_label(other.slot)} ({other.name})"
                if front else
                f"Must stay behind {neighbors.slot_label(other.slot)} ({other.name})"
            ),
            epsilon=epsilon,
        ))

    return planes


def calculate_valid_bounds(
    slot: int,
    positions: Mapping[int, PlayerState],
    is_server: bool = False,
    epsilon: float = TOLERANCE,
    orientation: CourtOrientation = COURT_ORIENTATION
) -> PositionBounds:
    """
    Intersect the slot's half-planes with the court.

    The server is unconstrained and may use the service zone. When two edges
    on one axis cross, the axis collapses to the midpoint of the crossing
    edges. Either the neighbors themselves overlap or a neighbor stands so
    close to the court edge that its edge lands outside the court.
    """
    court = EXTENDED_BOUNDS if is_server else COURT_BOUNDS
    limits = {
        ("x", "min"): court.min_x, ("x", "max"): court.max_x,
        ("y", "min"): court.min_y, ("y", "max"): court.max_y,
    }
    # Edges set by a neighbor rather than the court
    from_neighbor = set()
    reasons = []

    for plane in half_planes(slot, positions, is_server, epsilon, orientation):
        key = (plane.axis, plane.side)
        current = limits[key]
        narrows = plane.edge > current if plane.side == "min" else plane.edge < current
        if narrows:
            limits[key] = plane.edge
            from_neighbor.add(key)
            reasons.append(plane.reason)

    for axis in ("x", "y"):
        lo, hi = limits[(axis, "min")], limits[(axis, "max")]
        if lo > hi:
            mid = (lo + hi) / 2.0
            limits[(axis, "min")] = limits[(axis, "max")] = mid
            if (axis, "min") in from_neighbor and (axis, "max") in from_neighbor:
                reasons.append(f"No room on the {axis} axis: neighbors overlap")
            else:
                reasons.append(f"No room on the {axis} axis: neighbor is at the court edge")

    return PositionBounds(
        min_x=limits[("x", "min")],
        max_x=limits[("x", "max")],
        min_y=limits[("y", "min")],
        max_y=limits[("y", "max")],
        is_constrained=bool(reasons),
        reasons=reasons,
    )


# ============================================================================
# Metrics
# ============================================================================

@dataclass
class ConstraintMetrics:
    """Counters for one calculator instance. Never affect results."""

    total_calculations: int = 0
    cache_hits: int = 0
    incremental_updates: int = 0
    full_recalculations: int = 0
    average_calculation_time: float = 0.0  # ms

    def record(self, elapsed_ms: float, cache_hit: bool):
        """Add one calculation."""
        self.total_calculations += 1
        if cache_hit:
            self.cache_hits += 1
        else:
            self.full_recalculations += 1

        total = self.total_calculations
        self.average_calculation_time = (
            self.average_calculation_time * (total - 1) + elapsed_ms
        ) / total

    @property
    def hit_rate(self) -> float:
        if self.total_calculations == 0:
            return 0.0
        return self.cache_hits / self.total_calculations

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_calculations": self.total_calculations,
            "cache_hits": self.cache_hits,
            "incremental_updates": self.incremental_updates,
            "full_recalculations": self.full_recalculations,
            "average_calculation_time": self.average_calculation_time,
            "hit_rate": self.hit_rate,
        }


class OptimizedConstraintResult(PositionBounds):
    """PositionBounds plus how it was obtained."""
    calculation_time: float = 0.0  # ms
    cache_hit: bool = False
    affected_by_slots: List[int] = Field(default_factory=list)


@dataclass
class ConstraintUpdate:
    """A single player's move during a drag."""
    slot: int
    old_position: Point2D
    new_position: Point2D
    affected_slots: List[int] = field(default_factory=list)


# ============================================================================
# Calculator
# ============================================================================

class ConstraintCalculator:
    """
    Computes constraint rectangles on every pointer move.

    Results are cached by the exact (rounded) positions of the other five
    players. The cache is only invalidated explicitly via `clear_cache` or
    by an incremental update.
    """

    def __init__(
        self,
        cache_size: int = 256,
        epsilon: float = TOLERANCE,
        orientation: CourtOrientation = COURT_ORIENTATION
    ):
        self.epsilon = epsilon
        self.orientation = orientation
        self.cache = ConstraintCache(cache_size)
        self.metrics = ConstraintMetrics()
        self._last_positions: Dict[int, Point2D] = {}

    def calculate_bounds(
        self,
        slot: int,
        positions: Mapping[int, PlayerState],
        is_server: bool = False
    ) -> PositionBounds:
        """Uncached computation."""
        return calculate_valid_bounds(slot, positions, is_server, self.epsilon, self.orientation)

    def calculate_optimized_constraints(
        self,
        slot: int,
        positions: Mapping[int, PlayerState],
        is_server: bool = False
    ) -> OptimizedConstraintResult:
        """Cached constraint rectangle for `slot`."""
        start = time.perf_counter()

        key = constraint_cache_key(slot, positions, is_server)
        bounds = self.cache.get(key)
        cache_hit = bounds is not None
        if not cache_hit:
            bounds = self.calculate_bounds(slot, positions, is_server)
            self.cache.put(key, bounds)

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self.metrics.record(elapsed_ms, cache_hit)

        return OptimizedConstraintResult(
            **bounds.model_dump(),
            calculation_time=elapsed_ms,
            cache_hit=cache_hit,
            affected_by_slots=neighbors.dependencies(slot),
        )

    def perform_incremental_update(
        self,
        update: ConstraintUpdate,
        positions: Mapping[int, PlayerState]
    ) -> Dict[int, OptimizedConstraintResult]:
        """
        Recompute only the slots affected by one player's move.
        Affected slots default to the mover's dependents.
        """
        affected = update.affected_slots or neighbors.dependents(update.slot)
        self.cache.invalidate_slots(affected)

        results = {}
        for slot in affected:
            player = positions.get(slot)
            if player is None:
                continue
            results[slot] = self.calculate_optimized_constraints(
                slot, positions, player.is_server
            )

        self._last_positions[update.slot] = update.new_position
        self.metrics.incremental_updates += 1
        return results

    def batch_calculate_constraints(
        self,
        slots: Iterable[int],
        positions: Mapping[int, PlayerState]
    ) -> Dict[int, OptimizedConstraintResult]:
        """Rectangles for several slots, fewest dependencies first."""
        results = {}
        for slot in self.sort_slots_by_dependencies(slots):
            player = positions.get(slot)
            if player is None:
                continue
            results[slot] = self.calculate_optimized_constraints(
                slot, positions, player.is_server
            )
        self.remember_positions(positions)
        return results

    def remember_positions(self, positions: Mapping[int, PlayerState]) -> None:
        for slot, player in positions.items():
            self._last_positions[slot] = Point2D(x=player.x, y=player.y)

    def get_slots_that_need_recalculation(
        self,
        positions: Mapping[int, PlayerState]
    ) -> List[int]:
        """Slots that moved beyond tolerance since last seen, plus their dependents."""
        stale = set()
        for slot, player in positions.items():
            last = self._last_positions.get(slot)
            moved = (
                last is None
                or not is_equal(last.x, player.x, self.epsilon)
                or not is_equal(last.y, player.y, self.epsilon)
            )
            if moved:
                stale.add(slot)
                stale.update(neighbors.dependents(slot))
        return sorted(stale)

    @staticmethod
    def sort_slots_by_dependencies(slots: Iterable[int]) -> List[int]:
        return sorted(slots, key=lambda s: (len(neighbors.dependencies(s)), s))

    @staticmethod
    def optimize_calculation_order(slots: Sequence[int]) -> List[int]:
        """
        Topological order over neighbor dependencies inside `slots`.
        Neighbor relations are symmetric, so cycles are common: whatever
        cannot be ordered is appended by dependency count.
        """
        wanted = list(dict.fromkeys(slots))
        in_degree = {
            s: sum(1 for d in neighbors.dependencies(s) if d in wanted)
            for s in wanted
        }

        queue = deque(s for s in wanted if in_degree[s] == 0)
        ordered = []
        while queue:
            current = queue.popleft()
            ordered.append(current)
            for s in wanted:
                if s in ordered or s in queue:
                    continue
                if current in neighbors.dependencies(s):
                    in_degree[s] -= 1
                    if in_degree[s] == 0:
                        queue.append(s)

        remaining = [s for s in wanted if s not in ordered]
        return ordered + ConstraintCalculator.sort_slots_by_dependencies(remaining)

    def warm_up_cache(self, lineups: Iterable[Sequence[PlayerState]]) -> int:
        """Precompute rectangles for every player of each lineup."""
        computed = 0
        for lineup in lineups:
            slot_map = create_slot_map(lineup)
            for player in lineup:
                self.calculate_optimized_constraints(player.slot, slot_map, player.is_server)
                computed += 1
        logger.info(f"Constraint cache warmed with {computed} entries")
        return computed

    def clear_cache(self) -> None:
        self.cache.clear()
        self._last_positions.clear()
        logger.info("Constraint cache cleared")

    def reset_metrics(self) -> None:
        self.metrics = ConstraintMetrics()

    def performance_metrics(self) -> Dict:
        return {**self.metrics.to_dict(), "cache": self.cache.info()}
