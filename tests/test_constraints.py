"""Test constraint rectangles, the constraint cache and calculator metrics."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from overlap_engine.core.constants import TOLERANCE
from overlap_engine.core.models import COURT_BOUNDS, EXTENDED_BOUNDS, Point2D, PositionBounds
from overlap_engine.core.presets import base_lineup
from overlap_engine.core.validation import create_slot_map
from overlap_engine.rules.cache import BoundedCache, ConstraintCache, constraint_cache_key
from overlap_engine.rules.constraints import (
    ConstraintCalculator, ConstraintUpdate, calculate_valid_bounds, half_planes
)


@pytest.fixture
def positions():
    return create_slot_map(base_lineup())


# ============================================================================
# Rectangles
# ============================================================================

def test_no_neighbors_gives_full_court():
    """A player alone on court is unconstrained."""
    alone = {3: create_slot_map(base_lineup())[3]}
    bounds = calculate_valid_bounds(3, alone)

    assert not bounds.is_constrained
    assert bounds.reasons == []
    assert (bounds.min_x, bounds.max_x, bounds.min_y, bounds.max_y) == \
        (COURT_BOUNDS.min_x, COURT_BOUNDS.max_x, COURT_BOUNDS.min_y, COURT_BOUNDS.max_y)


def test_middle_front_rectangle(positions):
    """Middle Front sits between its row neighbors and in front of Middle Back."""
    bounds = calculate_valid_bounds(3, positions)

    assert bounds.is_constrained
    assert bounds.min_x == pytest.approx(2.0 + TOLERANCE)
    assert bounds.max_x == pytest.approx(7.0 - TOLERANCE)
    assert bounds.min_y == 0.0
    assert bounds.max_y == pytest.approx(7.0 - TOLERANCE)
    assert "Must stay right of Left Front (p4)" in bounds.reasons
    assert "Must stay left of Right Front (p2)" in bounds.reasons
    assert "Must stay in front of Middle Back (p6)" in bounds.reasons


def test_back_row_stays_behind(positions):
    bounds = calculate_valid_bounds(5, positions)
    assert bounds.min_y == pytest.approx(3.0 + TOLERANCE)
    assert bounds.max_y == 9.0
    assert bounds.min_x == 0.0
    assert bounds.max_x == pytest.approx(4.5 - TOLERANCE)
    assert "Must stay behind Left Front (p4)" in bounds.reasons


def test_server_rectangle(positions):
    """The server may go anywhere, including the service zone."""
    bounds = calculate_valid_bounds(1, positions, is_server=True)
    assert not bounds.is_constrained
    assert bounds.max_y == EXTENDED_BOUNDS.max_y
    assert half_planes(1, positions, is_server=True) == []


def test_serving_neighbor_is_ignored(positions):
    """Middle Back is not bounded by the server on its right."""
    bounds = calculate_valid_bounds(6, positions)
    assert bounds.max_x == COURT_BOUNDS.max_x
    assert bounds.min_x == pytest.approx(2.0 + TOLERANCE)
    assert bounds.min_y == pytest.approx(3.0 + TOLERANCE)


def test_crossing_edges_collapse_to_midpoint(positions):
    """When the neighbors themselves overlap there is no room left."""
    positions[4] = positions[4].model_copy(update={"x": 6.0})
    positions[2] = positions[2].model_copy(update={"x": 3.0})

    bounds = calculate_valid_bounds(3, positions)
    assert bounds.min_x == bounds.max_x == pytest.approx(4.5)
    assert "No room on the x axis: neighbors overlap" in bounds.reasons


def test_neighbor_at_court_edge_collapses_against_sideline(positions):
    """A left neighbor on the right sideline leaves no room inside the court."""
    del positions[2]
    positions[4] = positions[4].model_copy(update={"x": 8.99})

    bounds = calculate_valid_bounds(3, positions)
    assert bounds.min_x == bounds.max_x
    assert "No room on the x axis: neighbor is at the court edge" in bounds.reasons
    assert "No room on the x axis: neighbors overlap" not in bounds.reasons


def test_half_plane_accepts_ties(positions):
    """The rule check accepts the neighbor's coordinate; the edge is stricter."""
    plane = next(p for p in half_planes(3, positions) if p.source_slot == 4)
    assert plane.axis == "x"
    assert plane.side == "min"
    assert plane.is_satisfied(2.0)
    assert not plane.is_satisfied(1.9)
    assert plane.edge == pytest.approx(2.0 + TOLERANCE)


# ============================================================================
# Cache
# ============================================================================

def test_cache_key_rounds_to_millimetres(positions):
    key = constraint_cache_key(3, positions, False)
    nudged = dict(positions)
    nudged[2] = positions[2].model_copy(update={"x": 7.0001})
    assert constraint_cache_key(3, nudged, False) == key

    moved = dict(positions)
    moved[2] = positions[2].model_copy(update={"x": 7.01})
    assert constraint_cache_key(3, moved, False) != key

    # The dragged slot's own position is not part of the key
    dragged = dict(positions)
    dragged[3] = positions[3].model_copy(update={"x": 5.5})
    assert constraint_cache_key(3, dragged, False) == key


def test_cache_evicts_oldest_first():
    cache = ConstraintCache(capacity=2)
    bounds = PositionBounds(min_x=0, max_x=9, min_y=0, max_y=9)
    cache.put((1, False, ()), bounds)
    cache.put((2, False, ()), bounds)
    cache.put((3, False, ()), bounds)

    assert (1, False, ()) not in cache
    assert (3, False, ()) in cache
    assert len(cache) == 2
    assert cache.info() == {"size": 2, "capacity": 2, "evictions": 1}


def test_cache_invalidate_slots():
    cache = ConstraintCache()
    bounds = PositionBounds(min_x=0, max_x=9, min_y=0, max_y=9)
    for slot in range(1, 7):
        cache.put((slot, False, ()), bounds)

    assert cache.invalidate_slots([3, 5]) == 2
    assert len(cache) == 4
    assert cache.get((3, False, ())) is None


def test_cache_capacity_validated():
    with pytest.raises(ValueError):
        ConstraintCache(capacity=0)
    with pytest.raises(ValueError):
        BoundedCache(capacity=0)


def test_bounded_cache_holds_any_value():
    """The plain bounded cache evicts in insertion order."""
    cache = BoundedCache(capacity=3)
    for i in range(10):
        cache.put(("drag", i), f"result {i}")

    assert len(cache) == 3
    assert cache.get(("drag", 9)) == "result 9"
    assert cache.get(("drag", 6)) is None
    assert cache.info()["evictions"] == 7

    # Overwriting an existing key does not evict
    cache.put(("drag", 9), "updated")
    assert cache.info()["evictions"] == 7
    assert cache.get(("drag", 9)) == "updated"


# ============================================================================
# Calculator
# ============================================================================

def test_repeated_calculation_hits_cache(positions):
    """Identical queries return identical bounds from the cache."""
    calculator = ConstraintCalculator()
    first = calculator.calculate_optimized_constraints(3, positions)
    second = calculator.calculate_optimized_constraints(3, positions)

    assert not first.cache_hit
    assert second.cache_hit
    assert (first.min_x, first.max_x, first.min_y, first.max_y) == \
        (second.min_x, second.max_x, second.min_y, second.max_y)
    assert sorted(second.affected_by_slots) == [2, 4, 6]

    metrics = calculator.performance_metrics()
    assert metrics["total_calculations"] == 2
    assert metrics["cache_hits"] == 1
    assert metrics["full_recalculations"] == 1
    assert metrics["hit_rate"] == 0.5
    assert metrics["cache"]["size"] == 1


def test_calculators_do_not_share_state(positions):
    a = ConstraintCalculator()
    b = ConstraintCalculator()
    a.calculate_optimized_constraints(3, positions)

    assert b.performance_metrics()["total_calculations"] == 0
    assert not b.calculate_optimized_constraints(3, positions).cache_hit


def test_incremental_update_recomputes_dependents(positions):
    """Moving Left Front refreshes Middle Front and Left Back."""
    calculator = ConstraintCalculator()
    calculator.batch_calculate_constraints(range(1, 7), positions)

    positions[4] = positions[4].model_copy(update={"x": 3.0})
    update = ConstraintUpdate(
        slot=4,
        old_position=Point2D(x=2.0, y=3.0),
        new_position=Point2D(x=3.0, y=3.0),
    )
    results = calculator.perform_incremental_update(update, positions)

    assert sorted(results) == [3, 5]
    assert not results[3].cache_hit
    assert results[3].min_x == pytest.approx(3.0 + TOLERANCE)
    assert calculator.metrics.incremental_updates == 1


def test_slots_needing_recalculation(positions):
    calculator = ConstraintCalculator()
    assert calculator.get_slots_that_need_recalculation(positions) == [1, 2, 3, 4, 5, 6]

    calculator.batch_calculate_constraints(range(1, 7), positions)
    assert calculator.get_slots_that_need_recalculation(positions) == []

    # Movement inside the tolerance does not count
    positions[4] = positions[4].model_copy(update={"x": 2.01})
    assert calculator.get_slots_that_need_recalculation(positions) == []

    positions[4] = positions[4].model_copy(update={"x": 3.0})
    assert calculator.get_slots_that_need_recalculation(positions) == [3, 4, 5]


def test_batch_skips_missing_slots(positions):
    calculator = ConstraintCalculator()
    del positions[6]
    results = calculator.batch_calculate_constraints([3, 6], positions)
    assert list(results) == [3]


def test_calculation_order():
    """Every requested slot appears exactly once."""
    order = ConstraintCalculator.optimize_calculation_order([6, 5, 4, 3, 2, 1])
    assert sorted(order) == [1, 2, 3, 4, 5, 6]

    # Unrelated slots have no dependencies on each other
    assert ConstraintCalculator.optimize_calculation_order([1, 4]) == [1, 4]

    # Fewest dependencies first
    assert ConstraintCalculator.sort_slots_by_dependencies([3, 1, 6, 4]) == [1, 4, 3, 6]


def test_warm_up_and_clear(positions):
    calculator = ConstraintCalculator()
    assert calculator.warm_up_cache([base_lineup()]) == 6
    assert len(calculator.cache) == 6

    assert calculator.calculate_optimized_constraints(3, positions).cache_hit

    calculator.clear_cache()
    assert len(calculator.cache) == 0

    calculator.reset_metrics()
    assert calculator.performance_metrics()["total_calculations"] == 0
