"""Test overlap rule validation, single-player checks and snapping."""

import math
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from overlap_engine.core.constants import TOLERANCE
from overlap_engine.core.models import Point2D, ViolationCode, Violation
from overlap_engine.core.presets import base_lineup
from overlap_engine.core.validation import create_slot_map
from overlap_engine.rules.overlap import RulesEngine


@pytest.fixture(scope="module")
def engine():
    return RulesEngine()


def move(lineup, slot, x=None, y=None):
    """Copy of the lineup with one slot moved."""
    moved = [p.model_copy() for p in lineup]
    player = create_slot_map(moved)[slot]
    if x is not None:
        player.x = x
    if y is not None:
        player.y = y
    return moved


# ============================================================================
# Lineup validation
# ============================================================================

def test_base_lineup_is_legal(engine):
    """Players on their base positions overlap nobody."""
    result = engine.validate_lineup(base_lineup())
    assert result.is_legal
    assert result.violations == []


def test_swapped_front_row_single_violation(engine):
    """Swapping Left Front and Middle Front breaks exactly one pair."""
    lineup = move(base_lineup(), 3, x=2.0)
    lineup = move(lineup, 4, x=4.5)

    result = engine.validate_lineup(lineup)
    assert not result.is_legal
    assert len(result.violations) == 1

    violation = result.violations[0]
    assert violation.code == ViolationCode.ROW_ORDER
    assert set(violation.slots) == {3, 4}
    assert "Front row order violation" in violation.message
    assert violation.coordinates[4].x == 4.5


def test_right_front_moved_left(engine):
    """Right Front at x=1 must be reported against Middle Front."""
    result = engine.validate_lineup(move(base_lineup(), 2, x=1.0))
    assert not result.is_legal
    assert [set(v.slots) for v in result.violations] == [{2, 3}]


def test_front_back_violation(engine):
    """Middle Front behind Middle Back."""
    result = engine.validate_lineup(move(base_lineup(), 3, y=8.0))
    assert [v.code for v in result.violations] == [ViolationCode.FRONT_BACK]
    assert result.violations[0].slots == [3, 6]
    assert "Middle Front" in result.violations[0].message


def test_ties_are_legal(engine):
    """Players level with each other do not overlap."""
    lineup = move(base_lineup(), 3, x=2.0)
    lineup = move(lineup, 5, y=3.0)
    assert engine.validate_lineup(lineup).is_legal

    # Just inside the tolerance band
    lineup = move(base_lineup(), 4, x=4.5 + TOLERANCE / 2)
    assert engine.validate_lineup(lineup).is_legal


@pytest.mark.parametrize("server_slot", [1, 2, 3, 4, 5, 6])
def test_server_exemption(engine, server_slot):
    """Whichever slot serves may stand anywhere without breaking a pair."""
    for x, y in [(0.5, 0.5), (8.5, 1.0), (4.5, 10.5), (1.0, 8.5), (8.5, 8.5)]:
        lineup = move(base_lineup(server_slot=server_slot), server_slot, x=x, y=y)
        result = engine.validate_lineup(lineup)
        assert result.is_legal, (server_slot, x, y)
        assert not result.involves(server_slot)


def test_non_server_still_checked_around_server(engine):
    """Pairs that do not touch the server keep applying."""
    lineup = move(base_lineup(), 1, x=0.5, y=0.5)
    lineup = move(lineup, 6, x=1.0)
    result = engine.validate_lineup(lineup)
    assert [set(v.slots) for v in result.violations] == [{5, 6}]


def test_malformed_lineups_do_not_raise(engine):
    """Shape problems come back as violations, ordering is skipped."""
    result = engine.validate_lineup(base_lineup()[:4])
    assert not result.is_legal
    assert [v.code for v in result.violations] == [ViolationCode.INVALID_LINEUP]

    lineup = base_lineup()
    lineup[0].is_server = False
    result = engine.validate_lineup(lineup)
    assert [v.code for v in result.violations] == [ViolationCode.MULTIPLE_SERVERS]

    lineup = move(base_lineup(), 2, x=math.nan)
    result = engine.validate_lineup(lineup)
    assert [v.code for v in result.violations] == [ViolationCode.CONVERSION_ERROR]


# ============================================================================
# Single-player checks
# ============================================================================

def test_is_valid_position(engine):
    lineup = base_lineup()
    assert engine.is_valid_position(3, Point2D(x=5.0, y=2.0), lineup)
    assert not engine.is_valid_position(3, Point2D(x=8.0, y=2.0), lineup)
    assert not engine.is_valid_position(3, Point2D(x=5.0, y=8.0), lineup)
    assert not engine.is_valid_position(3, Point2D(x=math.inf, y=2.0), lineup)


def test_is_valid_position_server(engine):
    """The server flag defaults to the slot's current flag and can be overridden."""
    lineup = base_lineup()
    assert engine.is_valid_position(1, Point2D(x=0.5, y=0.5), lineup)
    assert not engine.is_valid_position(1, Point2D(x=0.5, y=0.5), lineup, is_server=False)


def test_is_valid_position_missing_neighbors(engine):
    """Only present neighbors constrain the move."""
    lineup = [p for p in base_lineup() if p.slot in (3, 4)]
    assert engine.is_valid_position(3, Point2D(x=8.5, y=8.5), lineup)
    assert not engine.is_valid_position(3, Point2D(x=1.0, y=3.0), lineup)


# ============================================================================
# Snapping
# ============================================================================

def test_snap_legal_candidate_unchanged(engine):
    candidate = Point2D(x=5.0, y=2.0)
    snapped = engine.snap_to_valid_position(3, candidate, base_lineup())
    assert snapped == candidate


def test_snap_clamps_violated_axis_only(engine):
    """Dragging Middle Front past Right Front pulls x back; y stays."""
    snapped = engine.snap_to_valid_position(3, Point2D(x=8.0, y=3.0), base_lineup())
    assert snapped.x == pytest.approx(7.0 - TOLERANCE)
    assert snapped.y == 3.0
    assert engine.is_valid_position(3, snapped, base_lineup())


def test_snap_is_idempotent(engine):
    lineup = base_lineup()
    for candidate in [Point2D(x=8.0, y=8.0), Point2D(x=0.2, y=7.5), Point2D(x=4.5, y=6.99)]:
        once = engine.snap_to_valid_position(3, candidate, lineup)
        twice = engine.snap_to_valid_position(3, once, lineup)
        assert once == twice
        assert engine.is_valid_position(3, once, lineup)


def test_snap_server_unconstrained(engine):
    candidate = Point2D(x=0.5, y=10.0)
    assert engine.snap_to_valid_position(1, candidate, base_lineup()) == candidate


def test_snap_non_finite_returns_candidate(engine):
    candidate = Point2D(x=math.nan, y=1.0)
    snapped = engine.snap_to_valid_position(3, candidate, base_lineup())
    assert snapped is candidate


# ============================================================================
# Explanations
# ============================================================================

def test_explain_row_violation(engine):
    lineup = move(base_lineup(), 3, x=2.0)
    lineup = move(lineup, 4, x=4.5)
    violation = engine.validate_lineup(lineup).violations[0]

    text = engine.explain_violation(violation, lineup)
    assert "Left Front p4 (slot 4) at (4.50, 3.00)" in text
    assert "must be to the left of" in text
    assert "Middle Front p3 (slot 3)" in text


def test_explain_server_violations(engine):
    lineup = base_lineup()
    nobody = Violation(code=ViolationCode.MULTIPLE_SERVERS, message="x", slots=[])
    assert "nobody is serving" in engine.explain_violation(nobody, lineup)

    two = Violation(code=ViolationCode.MULTIPLE_SERVERS, message="x", slots=[1, 2])
    text = engine.explain_violation(two, lineup)
    assert "Right Back p1 (slot 1)" in text
    assert "Right Front p2 (slot 2)" in text


def test_explain_falls_back_to_message(engine):
    violation = Violation(code=ViolationCode.INVALID_LINEUP, message="Invalid lineup")
    assert engine.explain_violation(violation, base_lineup()) == "Invalid lineup"
