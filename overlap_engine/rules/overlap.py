"""
Overlap rules for a six-player rotation.

Enforces the positional order that must hold at the moment of serve:
- Front row left to right: 4 (LF) < 3 (MF) < 2 (RF)
- Back row left to right: 5 (LB) < 6 (MB) < 1 (RB)
- Each front player nearer the net than the back player of the same column
- The server is exempt from every pair that involves them
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.constants import TOLERANCE, COURT_ORIENTATION, CourtOrientation
from ..core.models import (
    PlayerState, Point2D, Violation, ViolationCode, ValidationResult
)
from ..core import neighbors
from ..core.tolerance import is_left_of, is_in_front_of
from ..core.validation import check_lineup_shape, create_slot_map
from .constraints import calculate_valid_bounds, half_planes

logger = logging.getLogger("overlap_engine.rules")


class RulesEngine:
    """Validates lineups and single-player moves against the overlap rules."""

    def __init__(
        self,
        epsilon: float = TOLERANCE,
        orientation: CourtOrientation = COURT_ORIENTATION
    ):
        self.epsilon = epsilon
        self.orientation = orientation

    # ------------------------------------------------------------------
    # Lineup validation
    # ------------------------------------------------------------------

    def validate_lineup(self, states: Sequence[PlayerState]) -> ValidationResult:
        """
        Check every ordering pair of a six-player lineup.

        Shape problems (count, duplicate or missing slots, server count,
        unreadable coordinates) are returned as lineup-level violations and
        ordering is not checked. Never raises.
        """
        try:
            shape = check_lineup_shape(states)
            if shape:
                logger.debug(f"Lineup shape invalid: {[v.code.value for v in shape]}")
                return ValidationResult(is_legal=False, violations=shape)

            slot_map = create_slot_map(states)
            violations = self._check_pairs(
                slot_map, neighbors.ROW_PAIRS, neighbors.COLUMNS
            )
            return ValidationResult(is_legal=not violations, violations=violations)
        except Exception as e:
            logger.warning(f"Lineup validation failed: {e}")
            return ValidationResult(
                is_legal=False,
                violations=[Violation(
                    code=ViolationCode.VALIDATION_ERROR,
                    message="Unable to validate lineup due to internal error",
                )]
            )

    def _check_pairs(
        self,
        slot_map: Mapping[int, PlayerState],
        row_pairs: Sequence[Tuple[int, int]],
        column_pairs: Sequence[Tuple[int, int]]
    ) -> List[Violation]:
        violations = []

        for left_slot, right_slot in row_pairs:
            left, right = slot_map.get(left_slot), slot_map.get(right_slot)
            if left is None or right is None or left.is_server or right.is_server:
                continue
            if not is_left_of(left.x, right.x, self.epsilon, self.orientation):
                row = neighbors.row_name(left_slot)
                violations.append(Violation(
                    code=ViolationCode.ROW_ORDER,
                    slots=[left_slot, right_slot],
                    message=(
                        f"{row} row order violation: "
                        f"{neighbors.slot_label(left_slot)} ({left.name}) must be to the "
                        f"left of {neighbors.slot_label(right_slot)} ({right.name})"
                    ),
                    coordinates=_coordinates(left, right),
                ))

        for front_slot, back_slot in column_pairs:
            front, back = slot_map.get(front_slot), slot_map.get(back_slot)
            if front is None or back is None or front.is_server or back.is_server:
                continue
            if not is_in_front_of(front.y, back.y, self.epsilon, self.orientation):
                column = neighbors.column_name(front_slot)
                violations.append(Violation(
                    code=ViolationCode.FRONT_BACK,
                    slots=[front_slot, back_slot],
                    message=(
                        f"Front/back order violation: {column} Front ({front.name}) "
                        f"must be in front of {column} Back ({back.name})"
                    ),
                    coordinates=_coordinates(front, back),
                ))

        return violations

    # ------------------------------------------------------------------
    # Single-player queries
    # ------------------------------------------------------------------

    def _substitute(
        self,
        slot: int,
        candidate: Point2D,
        other_states: Sequence[PlayerState],
        is_server: Optional[bool]
    ) -> Tuple[Dict[int, PlayerState], PlayerState]:
        """Slot map with `slot` moved to the candidate position."""
        slot_map = {
            s: p for s, p in create_slot_map(other_states).items()
            if p.has_finite_position or s == slot
        }
        current = slot_map.pop(slot, None)
        if is_server is None:
            is_server = current.is_server if current is not None else False

        moved = PlayerState(
            id=current.id if current is not None else f"slot{slot}",
            slot=slot,
            x=candidate.x,
            y=candidate.y,
            is_server=is_server,
            display_name=current.display_name if current is not None else None,
        )
        return slot_map, moved

    def is_valid_position(
        self,
        slot: int,
        candidate: Point2D,
        other_states: Sequence[PlayerState],
        is_server: Optional[bool] = None
    ) -> bool:
        """
        Would `slot` standing at `candidate` keep every pair it belongs to?
        Missing neighbors are ignored. `is_server` defaults to the slot's
        current flag in `other_states`.
        """
        if not (math.isfinite(candidate.x) and math.isfinite(candidate.y)):
            return False

        slot_map, moved = self._substitute(slot, candidate, other_states, is_server)
        slot_map[slot] = moved

        row_pairs = [pair for pair in neighbors.ROW_PAIRS if slot in pair]
        column_pairs = [pair for pair in neighbors.COLUMNS if slot in pair]
        return not self._check_pairs(slot_map, row_pairs, column_pairs)

    def snap_to_valid_position(
        self,
        slot: int,
        candidate: Point2D,
        other_states: Sequence[PlayerState],
        is_server: Optional[bool] = None
    ) -> Point2D:
        """
        Nearest legal position, axis by axis.

        Each violated neighbor constraint clamps its own axis onto the
        constraint rectangle edge; an axis with no violation keeps the
        candidate's value. Legal candidates come back unchanged. On error
        the candidate is returned as is.
        """
        try:
            if not (math.isfinite(candidate.x) and math.isfinite(candidate.y)):
                return candidate

            slot_map, moved = self._substitute(slot, candidate, other_states, is_server)
            planes = half_planes(slot, slot_map, moved.is_server, self.epsilon, self.orientation)
            bounds = calculate_valid_bounds(
                slot, slot_map, moved.is_server, self.epsilon, self.orientation
            )

            x, y = candidate.x, candidate.y
            if any(not p.is_satisfied(x) for p in planes if p.axis == "x"):
                x = min(max(x, bounds.min_x), bounds.max_x)
            if any(not p.is_satisfied(y) for p in planes if p.axis == "y"):
                y = min(max(y, bounds.min_y), bounds.max_y)

            if (x, y) != (candidate.x, candidate.y):
                logger.debug(f"Snapped slot {slot} from ({candidate.x:.3f}, {candidate.y:.3f}) "
                             f"to ({x:.3f}, {y:.3f})")
            return Point2D(x=x, y=y)
        except Exception as e:
            logger.warning(f"Snapping slot {slot} failed: {e}")
            return candidate

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def explain_violation(self, violation: Violation, states: Sequence[PlayerState]) -> str:
        """Detailed, human-readable description of a violation."""
        slot_map = create_slot_map(states)

        def describe(slot: int) -> str:
            player = slot_map.get(slot)
            label = neighbors.slot_label(slot)
            if player is None:
                return f"{label} (slot {slot})"
            text = f"{label} {player.name} (slot {slot})"
            if violation.coordinates and slot in violation.coordinates:
                point = violation.coordinates[slot]
                text += f" at ({point.x:.2f}, {point.y:.2f})"
            return text

        if violation.code == ViolationCode.ROW_ORDER and len(violation.slots) == 2:
            first, second = violation.slots
            return f"{describe(first)} must be to the left of {describe(second)}"

        if violation.code == ViolationCode.FRONT_BACK and len(violation.slots) == 2:
            front, back = violation.slots
            return f"{describe(front)} must be in front of {describe(back)}"

        if violation.code == ViolationCode.MULTIPLE_SERVERS:
            if not violation.slots:
                return "Exactly one player must be the server. Currently nobody is serving"
            serving = ", ".join(describe(s) for s in violation.slots)
            return f"Only one player can be the server. Currently serving: {serving}"

        return violation.message


def _coordinates(a: PlayerState, b: PlayerState) -> Dict[int, Point2D]:
    return {
        a.slot: Point2D(x=a.x, y=a.y),
        b.slot: Point2D(x=b.x, y=b.y),
    }
