"""Conversion between UI formation data and engine player states."""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ..core.models import PlayerState, Point2D, ScreenPosition, CoordinateBounds
from .transform import CoordinateTransformer

logger = logging.getLogger("overlap_engine.state")


class StateConverter:
    """
    Builds engine PlayerStates from screen positions plus a rotation map,
    and converts engine points back to UI positions.
    """

    def __init__(self, transformer: Optional[CoordinateTransformer] = None):
        self.transformer = transformer or CoordinateTransformer()

    def formation_to_states(
        self,
        positions: Mapping[str, ScreenPosition],
        rotation_map: Mapping[int, str],
        server_slot: int = 1
    ) -> List[PlayerState]:
        """
        One PlayerState per slot in the rotation map, ordered by slot.

        Slots whose player has no screen position are omitted; the rules
        engine then reports the lineup as incomplete.
        """
        states = []
        for slot, player_id in sorted(rotation_map.items()):
            position = positions.get(player_id)
            if position is None:
                logger.debug(f"No position for player {player_id} in slot {slot}")
                continue

            court = self.transformer.screen_to_court(position.x, position.y)
            states.append(PlayerState(
                id=player_id,
                slot=slot,
                x=court.x,
                y=court.y,
                is_server=(slot == server_slot),
            ))
        return states

    def states_to_formation(self, states: Sequence[PlayerState]) -> Dict[str, ScreenPosition]:
        """Engine states back to UI positions keyed by player id."""
        return {
            state.id: self.court_to_player_position(Point2D(x=state.x, y=state.y))
            for state in states
        }

    def player_position_to_court(self, position: ScreenPosition) -> Point2D:
        return self.transformer.screen_to_court(position.x, position.y)

    def court_to_player_position(self, point: Point2D, is_custom: bool = True) -> ScreenPosition:
        screen = self.transformer.court_to_screen(point.x, point.y)
        return ScreenPosition(x=screen.x, y=screen.y, is_custom=is_custom)

    @staticmethod
    def create_rotation_map(states: Sequence[PlayerState]) -> Dict[int, str]:
        return {state.slot: state.id for state in states}

    @staticmethod
    def find_server_slot(states: Sequence[PlayerState]) -> int:
        """Slot of the serving player, 1 when nobody is serving."""
        server = next((s for s in states if s.is_server), None)
        return server.slot if server else 1

    def is_valid_coordinates(
        self,
        point: Point2D,
        in_court_space: bool = True,
        allow_service_zone: bool = False
    ) -> bool:
        if in_court_space:
            return self.transformer.is_valid_position(point.x, point.y, allow_service_zone)
        return self.transformer.is_within_bounds(point.x, point.y, self._screen_bounds())

    def normalize_coordinates(
        self,
        point: Point2D,
        in_court_space: bool = True,
        allow_service_zone: bool = False
    ) -> Point2D:
        if in_court_space:
            return self.transformer.normalize_coordinates(point.x, point.y, allow_service_zone)
        return self.transformer.clamp_to_bounds(point.x, point.y, self._screen_bounds())

    def _screen_bounds(self) -> CoordinateBounds:
        dims = self.transformer.dimensions
        return CoordinateBounds(min_x=0.0, max_x=dims.width, min_y=0.0, max_y=dims.height)
