"""Canonical base lineup (court meters)."""

from typing import Dict, List, Optional

from .models import PlayerState, Point2D

BASE_POSITIONS: Dict[int, Point2D] = {
    1: Point2D(x=7.0, y=7.0),
    2: Point2D(x=7.0, y=3.0),
    3: Point2D(x=4.5, y=3.0),
    4: Point2D(x=2.0, y=3.0),
    5: Point2D(x=2.0, y=7.0),
    6: Point2D(x=4.5, y=7.0),
}


def base_lineup(
    player_ids: Optional[Dict[int, str]] = None,
    server_slot: int = 1
) -> List[PlayerState]:
    """
    Six players on their base positions, ordered by slot.
    Player ids default to "p1".."p6".
    """
    player_ids = player_ids or {}
    return [
        PlayerState(
            id=player_ids.get(slot, f"p{slot}"),
            slot=slot,
            x=point.x,
            y=point.y,
            is_server=(slot == server_slot),
        )
        for slot, point in sorted(BASE_POSITIONS.items())
    ]
