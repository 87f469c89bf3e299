"""API request/response schemas."""

from typing import Dict, Optional, Any
from pydantic import BaseModel, Field, field_validator

from ..core.models import (
    ALL_SLOTS, CoordinateBounds, ConstraintBoundaries, RotationSlot, ScreenPosition
)


# ============================================================================
# Health
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = True
    version: str = "0.1.0"


# ============================================================================
# Lineup
# ============================================================================

class LineupRequest(BaseModel):
    """Full lineup in screen pixels."""
    positions: Dict[str, ScreenPosition]
    rotation_map: Dict[int, str] = Field(min_length=1)
    server_slot: Optional[RotationSlot] = None

    @field_validator('rotation_map')
    @classmethod
    def validate_rotation_slots(cls, v: Dict[int, str]) -> Dict[int, str]:
        for slot in v:
            if slot not in ALL_SLOTS:
                raise ValueError(f"Rotation map has invalid slot {slot}")
        return v


class PlayerMoveRequest(LineupRequest):
    """One player dragged to `current_position`."""
    player_id: str
    slot: RotationSlot
    current_position: Optional[ScreenPosition] = None
    is_server: bool = False


class ConstraintsResponse(BaseModel):
    """Constraint guide lines plus the drag clamp rectangle."""
    boundaries: ConstraintBoundaries
    drag_area: Optional[CoordinateBounds] = None


class BaseLineupResponse(BaseModel):
    """Canonical base lineup in screen pixels."""
    positions: Dict[str, ScreenPosition]
    rotation_map: Dict[int, str]
    server_slot: int = 1


class MetricsResponse(BaseModel):
    """Cache and calculator counters."""
    metrics: Dict[str, Any]
