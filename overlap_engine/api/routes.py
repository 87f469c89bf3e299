"""API route handlers."""

import logging
from fastapi import APIRouter, HTTPException, status

from . import schemas
from ..core.models import PositionValidationContext, ScreenValidationResult, ScreenPosition
from ..core.presets import base_lineup
from ..integration import RulesIntegration

logger = logging.getLogger("overlap_engine.api")

router = APIRouter()

# One integration per process; drag sessions share its caches
integration = RulesIntegration()


def _context(request: schemas.PlayerMoveRequest) -> PositionValidationContext:
    """Build a validation context, defaulting to the player's stored position."""
    current = request.current_position or request.positions.get(request.player_id)
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No position for player {request.player_id}"
        )
    if request.rotation_map.get(request.slot) != request.player_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Player {request.player_id} is not in slot {request.slot}"
        )
    return PositionValidationContext(
        player_id=request.player_id,
        slot=request.slot,
        current_position=current,
        all_positions=request.positions,
        rotation_map=request.rotation_map,
        is_server=request.is_server,
    )


# ============================================================================
# Health
# ============================================================================

@router.get("/health", response_model=schemas.HealthResponse)
async def health_check():
    """Health check endpoint."""
    return schemas.HealthResponse(ok=True, version="0.1.0")


# ============================================================================
# Lineup
# ============================================================================

@router.get("/lineup/base", response_model=schemas.BaseLineupResponse)
async def get_base_lineup():
    """Canonical base lineup in screen pixels."""
    states = base_lineup()
    return schemas.BaseLineupResponse(
        positions=integration.converter.states_to_formation(states),
        rotation_map=integration.converter.create_rotation_map(states),
        server_slot=integration.converter.find_server_slot(states),
    )


@router.post("/lineup/validate", response_model=ScreenValidationResult)
async def validate_lineup(request: schemas.LineupRequest):
    """Validate a full lineup."""
    return integration.validate_lineup(
        request.positions, request.rotation_map, request.server_slot
    )


@router.post("/lineup/position", response_model=ScreenValidationResult)
async def validate_position(request: schemas.PlayerMoveRequest):
    """Validate one dragged player."""
    return integration.validate_player_position(_context(request))


@router.post("/lineup/constraints", response_model=schemas.ConstraintsResponse)
async def get_constraints(request: schemas.PlayerMoveRequest):
    """Constraint guide lines and drag rectangle for one player."""
    context = _context(request)
    boundaries = integration.calculate_constraint_boundaries(context)
    return schemas.ConstraintsResponse(
        boundaries=boundaries,
        drag_area=boundaries.valid_area,
    )


@router.post("/lineup/snap", response_model=ScreenPosition)
async def snap_position(request: schemas.PlayerMoveRequest):
    """Snap a dropped player to the nearest legal position."""
    return integration.snap_to_valid_position(_context(request))


# ============================================================================
# Cache
# ============================================================================

@router.get("/metrics", response_model=schemas.MetricsResponse)
async def get_metrics():
    """Cache and calculator metrics."""
    return schemas.MetricsResponse(metrics=integration.performance_metrics())


@router.post("/cache/clear", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache():
    """Drop every cached result."""
    integration.clear_cache()
    logger.info("Caches cleared via API")
