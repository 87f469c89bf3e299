"""Canonical data models for the overlap engine."""

import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    LEFT_SIDELINE_X, RIGHT_SIDELINE_X, NET_Y, ENDLINE_Y, SERVICE_ZONE_END,
    SCREEN_WIDTH, SCREEN_HEIGHT
)


# Serving-order position 1-6
RotationSlot = Annotated[int, Field(ge=1, le=6)]

ALL_SLOTS = (1, 2, 3, 4, 5, 6)


# ============================================================================
# Enums
# ============================================================================

class ViolationCode(str, Enum):
    ROW_ORDER = "ROW_ORDER"                  # left/right order broken within a row
    FRONT_BACK = "FRONT_BACK"                # front player behind back counterpart
    MULTIPLE_SERVERS = "MULTIPLE_SERVERS"    # zero or several servers
    INVALID_LINEUP = "INVALID_LINEUP"        # wrong count, duplicate or missing slot
    CONVERSION_ERROR = "CONVERSION_ERROR"    # position could not be mapped
    VALIDATION_ERROR = "VALIDATION_ERROR"    # internal failure, degraded result


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# ============================================================================
# Geometry
# ============================================================================

class Point2D(BaseModel):
    """2D coordinate (meters in court space, pixels in screen space)."""
    x: float
    y: float


class CoordinateBounds(BaseModel):
    """Axis-aligned rectangle."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, x: float, y: float) -> bool:
        """Plain inclusive containment, no tolerance."""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


class PositionBounds(CoordinateBounds):
    """Legal rectangle for one player."""
    is_constrained: bool = False
    reasons: List[str] = Field(default_factory=list)


COURT_BOUNDS = CoordinateBounds(
    min_x=LEFT_SIDELINE_X, max_x=RIGHT_SIDELINE_X,
    min_y=NET_Y, max_y=ENDLINE_Y
)

EXTENDED_BOUNDS = CoordinateBounds(
    min_x=LEFT_SIDELINE_X, max_x=RIGHT_SIDELINE_X,
    min_y=NET_Y, max_y=SERVICE_ZONE_END
)


# ============================================================================
# Players
# ============================================================================

class PlayerState(BaseModel):
    """One player of a lineup, in court meters."""
    id: str
    slot: RotationSlot
    x: float
    y: float
    is_server: bool = False
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.id

    @property
    def has_finite_position(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


class ScreenPosition(BaseModel):
    """Player position as the UI stores it (pixels)."""
    x: float
    y: float
    is_custom: bool = False
    last_modified: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Validation results
# ============================================================================

class Violation(BaseModel):
    """A single rule breach and the slots jointly responsible for it."""
    code: ViolationCode
    message: str
    slots: List[RotationSlot] = Field(default_factory=list)
    coordinates: Optional[Dict[int, Point2D]] = None


class ValidationResult(BaseModel):
    """Outcome of a lineup validation."""
    is_legal: bool
    violations: List[Violation] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_consistency(self):
        """A legal result carries no violations."""
        if self.is_legal and self.violations:
            raise ValueError("Legal result cannot carry violations")
        return self

    def involves(self, slot: int) -> bool:
        """True if any violation names the slot."""
        return any(slot in v.slots for v in self.violations)


# ============================================================================
# Integration (screen-facing)
# ============================================================================

class CourtDimensions(BaseModel):
    """Rendered court size in pixels."""
    width: float = Field(default=SCREEN_WIDTH, gt=0.0)
    height: float = Field(default=SCREEN_HEIGHT, gt=0.0)

    @field_validator('width', 'height')
    @classmethod
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Court dimensions must be finite")
        return v

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


class RulesIntegrationConfig(BaseModel):
    """Configuration passed to the rules integration at construction."""
    court_dimensions: CourtDimensions = Field(default_factory=CourtDimensions)
    enable_real_time_validation: bool = True
    enable_constraint_boundaries: bool = True
    enable_position_snapping: bool = True
    server_slot: RotationSlot = 1


class ConstraintLine(BaseModel):
    """Guide line drawn while dragging (screen pixels)."""
    position: float
    type: Literal["min", "max"]
    reason: str


class ConstraintBoundaries(BaseModel):
    """Constraint rectangle converted for drawing and clamping."""
    horizontal_lines: List[ConstraintLine] = Field(default_factory=list)
    vertical_lines: List[ConstraintLine] = Field(default_factory=list)
    valid_area: Optional[CoordinateBounds] = None


class ViolationData(BaseModel):
    """Violation as displayed by the UI."""
    code: str
    message: str
    affected_players: List[str] = Field(default_factory=list)
    severity: Severity = Severity.WARNING


class ScreenValidationResult(BaseModel):
    """Validation result with screen coordinate context."""
    is_valid: bool
    violations: List[ViolationData] = Field(default_factory=list)
    constraint_boundaries: Optional[ConstraintBoundaries] = None
    snapped_position: Optional[ScreenPosition] = None


class PositionValidationContext(BaseModel):
    """Everything needed to validate one dragged player."""
    player_id: str
    slot: RotationSlot
    current_position: ScreenPosition
    all_positions: Dict[str, ScreenPosition]
    rotation_map: Dict[int, str]
    is_server: bool = False

    @field_validator('rotation_map')
    @classmethod
    def validate_rotation_slots(cls, v: Dict[int, str]) -> Dict[int, str]:
        """Rotation map keys must be rotation slots."""
        for slot in v:
            if slot not in ALL_SLOTS:
                raise ValueError(f"Rotation map has invalid slot {slot}")
        return v
