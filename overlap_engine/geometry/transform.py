"""Screen <-> court coordinate conversion."""

import math
from typing import Dict, Optional

import numpy as np

from ..core.constants import (
    COURT_WIDTH, COURT_LENGTH, LEFT_SIDELINE_X, RIGHT_SIDELINE_X,
    SERVICE_ZONE_START, SERVICE_ZONE_END
)
from ..core.models import (
    Point2D, CoordinateBounds, CourtDimensions, COURT_BOUNDS, EXTENDED_BOUNDS
)
from ..core.tolerance import is_within_range
from ..core.validation import ConversionError


def _require_finite(x: float, y: float) -> None:
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ConversionError(f"Cannot convert non-finite position ({x}, {y})")


class CoordinateTransformer:
    """
    Linear mapping between the rendered court (pixels) and the court (meters).
    Screen top-left (0, 0) is the court's left sideline at the net.
    x+ toward the right sideline, y+ away from the net.
    """

    def __init__(self, dimensions: Optional[CourtDimensions] = None):
        self.dimensions = dimensions or CourtDimensions()
        # meters per pixel
        self.scale_x = COURT_WIDTH / self.dimensions.width
        self.scale_y = COURT_LENGTH / self.dimensions.height

    def screen_to_court(self, x: float, y: float) -> Point2D:
        """Pixels -> meters."""
        _require_finite(x, y)
        return Point2D(x=x * self.scale_x, y=y * self.scale_y)

    def court_to_screen(self, x: float, y: float) -> Point2D:
        """Meters -> pixels."""
        _require_finite(x, y)
        return Point2D(x=x / self.scale_x, y=y / self.scale_y)

    def scaling_factors(self) -> Dict[str, float]:
        return {"scale_x": self.scale_x, "scale_y": self.scale_y}

    def is_valid_position(self, x: float, y: float, allow_service_zone: bool = False) -> bool:
        """Inside the court (or the service zone when allowed), within tolerance."""
        bounds = EXTENDED_BOUNDS if allow_service_zone else COURT_BOUNDS
        return (is_within_range(x, bounds.min_x, bounds.max_x) and
                is_within_range(y, bounds.min_y, bounds.max_y))

    def is_in_service_zone(self, x: float, y: float) -> bool:
        return (is_within_range(x, LEFT_SIDELINE_X, RIGHT_SIDELINE_X) and
                is_within_range(y, SERVICE_ZONE_START, SERVICE_ZONE_END))

    def normalize_coordinates(self, x: float, y: float, allow_service_zone: bool = False) -> Point2D:
        """Clamp to the nearest legal boundary."""
        bounds = EXTENDED_BOUNDS if allow_service_zone else COURT_BOUNDS
        return self.clamp_to_bounds(x, y, bounds)

    def is_within_bounds(self, x: float, y: float, bounds: CoordinateBounds) -> bool:
        """Plain containment check, no tolerance."""
        return bounds.contains(x, y)

    def clamp_to_bounds(self, x: float, y: float, bounds: CoordinateBounds) -> Point2D:
        _require_finite(x, y)
        return Point2D(
            x=float(np.clip(x, bounds.min_x, bounds.max_x)),
            y=float(np.clip(y, bounds.min_y, bounds.max_y))
        )

    def calculate_distance(self, p1: Point2D, p2: Point2D) -> float:
        """Euclidean distance between two points."""
        dx = p2.x - p1.x
        dy = p2.y - p1.y
        return float(np.sqrt(dx*dx + dy*dy))

    def screen_bounds_to_court(self, bounds: CoordinateBounds) -> CoordinateBounds:
        top_left = self.screen_to_court(bounds.min_x, bounds.min_y)
        bottom_right = self.screen_to_court(bounds.max_x, bounds.max_y)
        return CoordinateBounds(
            min_x=top_left.x, max_x=bottom_right.x,
            min_y=top_left.y, max_y=bottom_right.y
        )

    def court_bounds_to_screen(self, bounds: CoordinateBounds) -> CoordinateBounds:
        top_left = self.court_to_screen(bounds.min_x, bounds.min_y)
        bottom_right = self.court_to_screen(bounds.max_x, bounds.max_y)
        return CoordinateBounds(
            min_x=top_left.x, max_x=bottom_right.x,
            min_y=top_left.y, max_y=bottom_right.y
        )
