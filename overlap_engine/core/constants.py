"""Court geometry constants shared by every engine component.

Court coordinate system (meters):
    x: 0 (left sideline) to 9 (right sideline)
    y: 0 (net) to 9 (endline); the service zone extends to 11
Origin at the intersection of the left sideline and the net.
"""

from dataclasses import dataclass


# ============================================================================
# Court (meters)
# ============================================================================

COURT_WIDTH = 9.0
COURT_LENGTH = 9.0

LEFT_SIDELINE_X = 0.0
RIGHT_SIDELINE_X = 9.0
NET_Y = 0.0
ENDLINE_Y = 9.0

SERVICE_ZONE_START = 9.0
SERVICE_ZONE_END = 11.0  # 2m behind the endline

# 3cm, absorbs floating-point and pixel rounding noise
TOLERANCE = 0.03


# ============================================================================
# Screen (pixels)
# ============================================================================

SCREEN_WIDTH = 600.0
SCREEN_HEIGHT = 360.0


# ============================================================================
# Orientation
# ============================================================================

@dataclass(frozen=True)
class CourtOrientation:
    """
    Direction convention used by every ordering rule.

    left_to_right: +1 when "left" means smaller x, -1 when it means larger x.
    net_to_endline: +1 when "front" means smaller y, -1 when it means larger y.
    """
    left_to_right: int = 1
    net_to_endline: int = 1

    def __post_init__(self):
        if self.left_to_right not in (1, -1) or self.net_to_endline not in (1, -1):
            raise ValueError("Orientation signs must be +1 or -1")


COURT_ORIENTATION = CourtOrientation()
