"""
Dartboard Geometry Constants

Standard dartboard dimensions in millimeters, normalized into board-plane
space (board diameter = 1.0, center at (0.5, 0.5)).

The canonical calibration anchors are the six board-plane points the
calibration markers are mapped onto when solving the homography.
"""
import math
from typing import List, Tuple

# Ring and wire widths
RING_WIDTH_MM = 10.0            # Width of the double and treble rings
BULLSEYE_WIRE_MM = 1.6          # Width of the bullseye wires

# Radii in millimeters (standard dartboard)
BULL_RADIUS_MM = 6.35           # Inner bull (50 points)
OUTER_BULL_RADIUS_MM = 15.9     # Outer bull (25 points)
TRIPLE_OUTER_RADIUS_MM = 107.4  # Outer edge of triple ring
DOUBLE_OUTER_RADIUS_MM = 170.0  # Outer edge of double ring (board edge)

# Board diameter used for normalization (includes the number ring)
DARTBOARD_DIAMETER_MM = 451.0

# Board-plane center
BOARD_CENTER: Tuple[float, float] = (0.5, 0.5)

# Region names in increasing radius
SCORING_NAMES: List[str] = ["DB", "SB", "S", "T", "S", "D", "miss"]


def compute_scoring_radii() -> List[float]:
    """
    Radial breakpoints of the scoring regions, normalized by board diameter.

    The two bull radii are widened by half a bullseye wire.
    """
    raw = [
        0.0,
        BULL_RADIUS_MM,
        OUTER_BULL_RADIUS_MM,
        TRIPLE_OUTER_RADIUS_MM - RING_WIDTH_MM,
        TRIPLE_OUTER_RADIUS_MM,
        DOUBLE_OUTER_RADIUS_MM - RING_WIDTH_MM,
        DOUBLE_OUTER_RADIUS_MM,
    ]
    radii = []
    for index, value in enumerate(raw):
        if index in (1, 2):
            value += BULLSEYE_WIRE_MM / 2.0
        radii.append(value / DARTBOARD_DIAMETER_MM)
    return radii


SCORING_RADII: List[float] = compute_scoring_radii()

# Angular breakpoints (degrees) and the two numbers that share each wedge line.
# The sign of y (or of x for 6/11) picks which of the two applies.
SEGMENT_ANGLES: List[int] = [-9, 9, 27, 45, 63, -81, -63, -45, -27]
SEGMENT_NUMBERS: List[List[int]] = [
    [6, 11],
    [10, 14],
    [15, 9],
    [2, 12],
    [17, 5],
    [19, 1],
    [7, 18],
    [16, 4],
    [8, 13],
]

# Numbers straddling the vertical axis
VERTICAL_NUMBERS: List[int] = [3, 20]
VERTICAL_ANGLE_DEG = 81


def _anchor_pair(radius: float, angle_deg: float) -> Tuple[float, float]:
    """Horizontal and vertical offsets of a point on the outer ring."""
    offset = radius * math.cos(math.radians(angle_deg))
    orthogonal = math.sqrt(max(0.0, radius * radius - offset * offset))
    return offset, orthogonal


def compute_boardplane_calibration_coords() -> List[Tuple[float, float]]:
    """
    Six canonical anchors on the outer double wire.

    Index order: 20/3 boundary (0, 1), 11/6 boundary (2, 3), 9/15 boundary (4, 5).
    """
    h = SCORING_RADII[-1]
    cx, cy = BOARD_CENTER

    a1, o1 = _anchor_pair(h, 81)
    a2, o2 = _anchor_pair(h, -9)
    a3, o3 = _anchor_pair(h, 27)

    return [
        (cx - a1, cy - o1),
        (cx + a1, cy + o1),
        (cx - a2, cy + o2),
        (cx + a2, cy - o2),
        (cx - a3, cy - o3),
        (cx + a3, cy + o3),
    ]


BOARDPLANE_CALIBRATION_COORDS: List[Tuple[float, float]] = compute_boardplane_calibration_coords()
