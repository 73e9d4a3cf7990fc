"""
Scoring module for dart detection.

Converts board-plane positions into dart labels and points using an
angular wedge lookup and the radial ring breakpoints.
"""
import math
import sys
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from app.core.geometry import (
    BOARD_CENTER,
    SCORING_NAMES,
    SCORING_RADII,
    SEGMENT_ANGLES,
    SEGMENT_NUMBERS,
    VERTICAL_ANGLE_DEG,
    VERTICAL_NUMBERS,
)

# Nudge applied to x on the vertical axis
AXIS_EPSILON = 0.00001


@dataclass(frozen=True)
class ScoredDart:
    label: str
    value: int


def truncated_angle(x: float, y: float) -> int:
    """Angle of (x, y) around the board center in whole degrees, rounded toward zero."""
    cx, cy = BOARD_CENTER
    if abs(x - cx) < sys.float_info.epsilon:
        x += AXIS_EPSILON

    angle = math.degrees(math.atan((y - cy) / (x - cx)))
    return math.floor(angle) if angle > 0 else math.ceil(angle)


def segment_candidates(angle: int) -> List[int]:
    """
    The two numbers sharing the wedge line at this angle.

    Picks the table entry with the largest breakpoint not above the angle.
    """
    if abs(angle) >= VERTICAL_ANGLE_DEG:
        return VERTICAL_NUMBERS

    best = None
    for index, breakpoint in enumerate(SEGMENT_ANGLES):
        if breakpoint <= angle and (best is None or breakpoint > SEGMENT_ANGLES[best]):
            best = index

    if best is None:
        return VERTICAL_NUMBERS
    return SEGMENT_NUMBERS[best]


def region_index(distance: float) -> int:
    """Highest radial breakpoint the distance still exceeds."""
    index = 0
    for i, radius in enumerate(SCORING_RADII):
        if distance > radius:
            index = i
    return index


class ScoringSystem:
    """
    Calculate dart scores from positions in board-plane coordinates.
    """

    def classify(self, point: Tuple[float, float]) -> ScoredDart:
        """
        Score a single board-plane point.

        Args:
            point: (x, y) in normalized board-plane space, center (0.5, 0.5)

        Returns:
            ScoredDart with label ("T20", "DB", "miss", ...) and value
        """
        x, y = point
        cx, cy = BOARD_CENTER

        candidates = segment_candidates(truncated_angle(x, y))
        coord, center = (x, cx) if candidates == [6, 11] else (y, cy)
        number = candidates[0] if coord > center else candidates[1]

        distance = math.sqrt((x - cx) ** 2 + (y - cy) ** 2)
        region = SCORING_NAMES[region_index(distance)]

        if region == "DB":
            return ScoredDart("DB", 50)
        if region == "SB":
            return ScoredDart("SB", 25)
        if region == "S":
            return ScoredDart(f"S{number}", number)
        if region == "T":
            return ScoredDart(f"T{number}", number * 3)
        if region == "D":
            return ScoredDart(f"D{number}", number * 2)
        return ScoredDart("miss", 0)

    def classify_all(self, points: Sequence[Tuple[float, float]]) -> Tuple[List[str], int]:
        """Labels for every point and the summed value."""
        scored = [self.classify(p) for p in points]
        return [s.label for s in scored], sum(s.value for s in scored)


# Global instance
scoring_system = ScoringSystem()
