"""
Shared fixtures: a scripted detector and helpers for building frames.
"""
import math
from typing import List, Optional

import numpy as np
import pytest

from app.core.config import PipelineConfig
from app.core.detection import BoundingBox, Detection, DetectionLabel
from app.core.geometry import BOARDPLANE_CALIBRATION_COORDS

CALIB_LABELS = [
    DetectionLabel.CALIB_1,
    DetectionLabel.CALIB_2,
    DetectionLabel.CALIB_3,
    DetectionLabel.CALIB_4,
]


class FakeDetector:
    """Returns whatever detections the test scripted for the next frame."""

    def __init__(self, detections: Optional[List[Detection]] = None, board_box: Optional[BoundingBox] = None):
        self.detections = detections or []
        self.board_box = board_box
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return list(self.detections)

    def locate_board(self, image):
        return self.board_box


def box_at(x: float, y: float, half: float = 0.01) -> BoundingBox:
    return BoundingBox(x - half, y - half, x + half, y + half)


def dart_at(x: float, y: float, confidence: float = 0.9) -> Detection:
    return Detection(box=box_at(x, y), confidence=confidence, label=DetectionLabel.DART)


def calibration_markers(count: int = 4, confidence: float = 0.9) -> List[Detection]:
    """Markers placed exactly on their canonical anchors (identity homography)."""
    return [
        Detection(
            box=box_at(*BOARDPLANE_CALIBRATION_COORDS[i], half=0.005),
            confidence=confidence,
            label=CALIB_LABELS[i]
        )
        for i in range(count)
    ]


def polar_point(radius: float, angle_deg: float):
    """Board-plane point at radius/angle from the center (angle measured from +x toward +y)."""
    return (
        0.5 + radius * math.cos(math.radians(angle_deg)),
        0.5 + radius * math.sin(math.radians(angle_deg)),
    )


# Board-plane points well inside known regions
TREBLE_RADIUS = 0.227
T15_POINT = polar_point(TREBLE_RADIUS, 36)     # 45 points
T20_POINT = (0.5, 0.5 - TREBLE_RADIUS)         # 60 points
MISS_POINT = (0.5, 0.95)                       # 0 points


@pytest.fixture
def frame():
    return np.zeros((800, 800, 3), dtype=np.uint8)


@pytest.fixture
def detector():
    return FakeDetector()


@pytest.fixture
def config():
    return PipelineConfig()
