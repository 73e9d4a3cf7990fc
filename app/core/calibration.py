"""
Dartboard Calibration Module

Solves the homography from detected calibration markers (image space) to
the canonical board-plane anchors.

Only four of the six anchors carry a detectable marker. When fewer than four
usable markers are visible in a frame, the last good marker set is reused.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from app.core.detection import CalibrationSet
from app.core.geometry import BOARDPLANE_CALIBRATION_COORDS

logger = logging.getLogger(__name__)

MIN_HOMOGRAPHY_POINTS = 4

Point = Tuple[float, float]


def valid_points(points: CalibrationSet) -> CalibrationSet:
    """Calibration points whose coordinates lie within [0, 1]."""
    return {
        index: (x, y)
        for index, (x, y) in points.items()
        if 0.0 <= x <= 1.0 and 0.0 <= y <= 1.0
    }


def find_homography(src: Sequence[Point], dst: Sequence[Point]) -> Optional[np.ndarray]:
    """
    3x3 projective transform mapping src onto dst.

    Exact for four pairs, least squares over all pairs for more.
    Returns None for fewer than four pairs or a degenerate configuration.
    """
    if len(src) != len(dst) or len(src) < MIN_HOMOGRAPHY_POINTS:
        return None

    src_pts = np.asarray(src, dtype=np.float64).reshape(-1, 1, 2)
    dst_pts = np.asarray(dst, dtype=np.float64).reshape(-1, 1, 2)

    H, _ = cv2.findHomography(src_pts, dst_pts, 0)
    if H is None or H.shape != (3, 3) or not np.all(np.isfinite(H)):
        return None
    return H


class CalibrationEstimator:
    """
    Homography estimation with a last-known-good marker cache.

    The cache is owned by a single session and lives for the process only.
    """

    def __init__(
        self,
        anchors: Optional[List[Point]] = None,
        min_points: int = MIN_HOMOGRAPHY_POINTS
    ):
        self.anchors = list(anchors or BOARDPLANE_CALIBRATION_COORDS)
        self.min_points = min_points
        self._cached_points: CalibrationSet = {}

    @property
    def cached_points(self) -> CalibrationSet:
        return dict(self._cached_points)

    @property
    def has_cache(self) -> bool:
        return len(self._cached_points) >= self.min_points

    def reset(self) -> None:
        self._cached_points = {}

    def estimate(
        self,
        detected: CalibrationSet,
        reference_size: Tuple[float, float]
    ) -> Optional[np.ndarray]:
        """
        Homography for this frame, or None when calibration is insufficient.

        Args:
            detected: Live marker positions keyed by anchor index
            reference_size: (width, height) both point sets are scaled to

        Returns:
            3x3 homography mapping reference-size image pixels to
            reference-size board-plane pixels
        """
        fresh = valid_points(detected)

        if len(fresh) >= self.min_points:
            points = fresh
        else:
            if self._cached_points:
                logger.info(
                    f"Only {len(fresh)} calibration points detected, using stored calibration points"
                )
            points = valid_points(self._cached_points)

        if len(points) < self.min_points:
            logger.warning(f"Not enough valid calibration points: {len(points)}")
            return None

        width, height = reference_size
        indices = sorted(i for i in points if 0 <= i < len(self.anchors))
        src = [(points[i][0] * width, points[i][1] * height) for i in indices]
        dst = [(self.anchors[i][0] * width, self.anchors[i][1] * height) for i in indices]

        H = find_homography(src, dst)
        if H is None:
            logger.warning("Homography computation failed")
            return None

        if points is fresh:
            self._cached_points = dict(fresh)

        return H
