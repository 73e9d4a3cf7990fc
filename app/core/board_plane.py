"""
Board-plane projection.

Maps normalized image points into normalized board-plane points through a
homography solved at a common reference pixel size.
"""
import logging
from typing import List, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


def project(
    H: np.ndarray,
    points: Sequence[Point],
    reference_size: Tuple[float, float]
) -> List[Point]:
    """
    Project normalized image points to normalized board-plane points.

    A point whose homogeneous divisor is zero is returned unchanged.
    """
    width, height = reference_size
    projected: List[Point] = []

    for x, y in points:
        vector = np.array([x * width, y * height, 1.0])
        px, py, pz = H @ vector

        if pz == 0:
            logger.warning(f"Degenerate projection for point ({x:.4f}, {y:.4f}), passing through")
            projected.append((x, y))
            continue

        projected.append((float(px / pz) / width, float(py / pz) / height))

    return projected


def invert(H: np.ndarray) -> np.ndarray:
    """Inverse homography, normalized so that H[2, 2] == 1 where possible."""
    H_inv = np.linalg.inv(H)
    if H_inv[2, 2] != 0:
        H_inv = H_inv / H_inv[2, 2]
    return H_inv
