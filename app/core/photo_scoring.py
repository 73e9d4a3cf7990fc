"""
Single-photo scoring.

Scores every dart in one still image: board crop, detection, homography
(with the estimator's saved-marker fallback), board-plane projection and
classification. No tracking, throttling or game state is involved.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from app.core.board_plane import project
from app.core.calibration import CalibrationEstimator
from app.core.config import PipelineConfig
from app.core.detection import (
    DartDetector,
    calibration_points,
    crop_to_board,
    dart_detections,
    filter_by_confidence,
)
from app.core.scoring import scoring_system

logger = logging.getLogger(__name__)


@dataclass
class PhotoScore:
    image: np.ndarray
    labels: List[str] = field(default_factory=list)
    total: Optional[int] = None
    dart_count: int = 0
    calibration_points: int = 0

    @property
    def scored(self) -> bool:
        return self.total is not None


def score_photo(
    detector: DartDetector,
    image: np.ndarray,
    config: Optional[PipelineConfig] = None,
    estimator: Optional[CalibrationEstimator] = None
) -> PhotoScore:
    """
    Score one still image.

    Args:
        detector: Detector used for the board crop and the darts/markers
        image: BGR photo
        config: Pipeline settings (confidence floor, reference size)
        estimator: Estimator whose saved markers are reused when fewer than
            four are visible; a fresh one is used when omitted

    Returns:
        PhotoScore; total is None when no homography could be solved
    """
    config = config or PipelineConfig()
    estimator = estimator or CalibrationEstimator(min_points=config.min_homography_points)

    board_image = crop_to_board(image, detector.locate_board(image), config.reference_size)
    height, width = board_image.shape[:2]

    detections = filter_by_confidence(detector.detect(board_image), config.confidence_floor)
    darts = dart_detections(detections)
    live_points = calibration_points(detections)

    result = PhotoScore(
        image=board_image,
        dart_count=len(darts),
        calibration_points=len(live_points)
    )

    H = estimator.estimate(live_points, (width, height))
    if H is None:
        logger.warning("Homography unavailable, skipping score for this photo")
        return result

    transformed = project(H, [d.box.center for d in darts], (width, height))
    result.labels, result.total = scoring_system.classify_all(transformed)
    logger.info(f"Photo labels: {result.labels}, total score: {result.total}")
    return result
