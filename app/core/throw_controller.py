"""
Throw Lifecycle Controller

Frame-driven state machine for one session. Each eligible frame runs, in
order: board crop -> detection -> tracker merge -> calibration check ->
homography -> board-plane projection -> scoring -> game update.

Frames are dropped while a finalized throw is cooling down (the player is
retrieving darts) and while frames arrive faster than the detection
interval. Neither drop is an error.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from app.core.board_plane import project
from app.core.calibration import CalibrationEstimator
from app.core.config import PipelineConfig
from app.core.dart_tracker import DartTracker
from app.core.detection import (
    DartDetector,
    calibration_points,
    crop_to_board,
    dart_detections,
    filter_by_confidence,
)
from app.core.game import GameState, ThrowOutcome
from app.core.notifier import ScoreNotifier
from app.core.scoring import scoring_system

logger = logging.getLogger(__name__)

HOMOGRAPHY_FAILED_TEXT = "Error: Homography failed"


class ThrowState(str, Enum):
    IDLE = "idle"
    DETECTION_THROTTLED = "detection_throttled"
    AWAITING_SETTLE = "awaiting_settle"
    FINALIZING = "finalizing"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


@dataclass
class FrameUpdate:
    """Result of processing (or dropping) one frame."""
    state: ThrowState
    score_text: str
    image: Optional[np.ndarray] = None
    labels: List[str] = field(default_factory=list)
    total: Optional[int] = None
    outcome: Optional[ThrowOutcome] = None
    dropped: bool = False


class ThrowLifecycleController:
    """
    Owns the tracked darts, the calibration cache and the game state of one
    session. Must be driven from a single thread of control.
    """

    def __init__(
        self,
        detector: DartDetector,
        config: Optional[PipelineConfig] = None,
        notifier: Optional[ScoreNotifier] = None
    ):
        self.detector = detector
        self.config = config or PipelineConfig()
        self.notifier = notifier

        self.tracker = DartTracker(iou_threshold=self.config.iou_threshold)
        self.estimator = CalibrationEstimator(min_points=self.config.min_homography_points)
        self.game = GameState()

        self.state = ThrowState.STOPPED
        self.running = False
        self.last_score_text = ""
        self._last_detection_time: Optional[float] = None
        self._last_finalized_time: Optional[float] = None

    # === Session management ===

    def start_session(self) -> None:
        if self.running:
            logger.warning("Session already running")
            return
        self.running = True
        self.state = ThrowState.IDLE
        if self.game.is_game and not self.last_score_text:
            self.last_score_text = self.game.new_game(self.game.mode)
        logger.info("Session started")

    def stop_session(self) -> None:
        """Discard tracked darts, calibration cache, timers and throw history."""
        self.running = False
        self.state = ThrowState.STOPPED
        self.tracker.reset()
        self.estimator.reset()
        self.game.clear_history()
        self.last_score_text = ""
        self._last_detection_time = None
        self._last_finalized_time = None
        logger.info("Session stopped")

    def restart_session(self) -> None:
        if not self.running:
            self.start_session()

    def set_game_mode(self, start_score: Optional[int]) -> str:
        """Start a new game from start_score, or free play when None."""
        self.last_score_text = self.game.new_game(start_score)
        self.tracker.reset()
        return self.last_score_text

    # === Frame processing ===

    def process_frame(self, image: np.ndarray, now: Optional[float] = None) -> FrameUpdate:
        """
        Run one frame through the pipeline.

        Args:
            image: BGR frame
            now: Monotonic timestamp in seconds (defaults to time.monotonic())
        """
        if now is None:
            now = time.monotonic()

        if not self.running:
            return FrameUpdate(ThrowState.STOPPED, self.last_score_text, image, dropped=True)

        if self._last_finalized_time is not None and now - self._last_finalized_time < self.config.throw_delay:
            self.state = ThrowState.COOLDOWN
            logger.debug("Frame dropped: cooldown after finalized throw")
            return FrameUpdate(ThrowState.COOLDOWN, self.last_score_text, image, dropped=True)

        if self._last_detection_time is not None and now - self._last_detection_time < self.config.detection_interval:
            self.state = ThrowState.DETECTION_THROTTLED
            logger.debug("Frame dropped: detection interval")
            return FrameUpdate(ThrowState.DETECTION_THROTTLED, self.last_score_text, image, dropped=True)

        self._last_detection_time = now

        # 1) Crop to the board
        board_box = self.detector.locate_board(image)
        board_image = crop_to_board(image, board_box, self.config.reference_size)
        height, width = board_image.shape[:2]

        # 2) Detection
        detections = filter_by_confidence(self.detector.detect(board_image), self.config.confidence_floor)

        # 3) Tracking
        self.tracker.merge(dart_detections(detections))

        # 4) Calibration check
        live_points = calibration_points(detections)
        if not self._ready_to_finalize(len(live_points)):
            if self.config.finalize_on_occlusion:
                # Markers are visible: refresh the cache used once they are covered
                self.estimator.estimate(live_points, (width, height))
            self.state = ThrowState.AWAITING_SETTLE
            logger.debug(f"Awaiting settle: {len(live_points)} live calibration points")
            return self._emit(FrameUpdate(ThrowState.AWAITING_SETTLE, self.last_score_text, board_image))

        # 5) Finalize
        self.state = ThrowState.FINALIZING
        return self._finalize(board_image, live_points, (width, height), now)

    def _ready_to_finalize(self, live_count: int) -> bool:
        enough = live_count >= self.config.min_live_calibration_points
        if self.config.finalize_on_occlusion:
            return not enough
        return enough

    def _finalize(self, board_image: np.ndarray, live_points, reference_size, now: float) -> FrameUpdate:
        H = self.estimator.estimate(live_points, reference_size)
        if H is None:
            # Tracked darts are kept for the next eligible frame
            self.state = ThrowState.IDLE
            logger.warning("Homography unavailable, skipping score for this frame")
            return self._emit(FrameUpdate(ThrowState.IDLE, HOMOGRAPHY_FAILED_TEXT, board_image))

        top_darts = self.tracker.top_darts(self.config.max_darts_per_throw)
        transformed = project(H, [d.center for d in top_darts], reference_size)
        labels, total = scoring_system.classify_all(transformed)
        logger.info(f"Dart labels: {labels}, total score: {total}")

        outcome = self.game.apply_throw(labels, total)
        score_text = self.game.score_text(outcome, labels, total)

        self.tracker.reset()
        self._last_finalized_time = now
        self.last_score_text = score_text
        self.state = ThrowState.COOLDOWN

        return self._emit(FrameUpdate(
            state=ThrowState.COOLDOWN,
            score_text=score_text,
            image=board_image,
            labels=labels,
            total=total,
            outcome=outcome
        ))

    def _emit(self, update: FrameUpdate) -> FrameUpdate:
        if self.notifier is not None:
            self.notifier.publish(update.image, update.score_text)
        return update

    def get_state(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "state": self.state.value,
            "score_text": self.last_score_text,
            "tracked_darts": self.tracker.get_state(),
            "has_calibration_cache": self.estimator.has_cache,
            "game": self.game.get_state(),
        }
