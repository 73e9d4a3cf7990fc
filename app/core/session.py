"""
Scoring sessions.

A DartSession pairs a ThrowLifecycleController with one dedicated worker
thread; every frame and every session command runs on that worker, so the
tracked darts, calibration cache and game state are only ever touched by
one thread.

Supports multiple independent sessions via SessionManager.
"""
import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from app.core.calibration import CalibrationEstimator
from app.core.config import PipelineConfig
from app.core.detection import DartDetector
from app.core.notifier import ScoreNotifier, WebhookNotifier
from app.core.photo_scoring import PhotoScore, score_photo
from app.core.throw_controller import FrameUpdate, ThrowLifecycleController

logger = logging.getLogger(__name__)


class DartSession:
    """One board, one worker, one game."""

    def __init__(
        self,
        session_id: str,
        detector: DartDetector,
        config: Optional[PipelineConfig] = None
    ):
        self.session_id = session_id
        self.config = config or PipelineConfig()
        self.notifier = ScoreNotifier()
        self.controller = ThrowLifecycleController(detector, self.config, self.notifier)
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"session-{session_id}")
        self._webhook: Optional[WebhookNotifier] = None
        self.created_at = time.time()
        self.last_activity = time.time()

        if self.config.score_webhook_url:
            self._webhook = WebhookNotifier(self.config.score_webhook_url, session_id)
            self.notifier.add_listener(self._webhook)

    def _submit(self, func: Callable, *args) -> Future:
        self.last_activity = time.time()
        return self._worker.submit(func, *args)

    def submit_frame(self, image: np.ndarray, now: Optional[float] = None) -> "Future[FrameUpdate]":
        """Queue a frame for processing on the session worker."""
        return self._submit(self.controller.process_frame, image, now)

    def process_frame(self, image: np.ndarray, now: Optional[float] = None) -> FrameUpdate:
        return self.submit_frame(image, now).result()

    def start(self) -> None:
        self._submit(self.controller.start_session).result()

    def stop(self) -> None:
        self._submit(self.controller.stop_session).result()

    def restart(self) -> None:
        self._submit(self.controller.restart_session).result()

    def set_game_mode(self, start_score: Optional[int]) -> str:
        return self._submit(self.controller.set_game_mode, start_score).result()

    def get_state(self) -> Dict[str, Any]:
        state = self._submit(self.controller.get_state).result()
        state["session_id"] = self.session_id
        return state

    def close(self) -> None:
        """Stop the session and release its worker threads."""
        self._worker.submit(self.controller.stop_session)
        self._worker.shutdown(wait=True)
        self.notifier.shutdown(wait=False)
        if self._webhook is not None:
            self._webhook.close()


class SessionManager:
    """
    Manages DartSession instances.

    Sessions are created on demand and cleaned up after inactivity.
    """

    # Clean up sessions after 1 hour of inactivity
    INACTIVE_TIMEOUT_SECONDS = 3600

    def __init__(self, detector_factory: Callable[[PipelineConfig], DartDetector], config: PipelineConfig):
        self._lock = Lock()
        self._sessions: Dict[str, DartSession] = {}
        self._detector_factory = detector_factory
        self.config = config

        # Photo scoring shares one detector and one saved-marker cache
        self._photo_lock = Lock()
        self._photo_detector: Optional[DartDetector] = None
        self._photo_estimator = CalibrationEstimator(min_points=config.min_homography_points)

    def score_photo(self, image: np.ndarray) -> PhotoScore:
        """Score every dart in a single still image, outside any session."""
        with self._photo_lock:
            if self._photo_detector is None:
                self._photo_detector = self._detector_factory(self.config)
            return score_photo(self._photo_detector, image, self.config, self._photo_estimator)

    def create(
        self,
        start_score: Optional[int] = None,
        overrides: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None
    ) -> DartSession:
        """Create and start a session, optionally in game mode."""
        session_id = session_id or str(uuid.uuid4())[:8]
        config = self.config.with_overrides(overrides or {})
        session = DartSession(session_id, self._detector_factory(config), config)

        if start_score is not None:
            session.set_game_mode(start_score)
        session.start()

        with self._lock:
            previous = self._sessions.pop(session_id, None)
            self._sessions[session_id] = session

        if previous is not None:
            previous.close()

        logger.info(f"Created session {session_id} (start_score={start_score})")
        return session

    def get(self, session_id: str) -> Optional[DartSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Removed session {session_id}")
        return True

    def list_sessions(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {
                    "session_id": session_id,
                    "running": session.controller.running,
                    "created_at": session.created_at,
                    "last_activity": session.last_activity,
                }
                for session_id, session in self._sessions.items()
            ]

    def cleanup_inactive(self) -> List[str]:
        """Remove sessions that have been inactive too long."""
        now = time.time()
        with self._lock:
            inactive = [
                session_id
                for session_id, session in self._sessions.items()
                if now - session.last_activity > self.INACTIVE_TIMEOUT_SECONDS
            ]
        for session_id in inactive:
            self.remove(session_id)
        return inactive

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
