"""
Frame Feed

Reads frames from an OpenCV capture source on a background thread and
hands each one to a scoring session. Throttling happens in the session,
so every captured frame is offered.
"""
import logging
import threading
import time
from typing import Any, Dict, Optional, Union

import cv2

from app.core.session import DartSession

logger = logging.getLogger(__name__)


class FrameFeed:
    """Camera (or video file) loop feeding one session."""

    def __init__(
        self,
        session: DartSession,
        source: Union[int, str] = 0,
        frame_interval_ms: int = 50
    ):
        self.session = session
        self.source = source
        self.frame_interval = frame_interval_ms / 1000.0

        self._cap: Optional[cv2.VideoCapture] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._frames_read = 0
        self._last_state: Optional[str] = None

    @property
    def running(self) -> bool:
        """False once stopped or once the source is exhausted."""
        return self._running

    def _open(self) -> bool:
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            logger.warning(f"Failed to open capture source {self.source}")
            return False
        self._cap = cap
        logger.info(f"Opened capture source {self.source}")
        return True

    def _release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def _loop(self) -> None:
        logger.info("Frame feed loop started")

        while self._running:
            loop_start = time.time()

            ret, frame = self._cap.read()
            if not ret:
                logger.info("Capture source exhausted, stopping frame feed")
                break

            self._frames_read += 1
            try:
                update = self.session.process_frame(frame)
                self._last_state = update.state.value
            except Exception as e:
                logger.error(f"Error processing frame: {e}", exc_info=True)

            elapsed = time.time() - loop_start
            time.sleep(max(0, self.frame_interval - elapsed))

        self._running = False
        self._release()
        logger.info("Frame feed loop stopped")

    def start(self) -> bool:
        """Open the source and start feeding frames."""
        if self._running:
            logger.warning("Frame feed already running")
            return True

        if not self._open():
            return False

        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "source": self.source,
            "session_id": self.session.session_id,
            "frames_read": self._frames_read,
            "last_state": self._last_state,
            "frame_interval_ms": int(self.frame_interval * 1000),
        }
