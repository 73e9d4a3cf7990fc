"""
Score update delivery.

Updates are handed to listeners on a separate executor so a slow or failing
listener never blocks frame processing.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import httpx
import numpy as np

logger = logging.getLogger(__name__)

# (image, score_text)
UpdateListener = Callable[[np.ndarray, str], None]


class ScoreNotifier:
    """Fire-and-forget fan-out of (image, score_text) updates."""

    def __init__(self, max_workers: int = 1):
        self._listeners: List[UpdateListener] = []
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="score-notify")

    def add_listener(self, listener: UpdateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: UpdateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, image: np.ndarray, score_text: str) -> None:
        for listener in list(self._listeners):
            self._executor.submit(self._deliver, listener, image, score_text)

    @staticmethod
    def _deliver(listener: UpdateListener, image: np.ndarray, score_text: str) -> None:
        try:
            listener(image, score_text)
        except Exception as e:
            logger.error(f"Score listener failed: {e}", exc_info=True)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class WebhookNotifier:
    """Posts each update to an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        session_id: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None
    ):
        self.url = url
        self.session_id = session_id
        self._client = client or httpx.Client(timeout=timeout)

    def build_payload(self, score_text: str) -> Dict[str, Any]:
        return {"sessionId": self.session_id, "scoreText": score_text}

    def __call__(self, image: np.ndarray, score_text: str) -> None:
        try:
            response = self._client.post(self.url, json=self.build_payload(score_text))
            if response.status_code == 200:
                logger.info(f"Sent score update for session {self.session_id}")
            else:
                logger.warning(f"Score webhook returned {response.status_code}: {response.text}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to send score update: {e}")

    def close(self) -> None:
        self._client.close()
