"""
Tests for the HTTP API.
"""
import base64

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from app.api.routes import _feeds, get_session_manager
from app.core.config import PipelineConfig
from app.core.session import SessionManager
from app.main import app

from conftest import FakeDetector, T15_POINT, calibration_markers, dart_at


def frame_payload(include_image=False):
    image = np.zeros((800, 800, 3), dtype=np.uint8)
    _, buffer = cv2.imencode(".png", image)
    return {
        "image": base64.b64encode(buffer).decode("utf-8"),
        "include_image": include_image,
    }


@pytest.fixture
def manager():
    detector_factory = lambda config: FakeDetector(calibration_markers(4) + [dart_at(*T15_POINT)])  # noqa: E731
    manager = SessionManager(detector_factory, PipelineConfig())
    yield manager
    manager.close_all()


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_session_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()
    for feed in list(_feeds.values()):
        feed.stop()
    _feeds.clear()


class FakeCapture:
    def __init__(self, source, frames=10_000):
        self.remaining = frames

    def isOpened(self):
        return True

    def read(self):
        if self.remaining <= 0:
            return False, None
        self.remaining -= 1
        return True, np.zeros((120, 160, 3), dtype=np.uint8)

    def release(self):
        pass


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["sessions"] == 0


def test_root(client):
    assert client.get("/").json()["name"] == "DartScore API"


def test_create_game_session(client):
    response = client.post("/v1/sessions", json={"session_id": "b1", "start_score": 301})

    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == "b1"
    assert body["running"] is True
    assert body["score_text"] == "Game started. Score: 301"
    assert body["game"]["remaining_score"] == 301


def test_create_session_rejects_bad_score(client):
    response = client.post("/v1/sessions", json={"start_score": 0})
    assert response.status_code == 422


def test_create_session_with_overrides(client, manager):
    client.post("/v1/sessions", json={"session_id": "fast", "config": {"throw_delay": 1.5}})
    assert manager.get("fast").config.throw_delay == 1.5


def test_frame_scores_throw(client):
    client.post("/v1/sessions", json={"session_id": "b1", "start_score": 301})

    response = client.post("/v1/sessions/b1/frames", json=frame_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["labels"] == ["T15"]
    assert body["total"] == 45
    assert body["outcome"] == "scored"
    assert body["state"] == "cooldown"
    assert body["dropped"] is False
    assert body["image"] is None
    assert body["score_text"] == "Score: 256\nLast throw: T15 scored 45"


def test_second_frame_is_dropped_during_cooldown(client):
    client.post("/v1/sessions", json={"session_id": "b1"})
    client.post("/v1/sessions/b1/frames", json=frame_payload())

    response = client.post("/v1/sessions/b1/frames", json=frame_payload(include_image=True))

    body = response.json()
    assert body["dropped"] is True
    assert body["state"] == "cooldown"
    assert body["image"]


def test_invalid_image(client):
    client.post("/v1/sessions", json={"session_id": "b1"})

    response = client.post("/v1/sessions/b1/frames", json={"image": "bm90IGFuIGltYWdl"})

    assert response.status_code == 400


def test_unknown_session(client):
    assert client.get("/v1/sessions/nope").status_code == 404
    assert client.post("/v1/sessions/nope/frames", json=frame_payload()).status_code == 404
    assert client.delete("/v1/sessions/nope").status_code == 404


def test_list_sessions(client):
    client.post("/v1/sessions", json={"session_id": "a"})
    client.post("/v1/sessions", json={"session_id": "b"})

    sessions = client.get("/v1/sessions").json()["sessions"]

    assert {s["session_id"] for s in sessions} == {"a", "b"}


def test_stop_and_restart(client):
    client.post("/v1/sessions", json={"session_id": "b1", "start_score": 501})

    stopped = client.post("/v1/sessions/b1/stop").json()
    assert stopped["running"] is False
    assert stopped["state"] == "stopped"

    restarted = client.post("/v1/sessions/b1/restart").json()
    assert restarted["running"] is True
    assert restarted["score_text"] == "Game started. Score: 501"


def test_switch_game_mode(client):
    client.post("/v1/sessions", json={"session_id": "b1"})

    body = client.post("/v1/sessions/b1/game", json={"start_score": 501}).json()
    assert body["game"]["mode"] == 501
    assert body["score_text"] == "Game started. Score: 501"

    body = client.post("/v1/sessions/b1/game", json={"start_score": None}).json()
    assert body["game"]["mode"] is None


def test_delete_session(client, manager):
    client.post("/v1/sessions", json={"session_id": "b1"})

    assert client.delete("/v1/sessions/b1").status_code == 200
    assert manager.get("b1") is None


def test_stop_feed_without_feed(client):
    client.post("/v1/sessions", json={"session_id": "b1"})
    assert client.delete("/v1/sessions/b1/feed").status_code == 404


def test_feed_with_unavailable_source(client, monkeypatch):
    class ClosedCapture:
        def __init__(self, source):
            pass

        def isOpened(self):
            return False

    monkeypatch.setattr("app.core.frame_feed.cv2.VideoCapture", ClosedCapture)
    client.post("/v1/sessions", json={"session_id": "b1"})

    response = client.post("/v1/sessions/b1/feed", json={"source": "7"})

    assert response.status_code == 404


def test_recreating_session_stops_its_feed(client, manager, monkeypatch):
    monkeypatch.setattr("app.core.frame_feed.cv2.VideoCapture", FakeCapture)
    client.post("/v1/sessions", json={"session_id": "b1"})
    assert client.post("/v1/sessions/b1/feed", json={"source": "0", "frame_interval_ms": 10}).status_code == 200
    old_feed = _feeds["b1"]

    client.post("/v1/sessions", json={"session_id": "b1"})

    assert "b1" not in _feeds
    assert not old_feed.running

    response = client.post("/v1/sessions/b1/feed", json={"source": "0", "frame_interval_ms": 10})
    assert response.status_code == 200
    assert _feeds["b1"].session is manager.get("b1")


def test_exhausted_feed_can_be_replaced(client, monkeypatch):
    monkeypatch.setattr(
        "app.core.frame_feed.cv2.VideoCapture",
        lambda source: FakeCapture(source, frames=0)
    )
    client.post("/v1/sessions", json={"session_id": "b1"})
    client.post("/v1/sessions/b1/feed", json={"source": "clip.mp4"})
    _feeds["b1"]._thread.join(timeout=5.0)

    response = client.post("/v1/sessions/b1/feed", json={"source": "clip.mp4"})

    assert response.status_code == 200


def test_running_feed_conflicts(client, monkeypatch):
    monkeypatch.setattr("app.core.frame_feed.cv2.VideoCapture", FakeCapture)
    client.post("/v1/sessions", json={"session_id": "b1"})
    client.post("/v1/sessions/b1/feed", json={"source": "0"})

    response = client.post("/v1/sessions/b1/feed", json={"source": "0"})

    assert response.status_code == 409


def test_score_photo(client):
    response = client.post("/v1/score", json=frame_payload(include_image=True))

    assert response.status_code == 200
    body = response.json()
    assert body["scored"] is True
    assert body["labels"] == ["T15"]
    assert body["total"] == 45
    assert body["dart_count"] == 1
    assert body["calibration_points"] == 4
    assert body["image"]


def test_score_photo_leaves_sessions_alone(client):
    client.post("/v1/sessions", json={"session_id": "b1", "start_score": 301})

    client.post("/v1/score", json=frame_payload())

    state = client.get("/v1/sessions/b1").json()
    assert state["game"]["remaining_score"] == 301
    assert state["state"] == "idle"


def test_score_photo_invalid_image(client):
    assert client.post("/v1/score", json={"image": "bm90IGFuIGltYWdl"}).status_code == 400
