"""
Tests for sessions and the session manager.
"""
import pytest

from app.core.config import PipelineConfig
from app.core.session import DartSession, SessionManager
from app.core.throw_controller import ThrowState

from conftest import FakeDetector, T15_POINT, calibration_markers, dart_at


@pytest.fixture
def manager():
    manager = SessionManager(lambda config: FakeDetector(), PipelineConfig())
    yield manager
    manager.close_all()


def test_session_processes_frames_on_worker(frame):
    detector = FakeDetector(calibration_markers(4) + [dart_at(*T15_POINT)])
    session = DartSession("s1", detector)
    try:
        session.set_game_mode(301)
        session.start()

        update = session.process_frame(frame, now=100.0)

        assert update.total == 45
        assert session.get_state()["game"]["remaining_score"] == 256
    finally:
        session.close()


def test_session_state_includes_id():
    session = DartSession("abc", FakeDetector())
    try:
        state = session.get_state()
        assert state["session_id"] == "abc"
        assert state["running"] is False
    finally:
        session.close()


def test_stopped_session_drops_frames(frame):
    session = DartSession("s2", FakeDetector())
    try:
        session.start()
        session.stop()
        update = session.process_frame(frame, now=100.0)
        assert update.state == ThrowState.STOPPED
    finally:
        session.close()


def test_manager_creates_running_session(manager):
    session = manager.create(start_score=501, session_id="board-1")

    assert manager.get("board-1") is session
    state = session.get_state()
    assert state["running"] is True
    assert state["score_text"] == "Game started. Score: 501"


def test_manager_generates_ids(manager):
    first = manager.create()
    second = manager.create()

    assert first.session_id != second.session_id
    assert len(manager.list_sessions()) == 2


def test_manager_applies_overrides(manager):
    session = manager.create(overrides={"throw_delay": 2.0, "detection_interval": None})

    assert session.config.throw_delay == 2.0
    assert session.config.detection_interval == 1.0
    assert manager.config.throw_delay == 7.0


def test_recreating_id_replaces_session(manager):
    old = manager.create(session_id="dup")
    new = manager.create(session_id="dup")

    assert manager.get("dup") is new
    assert new is not old
    assert len(manager.list_sessions()) == 1


def test_remove(manager):
    manager.create(session_id="gone")

    assert manager.remove("gone") is True
    assert manager.get("gone") is None
    assert manager.remove("gone") is False


def test_cleanup_inactive(manager):
    session = manager.create(session_id="idle")
    session.last_activity -= SessionManager.INACTIVE_TIMEOUT_SECONDS + 1

    removed = manager.cleanup_inactive()

    assert removed == ["idle"]
    assert manager.get("idle") is None


def test_manager_scores_photos_with_shared_calibration(frame):
    detector = FakeDetector(calibration_markers(4))
    manager = SessionManager(lambda config: detector, PipelineConfig())

    first = manager.score_photo(frame)
    detector.detections = calibration_markers(1) + [dart_at(*T15_POINT)]
    second = manager.score_photo(frame)

    assert first.total == 0
    assert second.labels == ["T15"]
    assert manager.list_sessions() == []
