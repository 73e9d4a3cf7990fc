"""
DartScore API Routes

Session-scoped scoring: clients create a session, push frames (or attach a
camera feed) and receive display-ready score text back.
"""
import os
import time
import base64
import logging
import asyncio
from typing import Dict, Optional

import cv2
import numpy as np
from fastapi import APIRouter, HTTPException, Depends, Header

from app.api.schemas import (
    CreateSessionRequest,
    FeedRequest,
    FeedStatus,
    FrameRequest,
    FrameUpdateResponse,
    GameModeRequest,
    HealthResponse,
    PhotoScoreRequest,
    PhotoScoreResponse,
    SessionListResponse,
    SessionState,
)
from app.core.config import PipelineConfig, load_config
from app.core.detection import YOLODartDetector
from app.core.frame_feed import FrameFeed
from app.core.session import DartSession, SessionManager

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"

REQUIRE_AUTH = os.getenv("REQUIRE_AUTH", "false").lower() == "true"
API_KEYS = set(os.getenv("API_KEYS", "").split(",")) if os.getenv("API_KEYS") else set()


def decode_image(image_base64: str) -> np.ndarray:
    """Decode base64 image to OpenCV format."""
    if ',' in image_base64:
        image_base64 = image_base64.split(',')[1]

    try:
        image_data = base64.b64decode(image_base64)
    except ValueError as e:
        raise ValueError(f"Invalid base64 image: {e}")

    nparr = np.frombuffer(image_data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR) if nparr.size else None

    if image is None:
        raise ValueError("Failed to decode image")

    return image


def encode_image(image: np.ndarray, format: str = "png") -> str:
    """Encode OpenCV image to base64."""
    success, buffer = cv2.imencode(f'.{format}', image)
    if not success:
        raise ValueError("Failed to encode image")

    return base64.b64encode(buffer).decode('utf-8')


def create_detector(config: PipelineConfig) -> YOLODartDetector:
    return YOLODartDetector(
        board_model_path=config.board_model_path,
        dart_model_path=config.dart_model_path,
        image_size=config.reference_size
    )


_session_manager: Optional[SessionManager] = None
_feeds: Dict[str, FrameFeed] = {}


def get_session_manager() -> SessionManager:
    """Get or create the global session manager."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(create_detector, load_config())
    return _session_manager


def shutdown_sessions() -> None:
    global _session_manager
    for feed in list(_feeds.values()):
        feed.stop()
    _feeds.clear()
    if _session_manager is not None:
        _session_manager.close_all()
        _session_manager = None


# === Authentication ===

async def verify_api_key(authorization: Optional[str] = Header(None)) -> str:
    """Verify API key from Authorization header."""
    if not REQUIRE_AUTH:
        return "local"

    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization format")

    if parts[1] not in API_KEYS:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return parts[1]


def _require_session(manager: SessionManager, session_id: str) -> DartSession:
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return session


# === Health ===

@router.get("/health", response_model=HealthResponse)
async def health(manager: SessionManager = Depends(get_session_manager)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        models_loaded=manager.config.dart_model_path.exists(),
        sessions=len(manager.list_sessions())
    )


# === Photo scoring ===

@router.post("/v1/score", response_model=PhotoScoreResponse)
async def score_photo(
    request: PhotoScoreRequest,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    """Score every dart in one still image. No session, throttle or game state."""
    start_time = time.time()

    try:
        image = decode_image(request.image)
    except ValueError as e:
        logger.warning(f"[PHOTO] {e}")
        raise HTTPException(status_code=400, detail=str(e))

    result = await asyncio.to_thread(manager.score_photo, image)
    processing_ms = int((time.time() - start_time) * 1000)
    logger.info(f"[PHOTO] {result.dart_count} darts, total={result.total} ({processing_ms}ms)")

    return PhotoScoreResponse(
        scored=result.scored,
        labels=result.labels,
        total=result.total,
        dart_count=result.dart_count,
        calibration_points=result.calibration_points,
        processing_ms=processing_ms,
        image=encode_image(result.image) if request.include_image else None
    )


# === Sessions ===

@router.post("/v1/sessions", response_model=SessionState)
async def create_session(
    request: CreateSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    """Start a scoring session (game mode when start_score is given)."""
    if request.session_id is not None:
        # A feed bound to the session being replaced would keep feeding the closed one
        feed = _feeds.pop(request.session_id, None)
        if feed is not None:
            await asyncio.to_thread(feed.stop)

    overrides = request.config.model_dump(exclude_none=True) if request.config else {}
    session = await asyncio.to_thread(
        manager.create,
        start_score=request.start_score,
        overrides=overrides,
        session_id=request.session_id
    )
    return SessionState(**session.get_state())


@router.get("/v1/sessions", response_model=SessionListResponse)
async def list_sessions(manager: SessionManager = Depends(get_session_manager)):
    manager.cleanup_inactive()
    return SessionListResponse(sessions=manager.list_sessions())


@router.get("/v1/sessions/{session_id}", response_model=SessionState)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    session = _require_session(manager, session_id)
    return SessionState(**session.get_state())


@router.post("/v1/sessions/{session_id}/frames", response_model=FrameUpdateResponse)
async def submit_frame(
    session_id: str,
    request: FrameRequest,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    """Run one frame through the session's throw pipeline."""
    start_time = time.time()
    session = _require_session(manager, session_id)

    try:
        image = decode_image(request.image)
    except ValueError as e:
        logger.warning(f"[FRAME] Session {session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    update = await asyncio.wrap_future(session.submit_frame(image))

    processing_ms = int((time.time() - start_time) * 1000)
    logger.debug(f"[FRAME] Session {session_id}: state={update.state.value} ({processing_ms}ms)")

    return FrameUpdateResponse(
        session_id=session_id,
        state=update.state.value,
        score_text=update.score_text,
        dropped=update.dropped,
        labels=update.labels,
        total=update.total,
        outcome=update.outcome.value if update.outcome else None,
        processing_ms=processing_ms,
        image=encode_image(update.image) if request.include_image and update.image is not None else None
    )


@router.post("/v1/sessions/{session_id}/stop", response_model=SessionState)
async def stop_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    session = _require_session(manager, session_id)
    feed = _feeds.pop(session_id, None)
    if feed is not None:
        await asyncio.to_thread(feed.stop)
    await asyncio.to_thread(session.stop)
    logger.info(f"[SESSION] Stopped {session_id}")
    return SessionState(**session.get_state())


@router.post("/v1/sessions/{session_id}/restart", response_model=SessionState)
async def restart_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    session = _require_session(manager, session_id)
    await asyncio.to_thread(session.restart)
    return SessionState(**session.get_state())


@router.post("/v1/sessions/{session_id}/game", response_model=SessionState)
async def set_game_mode(
    session_id: str,
    request: GameModeRequest,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    """Start a new game from start_score, or switch to free play."""
    session = _require_session(manager, session_id)
    await asyncio.to_thread(session.set_game_mode, request.start_score)
    return SessionState(**session.get_state())


@router.delete("/v1/sessions/{session_id}")
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    feed = _feeds.pop(session_id, None)
    if feed is not None:
        await asyncio.to_thread(feed.stop)
    if not await asyncio.to_thread(manager.remove, session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"message": f"Session {session_id} removed"}


# === Frame feed ===

@router.post("/v1/sessions/{session_id}/feed", response_model=FeedStatus)
async def start_feed(
    session_id: str,
    request: FeedRequest,
    manager: SessionManager = Depends(get_session_manager),
    api_key: str = Depends(verify_api_key)
):
    """Attach a camera index or video source to the session."""
    session = _require_session(manager, session_id)

    existing = _feeds.get(session_id)
    if existing is not None:
        if existing.running:
            raise HTTPException(status_code=409, detail=f"Session '{session_id}' already has a feed")
        # Source ran out; replace the finished feed
        _feeds.pop(session_id, None)
        await asyncio.to_thread(existing.stop)

    source = int(request.source) if request.source.isdigit() else request.source
    feed = FrameFeed(session, source=source, frame_interval_ms=request.frame_interval_ms)
    if not await asyncio.to_thread(feed.start):
        raise HTTPException(status_code=404, detail=f"Capture source {request.source} not available")

    _feeds[session_id] = feed
    return _feed_status(feed)


@router.delete("/v1/sessions/{session_id}/feed", response_model=FeedStatus)
async def stop_feed(session_id: str, api_key: str = Depends(verify_api_key)):
    feed = _feeds.pop(session_id, None)
    if feed is None:
        raise HTTPException(status_code=404, detail=f"No feed for session '{session_id}'")
    await asyncio.to_thread(feed.stop)
    return _feed_status(feed)


def _feed_status(feed: FrameFeed) -> FeedStatus:
    status = feed.get_status()
    status["source"] = str(status["source"])
    return FeedStatus(**status)
