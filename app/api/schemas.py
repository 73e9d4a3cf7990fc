"""
Pydantic schemas for DartScore API
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


# === Sessions ===

class SessionConfigOverrides(BaseModel):
    """Per-session pipeline settings"""
    detection_interval: Optional[float] = Field(None, ge=0, description="Seconds between processed frames")
    throw_delay: Optional[float] = Field(None, ge=0, description="Cooldown seconds after a finalized throw")
    iou_threshold: Optional[float] = Field(None, ge=0, le=1, description="Same-dart IoU threshold")
    confidence_floor: Optional[float] = Field(None, ge=0, le=1, description="Minimum detection confidence")
    finalize_on_occlusion: Optional[bool] = Field(None, description="Finalize when calibration markers are hidden")


class CreateSessionRequest(BaseModel):
    """Request to start a scoring session"""
    session_id: Optional[str] = Field(None, description="Reuse a specific session id")
    start_score: Optional[int] = Field(None, gt=0, description="Game starting score (301/501); omit for free play")
    config: Optional[SessionConfigOverrides] = None


class GameModeRequest(BaseModel):
    """Start a new game or switch to free play"""
    start_score: Optional[int] = Field(None, gt=0, description="Starting score; null for free play")


class GameInfo(BaseModel):
    mode: Optional[int] = None
    remaining_score: int
    last_throw: str = ""
    history: List[str] = Field(default_factory=list)


class SessionState(BaseModel):
    """Current state of a scoring session"""
    session_id: str
    running: bool
    state: str
    score_text: str
    has_calibration_cache: bool
    tracked_darts: Dict[str, Any]
    game: GameInfo


class SessionInfo(BaseModel):
    session_id: str
    running: bool
    created_at: float
    last_activity: float


class SessionListResponse(BaseModel):
    sessions: List[SessionInfo]


# === Frames ===

class FrameRequest(BaseModel):
    """A single frame for the session pipeline"""
    image: str = Field(..., description="Base64 encoded image data")
    include_image: bool = Field(False, description="Return the cropped board image")


class FrameUpdateResponse(BaseModel):
    """Display-ready update for one frame"""
    session_id: str
    state: str
    score_text: str
    dropped: bool
    labels: List[str] = Field(default_factory=list)
    total: Optional[int] = None
    outcome: Optional[str] = None
    processing_ms: int
    image: Optional[str] = Field(None, description="Base64 PNG of the processed image")


# === Photo scoring ===

class PhotoScoreRequest(BaseModel):
    """A single still image to score outside any session"""
    image: str = Field(..., description="Base64 encoded image data")
    include_image: bool = Field(False, description="Return the cropped board image")


class PhotoScoreResponse(BaseModel):
    scored: bool
    labels: List[str] = Field(default_factory=list)
    total: Optional[int] = None
    dart_count: int
    calibration_points: int
    processing_ms: int
    image: Optional[str] = Field(None, description="Base64 PNG of the cropped board")


# === Frame feed ===

class FeedRequest(BaseModel):
    source: str = Field("0", description="Camera index or video path/URL")
    frame_interval_ms: int = Field(50, gt=0)


class FeedStatus(BaseModel):
    running: bool
    source: str
    session_id: str
    frames_read: int
    last_state: Optional[str] = None
    frame_interval_ms: int


class HealthResponse(BaseModel):
    status: str
    version: str
    models_loaded: bool
    sessions: int
