"""
DartScore API - Session-based dart scoring service

Accepts frames of a dartboard, tracks darts across frames, calibrates the
board from its four markers and turns settled throws into scores for
free play or 301/501 count-down games.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import API_VERSION, router, shutdown_sessions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Configuration
API_TITLE = "DartScore API"
API_DESCRIPTION = """
Dart scoring API - accepts dartboard frames, returns scores.

## Flow
1. `POST /v1/sessions` starts a session (optionally with `start_score` 301/501)
2. Frames are pushed to `POST /v1/sessions/{id}/frames`, or a camera is
   attached with `POST /v1/sessions/{id}/feed`
3. Each frame returns display-ready `score_text`; frames arriving too fast
   or during the post-throw cooldown are dropped

## Endpoints

### Sessions
- `POST /v1/sessions` - Start a session
- `GET /v1/sessions/{id}` - Session state
- `POST /v1/sessions/{id}/stop` / `restart` - Session lifecycle
- `POST /v1/sessions/{id}/game` - New game or free play

### Photos
- `POST /v1/score` - Score every dart in one still image

### Health
- `GET /health` - Service health check
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("DartScore API starting")
    yield
    shutdown_sessions()
    logger.info("DartScore API shutting down")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS - allow all for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/")
async def root():
    """API info and links."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
