"""
FastAPI server exposing the resolved school status.

Endpoints:
- GET /status          resolved status (cached for the configured TTL)
- GET /status?refresh=true   bypass the cache
- GET /api/health      liveness plus per-source health

Usage:
    schoolstatus serve --port 3000
    uvicorn schoolstatus.api.server:app --port 3000
"""

import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .. import __version__
from ..config.settings import EngineConfig, load_config
from ..resolution.engine import StatusEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the engine before serving so a bad config fails at startup
    get_engine()
    yield


app = FastAPI(
    title="School Status API",
    description="Open / closed / delayed status resolved from multiple closing reports",
    version=__version__,
    lifespan=lifespan,
)

# Status widgets call this from arbitrary origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# Pydantic models
class SourceSummary(BaseModel):
    name: str
    status: str
    error: Optional[str] = None


class StatusResponse(BaseModel):
    status: str
    timestamp: str
    source: Optional[str] = None
    results_summary: List[SourceSummary]
    cached: bool
    error: Optional[str] = None


# Engine singleton, built at startup (or installed by serve before it starts)
_engine: Optional[StatusEngine] = None
_engine_lock = threading.Lock()


def build_engine(config: EngineConfig) -> StatusEngine:
    return StatusEngine.from_config(config)


def get_engine() -> StatusEngine:
    """Get or create the StatusEngine singleton (one per process)."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = build_engine(load_config())
    return _engine


def set_engine(engine: Optional[StatusEngine]):
    """Install a prebuilt engine (or None to rebuild from config on next use)."""
    global _engine
    with _engine_lock:
        _engine = engine


@app.get("/", response_class=PlainTextResponse)
def index():
    return "School status engine running. Hit /status to check."


@app.get("/status", response_model=StatusResponse, response_model_exclude_none=True)
def get_status(refresh: bool = Query(default=False, description="Bypass the result cache")):
    """Get the resolved status for the configured entity."""
    try:
        result = get_engine().get_status(bypass_cache=refresh)
    except Exception:
        logger.exception("Error in /status handler")
        return JSONResponse(status_code=500, content={"status": "ERROR", "error": "Internal server error"})
    return result.to_dict()


@app.get("/api/health")
def health_check():
    """Liveness plus per-source fetch health."""
    report = get_engine().health_report()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sources": report["summary"],
        "source_detail": report["sources"],
        "cache_age_seconds": report["cache_age_seconds"],
    }
