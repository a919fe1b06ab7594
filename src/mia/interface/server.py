"""HTTP server for the MIA avatar frontend.

Runs as a FastAPI application.  The browser posts either typed text or a
``data:audio/...;base64,`` recording to ``/chat`` and plays back the
returned audio with its lip-sync cues, facial expression and animation.

Endpoints
---------
``POST /chat``   ``{"message": "..." | null}``
    200 with a reply (or a session-expired notice), 500 with
    ``{"ok": false, "error": ..., "stage": ...}`` if an essential stage fails.
``POST /reset``  ``{"reason": "..."}`` (body optional)
    Wipes the session.
``GET /health``
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mia.config import Settings, get_settings
from mia.models import ErrorResult
from mia.pipeline.reply import ReplyPipeline
from mia.session.liveness import LivenessMonitor
from mia.session.state import Session

logger = logging.getLogger(__name__)


# ======================================================================
# API models
# ======================================================================
class ChatRequest(BaseModel):
    message: Optional[str] = None


class ResetRequest(BaseModel):
    reason: Optional[str] = None


# ======================================================================
# Application factory
# ======================================================================
def create_app(
    settings: Optional[Settings] = None,
    session: Optional[Session] = None,
    pipeline: Optional[ReplyPipeline] = None,
    start_monitor: bool = True,
) -> FastAPI:
    """Build the MIA FastAPI application.

    ``session`` and ``pipeline`` default to the production wiring from
    ``settings``; tests pass their own.
    """
    settings = settings or get_settings()
    session = session or Session.from_settings(settings)
    pipeline = pipeline or ReplyPipeline.from_settings(session, settings)
    monitor = LivenessMonitor(
        session,
        timeout=settings.inactivity_timeout,
        interval=settings.liveness_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session.ensure_dirs()
        if start_monitor:
            monitor.start()
        try:
            yield
        finally:
            monitor.stop()

    app = FastAPI(title="MIA Companion", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.session = session
    app.state.pipeline = pipeline
    app.state.monitor = monitor

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "session_turns": session.turn_count,
            "expired": session.expired,
            "monitor_running": monitor.running,
            "generation_available": settings.generation_available,
            "tts_available": settings.tts_available,
        }

    @app.post("/chat")
    async def chat(req: ChatRequest):
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, pipeline.submit, req.message)
        except Exception as exc:
            logger.exception("Error in /chat")
            result = ErrorResult(error=str(exc))
        if isinstance(result, ErrorResult):
            return JSONResponse(status_code=500, content=result.model_dump())
        return JSONResponse(content=result.model_dump(mode="json", by_alias=True))

    @app.post("/reset")
    async def reset(req: Optional[ResetRequest] = None):
        reason = (req.reason if req else None) or "manual"
        logger.info("Reset received (reason=%s)", reason)
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, session.reset, reason)
        except Exception as exc:
            logger.exception("Error in /reset")
            return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})
        return result.model_dump()

    return app
