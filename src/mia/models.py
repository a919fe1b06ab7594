"""Core domain models used across the application."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


# ======================================================================
# Session records
# ======================================================================
class Turn(BaseModel):
    """One user-input / persona-reply exchange."""

    model_config = {"frozen": True}

    index: int = Field(..., ge=1)
    user_utterance: str = ""
    sentiment: str = "neutral"
    reply_emotion: str = "default"
    reply_text: str = ""

    @property
    def key(self) -> str:
        return turn_key(self.index)


class SummaryRecord(BaseModel):
    """Lossy compaction of the conversation so far."""

    abstract: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    covered_turn_count: int = 0


def turn_key(index: int) -> str:
    """Document key under which a turn is persisted."""
    return f"turn_{index}"


# ======================================================================
# Reply results
# ======================================================================
class ReplyMessage(BaseModel):
    """A single spoken, animated message from the persona."""

    model_config = {"populate_by_name": True}

    text: str
    audio: Optional[str] = None  # base64-encoded audio artifact
    lipsync: Optional[dict[str, Any]] = None
    facial_expression: str = Field(default="default", alias="facialExpression")
    animation: str = "Talking_0"


class ReplyResult(BaseModel):
    model_config = {"populate_by_name": True}

    ok: bool = True
    transcript: str = ""
    sentiment: str = "neutral"
    reply_emotion: str = Field(default="default", alias="replyEmotion")
    messages: list[ReplyMessage] = Field(default_factory=list)
    degraded: bool = False


class SessionExpiredResult(BaseModel):
    ok: bool = False
    expired: bool = True
    message: str = "Session expired after inactivity; no reply produced."


class ErrorResult(BaseModel):
    ok: bool = False
    error: str
    stage: str = "pipeline"


class ResetResult(BaseModel):
    ok: bool = True
    reset: bool = True
