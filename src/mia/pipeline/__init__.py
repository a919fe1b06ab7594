"""Per-request reply orchestration."""

from mia.pipeline.outcome import StageOutcome
from mia.pipeline.reply import ReplyPipeline

__all__ = [
    "ReplyPipeline",
    "StageOutcome",
]
