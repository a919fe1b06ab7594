"""Conversation state: turn persistence, rolling summary, liveness."""

from mia.session.context import ContextComposer, RecentContext
from mia.session.liveness import LivenessMonitor
from mia.session.state import Session
from mia.session.store import SummaryStore, TurnStore
from mia.session.summarizer import RollingSummarizer

__all__ = [
    "ContextComposer",
    "LivenessMonitor",
    "RecentContext",
    "RollingSummarizer",
    "Session",
    "SummaryStore",
    "TurnStore",
]
