"""Session context: the state every request operates on.

A Session bundles the turn and summary documents, the audio working
directory, the liveness timestamp and the ``expired`` flag behind a single
re-entrant lock.  The reply pipeline, manual resets and the liveness
monitor all hold ``session.lock`` while they touch any of it.
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from mia.config import Settings
from mia.models import ResetResult
from mia.session.store import SummaryStore, TurnStore

logger = logging.getLogger(__name__)


class Session:
    """Explicit, injectable session state.

    Parameters
    ----------
    history_path, summary_path : Path or str
        Locations of the two JSON documents.
    audio_dir : Path or str
        Working directory for synthesized audio; emptied on every wipe.
    clock : callable
        Monotonic clock in seconds.  Tests inject a fake.
    """

    def __init__(
        self,
        history_path: Path | str,
        summary_path: Path | str,
        audio_dir: Path | str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.turns = TurnStore(history_path)
        self.summary = SummaryStore(summary_path)
        self.audio_dir = Path(audio_dir)
        self.lock = threading.RLock()
        self.expired = False
        self._clock = clock
        self._wiping = False
        self.last_activity = clock()

    @classmethod
    def from_settings(cls, settings: Settings) -> Session:
        return cls(
            history_path=settings.history_path,
            summary_path=settings.summary_path,
            audio_dir=settings.audio_dir,
        )

    # -- liveness -----------------------------------------------------------

    def now(self) -> float:
        return self._clock()

    def idle_seconds(self, now: Optional[float] = None) -> float:
        return (self.now() if now is None else now) - self.last_activity

    def touch(self) -> None:
        """Record activity and return to the active state.

        Ignored while a wipe is in progress.
        """
        if self._wiping:
            return
        self.last_activity = self.now()
        self.expired = False

    # -- wiping -------------------------------------------------------------

    def ensure_dirs(self) -> None:
        self.turns.path.parent.mkdir(parents=True, exist_ok=True)
        self.summary.path.parent.mkdir(parents=True, exist_ok=True)
        self.audio_dir.mkdir(parents=True, exist_ok=True)

    def wipe(self, reason: str = "manual") -> None:
        """Clear turns, summary and audio artifacts.  Idempotent."""
        with self.lock:
            self._wiping = True
            try:
                logger.info("Session reset (%s): clearing audio and history", reason)
                shutil.rmtree(self.audio_dir, ignore_errors=True)
                self.ensure_dirs()
                self.turns.wipe()
                self.summary.wipe()
            finally:
                self._wiping = False

    def expire(self, reason: str = "inactivity") -> None:
        """Mark the session expired and wipe it."""
        with self.lock:
            self.expired = True
            self.wipe(reason)

    def reset(self, reason: str = "manual") -> ResetResult:
        """Unconditional wipe; the session is active afterwards."""
        with self.lock:
            self.wipe(reason)
            self.touch()
        return ResetResult(ok=True, reset=True)

    @property
    def turn_count(self) -> int:
        return self.turns.count()
