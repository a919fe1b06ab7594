"""Inactivity watchdog.

Two states, active and expired.  A daemon thread calls :meth:`check`
every ``interval`` seconds; once the session has been idle longer than
``timeout`` it is marked expired and wiped.  The check takes the session
lock, so it never interleaves with an in-flight reply.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from mia.session.state import Session

logger = logging.getLogger(__name__)


class LivenessMonitor:
    def __init__(
        self,
        session: Session,
        timeout: float = 300.0,
        interval: float = 30.0,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self, now: Optional[float] = None) -> bool:
        """Expire the session if it has been idle too long.

        Returns True when this call performed the wipe.
        """
        with self.session.lock:
            if self.session.expired:
                return False
            idle = self.session.idle_seconds(now)
            if idle <= self.timeout:
                return False
            logger.info("Session idle for %.0fs, expiring", idle)
            self.session.expire("inactivity")
            return True

    # -- background loop ----------------------------------------------------

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.check()
            except Exception:
                logger.exception("Liveness check failed")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="mia-liveness", daemon=True
        )
        self._thread.start()
        logger.info(
            "Liveness monitor started (timeout=%ss, interval=%ss)",
            self.timeout, self.interval,
        )

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
