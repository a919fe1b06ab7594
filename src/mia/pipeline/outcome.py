"""Value-or-failure wrapper for best-effort pipeline stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from mia.errors import OptionalStageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Result of an optional stage: either ``value`` or a failure ``reason``."""

    stage: str
    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    def or_default(self, default: T) -> T:
        """Return the value, or ``default`` when the stage failed or came back empty."""
        if not self.ok or not self.value:
            return default
        return self.value

    @classmethod
    def attempt(cls, stage: str, call: Callable[[], T]) -> StageOutcome[T]:
        """Run ``call``, capturing any failure as a reason instead of raising."""
        try:
            return cls(stage=stage, value=call())
        except OptionalStageError as exc:
            logger.warning("%s failed, using default: %s", stage, exc)
            return cls(stage=stage, reason=str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("%s raised unexpectedly, using default", stage)
            return cls(stage=stage, reason=f"{type(exc).__name__}: {exc}")
