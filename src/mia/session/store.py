"""JSON-backed persistence for conversation turns and the rolling summary.

Each store owns one JSON document that is rewritten wholesale on every
mutation.  A missing or unreadable document is treated as empty so that a
corrupted file never takes the persona offline.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from mia.errors import CorruptStateError
from mia.models import SummaryRecord, Turn

logger = logging.getLogger(__name__)

_TURN_KEY = re.compile(r"^turn_(\d+)$")


def _read_document(path: Path) -> dict:
    """Read a JSON object from disk, raising CorruptStateError if unusable."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptStateError(f"{path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise CorruptStateError(f"{path}: expected a JSON object")
    return raw


def _load_document(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        return _read_document(path)
    except CorruptStateError as exc:
        # Corrupted file: treat as no history.
        logger.warning("Ignoring corrupt session document: %s", exc)
        return {}


def _write_document(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------

class TurnStore:
    """Append-only turn collection keyed ``turn_1``, ``turn_2``, ...

    Parameters
    ----------
    path : Path or str
        Location of the JSON document.  Created on first append.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _document(self) -> dict:
        doc = _load_document(self.path)
        return {k: v for k, v in doc.items() if _TURN_KEY.match(k)}

    def load_all(self) -> list[Turn]:
        """Return every stored turn in index order."""
        turns: list[Turn] = []
        for key, body in self._document().items():
            index = int(_TURN_KEY.match(key).group(1))  # type: ignore[union-attr]
            if not isinstance(body, dict):
                logger.warning("Skipping malformed turn %s", key)
                continue
            try:
                turns.append(Turn(index=index, **body))
            except (ValidationError, TypeError):
                logger.warning("Skipping malformed turn %s", key)
        turns.sort(key=lambda t: t.index)
        return turns

    def count(self) -> int:
        return len(self.load_all())

    def next_index(self) -> int:
        return self.count() + 1

    def append(
        self,
        user_utterance: str,
        sentiment: str,
        reply_emotion: str,
        reply_text: str,
    ) -> Turn:
        """Write a new turn at the next dense index and persist it.

        Surviving turns are renumbered ``1..n`` first, so a skipped
        malformed entry never leaves a gap for the new turn to land on.
        """
        turns = self._renumbered(self.load_all())
        turn = Turn(
            index=len(turns) + 1,
            user_utterance=user_utterance,
            sentiment=sentiment,
            reply_emotion=reply_emotion,
            reply_text=reply_text,
        )
        turns.append(turn)
        _write_document(self.path, self._serialize(turns))
        logger.debug("Stored %s", turn.key)
        return turn

    def wipe(self) -> None:
        """Remove all turns."""
        _write_document(self.path, {})

    def serialized_size(self) -> int:
        """Character length of the compact JSON form of the collection."""
        payload = self._serialize(self.load_all())
        return len(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))

    @staticmethod
    def _renumbered(turns: list[Turn]) -> list[Turn]:
        if all(t.index == i for i, t in enumerate(turns, start=1)):
            return turns
        logger.warning("Turn indices not dense, renumbering %d surviving turns", len(turns))
        return [t.model_copy(update={"index": i}) for i, t in enumerate(turns, start=1)]

    @staticmethod
    def _serialize(turns: list[Turn]) -> dict:
        return {t.key: t.model_dump(exclude={"index"}) for t in turns}


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

class SummaryStore:
    """Holds at most one SummaryRecord, replaced on every update."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[SummaryRecord]:
        doc = _load_document(self.path)
        if not doc:
            return None
        try:
            return SummaryRecord(**doc)
        except (ValidationError, TypeError):
            logger.warning("Ignoring malformed summary document %s", self.path)
            return None

    def save(self, record: SummaryRecord) -> None:
        _write_document(self.path, json.loads(record.model_dump_json()))

    def wipe(self) -> None:
        _write_document(self.path, {})

    @property
    def abstract(self) -> str:
        record = self.load()
        return record.abstract if record else ""

