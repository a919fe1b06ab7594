"""Rolling summary that keeps the generation prompt bounded.

Turns are never pruned; only the prompt is bounded.  Once the serialized
history outgrows the threshold, every turn plus the previous abstract is
condensed into a fresh abstract after each reply.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from mia.collaborators import TextGenerator
from mia.errors import ConfigurationError, GenerationError
from mia.models import SummaryRecord, Turn
from mia.session.store import SummaryStore, TurnStore

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = """\
You summarize emotional-support conversations.
Return a short, faithful abstract that is useful for continuing the \
conversation in future turns. Preserve names, goals, sensitive topics and \
emotional continuity.
Write in {language}. No emojis or decorative symbols."""

SUMMARY_USER_TEMPLATE = """\
Compactly summarize the following material.

[Previous summary]
{previous}

[Full history (compact what matters)]
{history}"""


def format_turns_for_summary(turns: list[Turn]) -> str:
    return "\n\n".join(
        f"{t.key}:\n"
        f"User: {t.user_utterance}\n"
        f"MIA: {t.reply_text}\n"
        f"Sentiment: {t.sentiment}\n"
        f"MIA emotion: {t.reply_emotion}"
        for t in turns
    )


class RollingSummarizer:
    """Best-effort abstract refresh, triggered by serialized history size."""

    def __init__(
        self,
        turns: TurnStore,
        summary: SummaryStore,
        generator: TextGenerator,
        threshold_chars: int = 10_000,
        language: str = "Spanish",
    ) -> None:
        self.turns = turns
        self.summary = summary
        self.generator = generator
        self.threshold_chars = threshold_chars
        self.language = language

    def should_summarize(self) -> bool:
        return self.turns.serialized_size() > self.threshold_chars

    def maybe_update(self) -> bool:
        """Refresh the abstract if the history is over threshold.

        Returns True when a new SummaryRecord was written.  Generation
        failures leave the previous record in place.
        """
        if not self.should_summarize():
            return False

        history = self.turns.load_all()
        previous = self.summary.abstract
        user_prompt = SUMMARY_USER_TEMPLATE.format(
            previous=previous,
            history=format_turns_for_summary(history),
        ).strip()

        try:
            abstract = self.generator.generate(
                SUMMARY_SYSTEM_PROMPT.format(language=self.language), user_prompt
            )
        except (GenerationError, ConfigurationError) as exc:
            logger.warning("Summary refresh skipped: %s", exc)
            return False

        self.summary.save(SummaryRecord(
            abstract=abstract.strip(),
            updated_at=datetime.now(timezone.utc),
            covered_turn_count=len(history),
        ))
        logger.info("Summary refreshed over %d turns", len(history))
        return True
