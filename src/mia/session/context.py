"""Bounded generation context: rolling abstract plus the last few turns."""

from __future__ import annotations

from dataclasses import dataclass

from mia.session.store import SummaryStore, TurnStore

_NO_REPLY = "(no reply)"


@dataclass
class RecentContext:
    """Enrichment payload injected into the generation prompt."""

    abstract: str
    recent_turns_text: str
    total_turn_count: int

    def to_prompt_block(
        self,
        transcript: str,
        sentiment: str,
        reply_emotion: str,
    ) -> str:
        """Format as the user payload of the reply-generation call."""
        return "\n".join([
            "[Conversation summary]",
            self.abstract or "(no summary yet)",
            "",
            "[Recent exchanges]",
            self.recent_turns_text or "(no recent history)",
            "",
            "[Current turn]",
            transcript,
            "",
            "[Metadata]",
            f"- User sentiment: {sentiment}",
            f"- Reply emotion: {reply_emotion}",
            f"- Total exchanges: {self.total_turn_count}",
            "",
            "[Instructions]",
            "- Keep it brief (2-4 sentences); validate and accompany. No clinical advice.",
        ])


class ContextComposer:
    """Builds the prompt context from the session documents.

    Read-only: never mutates either store.
    """

    def __init__(self, turns: TurnStore, summary: SummaryStore, recent_turns: int = 6) -> None:
        self.turns = turns
        self.summary = summary
        self.recent_turns = recent_turns

    def build(self) -> RecentContext:
        history = self.turns.load_all()
        window = history[-self.recent_turns:] if self.recent_turns > 0 else []
        blocks = [
            f"[{t.key}]\nUser: {t.user_utterance}\nMIA: {t.reply_text or _NO_REPLY}"
            for t in window
        ]
        return RecentContext(
            abstract=self.summary.abstract,
            recent_turns_text="\n\n".join(blocks).strip(),
            total_turn_count=len(history),
        )
