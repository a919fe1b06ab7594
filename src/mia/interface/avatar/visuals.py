"""Emotion label -> (facial expression, talking animation) for the avatar.

The frontend plays one of three talking clips and blends one facial
expression.  Expressions come from a fixed table; the animation rotates
with the turn index so consecutive replies look different without any
stored state.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_EXPRESSION = "default"

# Labels arrive from the emotion model in Spanish; English aliases are
# accepted as well.
_EXPRESSIONS: dict[str, str] = {
    "alegría": "smile",
    "alegria": "smile",
    "joy": "smile",
    "amor": "smile",
    "love": "smile",
    "tristeza": "sad",
    "sadness": "sad",
    "ira": "angry",
    "anger": "angry",
    "miedo": "surprised",
    "fear": "surprised",
    "sorpresa": "surprised",
    "surprise": "surprised",
}

TALKING_ANIMATIONS = ("Talking_0", "Talking_1", "Talking_2")


@dataclass(frozen=True)
class Visuals:
    facial_expression: str
    animation: str


def facial_expression_for(emotion: str | None) -> str:
    return _EXPRESSIONS.get((emotion or "").lower(), DEFAULT_EXPRESSION)


def talking_animation_for(index: int) -> str:
    return TALKING_ANIMATIONS[index % len(TALKING_ANIMATIONS)]


def map_emotion_to_visuals(emotion: str | None, index: int) -> Visuals:
    """Pure mapping used to annotate every reply message."""
    return Visuals(
        facial_expression=facial_expression_for(emotion),
        animation=talking_animation_for(index),
    )
