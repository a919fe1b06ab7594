"""Protocols for the external capabilities the reply pipeline chains together.

Concrete adapters live in :mod:`mia.compute`, :mod:`mia.classifiers` and
:mod:`mia.interface.voice`.  Tests substitute in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol


class Transcriber(Protocol):
    def transcribe(self, audio: bytes, mime_type: str) -> str:
        """Return the transcript.  Raises TranscriptionError."""
        ...


class SentimentClassifier(Protocol):
    def classify(self, text: str) -> str:
        """Return a sentiment label.  Raises ClassificationError."""
        ...


class EmotionPredictor(Protocol):
    def predict(self, text: str, sentiment: str) -> str:
        """Return the emotion the reply should carry.  Raises ClassificationError."""
        ...


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Return generated text.  Raises GenerationError or ConfigurationError."""
        ...


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str, voice_id: str, dest: Path) -> Path:
        """Write audio for ``text`` next to ``dest`` and return the artifact path.

        Raises SynthesisError or ConfigurationError.
        """
        ...


class VisemeExtractor(Protocol):
    def extract(self, audio_path: Path) -> dict[str, Any]:
        """Return Rhubarb-style ``{"metadata": ..., "mouthCues": [...]}``.

        Raises VisemeError.
        """
        ...
