"""Failure taxonomy for the reply pipeline and its collaborators.

Optional-stage failures are recovered at their call site with a default
label.  Essential-stage failures abort the whole request and surface as a
single error result.  Corrupt persisted state is treated as empty.
Configuration problems become a degraded, explanatory reply.
"""

from __future__ import annotations


class MiaError(Exception):
    """Base class for all MIA errors."""


class OptionalStageError(MiaError):
    """A best-effort stage failed; the caller substitutes a default."""


class ClassificationError(OptionalStageError):
    """Sentiment or reply-emotion classification failed."""


class EssentialStageError(MiaError):
    """A stage the reply cannot be produced without failed."""

    stage = "pipeline"


class TranscriptionError(EssentialStageError):
    stage = "transcription"


class GenerationError(EssentialStageError):
    stage = "generation"


class SynthesisError(EssentialStageError):
    stage = "synthesis"


class VisemeError(EssentialStageError):
    stage = "lipsync"


class CorruptStateError(MiaError):
    """A persisted session document could not be parsed."""


class ConfigurationError(MiaError):
    """An essential collaborator is missing credentials or binaries."""
