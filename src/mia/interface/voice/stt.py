"""Speech-to-text for MIA.

Two backends:

1. **OpenAI Whisper API** (``whisper-1``), the default. Needs an OpenAI
   key and accepts the browser's webm/ogg recordings as-is.
2. **Local Whisper**: ``faster-whisper`` or ``openai-whisper`` if either
   is installed (``pip install 'mia-companion[local]'``).  Requires
   ``ffmpeg`` to decode compressed audio.

The browser sends audio as a ``data:audio/...;base64,`` URL; use
:func:`parse_data_url` to unpack it.
"""

from __future__ import annotations

import base64
import binascii
import importlib.util
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mia.config import Settings, get_settings
from mia.errors import ConfigurationError, TranscriptionError

logger = logging.getLogger(__name__)

_DEFAULT_MIME = "audio/webm"


# ---------------------------------------------------------------------------
# Data URL helpers
# ---------------------------------------------------------------------------

@dataclass
class AudioPayload:
    data: bytes
    mime_type: str
    extension: str

    @property
    def filename(self) -> str:
        return f"audio.{self.extension}"


def is_audio_data_url(message: object) -> bool:
    return isinstance(message, str) and message.startswith("data:audio")


def parse_data_url(data_url: str) -> AudioPayload:
    """Decode ``data:<mime>;base64,<payload>`` into raw bytes."""
    header, sep, payload = data_url.partition(",")
    if not sep:
        raise TranscriptionError("Malformed audio data URL: missing payload")
    mime = header[5:].split(";", 1)[0] if header.startswith("data:") else ""
    mime = mime or _DEFAULT_MIME
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise TranscriptionError(f"Malformed audio data URL: {exc}") from exc
    if not data:
        raise TranscriptionError("Audio payload is empty")
    return AudioPayload(data=data, mime_type=mime, extension=_extension_for(mime))


def _extension_for(mime_type: str) -> str:
    return mime_type.split("/", 1)[1] if "/" in mime_type else "webm"


# ---------------------------------------------------------------------------
# OpenAI Whisper API
# ---------------------------------------------------------------------------

class OpenAITranscriber:
    """Cloud transcription via the OpenAI audio API."""

    def __init__(
        self,
        api_key: str = "",
        language: str = "es",
        model: str = "whisper-1",
        base_url: str = "",
    ) -> None:
        self.api_key = api_key
        self.language = language
        self.model = model
        self.base_url = base_url
        self._client: Optional[object] = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self):  # -> openai.OpenAI
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url or None)
        return self._client

    def transcribe(self, audio: bytes, mime_type: str = _DEFAULT_MIME) -> str:
        if not self.available:
            raise ConfigurationError(
                "Transcription unavailable: set OPENAI_API_KEY or MIA_LLM_API_KEY"
            )
        filename = f"audio.{_extension_for(mime_type)}"
        try:
            resp = self._get_client().audio.transcriptions.create(  # type: ignore[attr-defined]
                model=self.model,
                file=(filename, audio, mime_type),
                language=self.language,
                response_format="json",
            )
        except Exception as exc:
            logger.exception("Whisper API transcription failed")
            raise TranscriptionError(f"Transcription failed: {exc}") from exc
        return (getattr(resp, "text", "") or "").strip()


# ---------------------------------------------------------------------------
# Local Whisper
# ---------------------------------------------------------------------------

def _detect_backend() -> str:
    """Detect which Whisper backend is installed.

    Uses ``importlib.util.find_spec`` so the heavy native libraries are
    only imported on first transcription.
    """
    if importlib.util.find_spec("faster_whisper") is not None:
        logger.info("STT backend: faster-whisper (detected via find_spec)")
        return "faster_whisper"

    if importlib.util.find_spec("whisper") is not None:
        logger.info("STT backend: openai-whisper (detected via find_spec)")
        return "openai_whisper"

    logger.warning(
        "No local Whisper backend found. Install faster-whisper or openai-whisper."
    )
    return "none"


def _resolve_device(device: str) -> str:
    if device != "auto":
        return device
    try:
        import torch
        return "cuda" if torch.cuda.is_available() else "cpu"
    except ImportError:
        return "cpu"


class WhisperSTT:
    """Local Whisper speech-to-text engine.

    Parameters
    ----------
    model_size : str
        ``tiny``, ``base``, ``small``, ``medium``, ``large-v3``.
    device : str
        ``cuda``, ``cpu`` or ``auto``.
    language : str
        ISO language code of the conversation.
    """

    def __init__(
        self,
        model_size: str = "base",
        device: str = "auto",
        language: str = "es",
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.language = language
        self._model: object = None
        self._backend = _detect_backend()

    @property
    def available(self) -> bool:
        return self._backend != "none"

    def _ensure_model(self) -> None:
        if self._model is not None:
            return
        device = _resolve_device(self.device)
        if self._backend == "faster_whisper":
            from faster_whisper import WhisperModel  # type: ignore[import-untyped]

            compute_type = "float16" if device == "cuda" else "int8"
            self._model = WhisperModel(self.model_size, device=device, compute_type=compute_type)
            logger.info("Loaded faster-whisper %s on %s (%s)", self.model_size, device, compute_type)
        else:
            import whisper  # type: ignore[import-untyped]

            self._model = whisper.load_model(self.model_size, device=device)
            logger.info("Loaded openai-whisper %s on %s", self.model_size, device)

    def transcribe(self, audio: bytes, mime_type: str = _DEFAULT_MIME) -> str:
        if not self.available:
            raise ConfigurationError(
                "Local transcription unavailable: install faster-whisper or openai-whisper"
            )

        # Both backends decode from a file path via ffmpeg.
        with tempfile.NamedTemporaryFile(
            suffix=f".{_extension_for(mime_type)}", delete=False
        ) as tmp:
            tmp.write(audio)
            tmp_path = Path(tmp.name)

        try:
            self._ensure_model()
            if self._backend == "faster_whisper":
                segments, _ = self._model.transcribe(  # type: ignore[union-attr]
                    str(tmp_path), language=self.language, beam_size=5
                )
                return " ".join(seg.text.strip() for seg in segments).strip()
            result = self._model.transcribe(  # type: ignore[union-attr]
                str(tmp_path), language=self.language
            )
            return result.get("text", "").strip()
        except Exception as exc:
            logger.exception("Local Whisper transcription failed")
            raise TranscriptionError(f"Transcription failed: {exc}") from exc
        finally:
            tmp_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_transcriber(settings: Optional[Settings] = None):
    """Build the transcriber selected by ``MIA_STT_BACKEND``."""
    settings = settings or get_settings()
    if settings.stt_backend == "local":
        return WhisperSTT(
            model_size=settings.whisper_model,
            device=settings.whisper_device,
            language=settings.stt_language,
        )
    return OpenAITranscriber(
        api_key=settings.transcription_api_key,
        language=settings.stt_language,
        base_url=settings.llm_base_url if settings.llm_provider == "openai" else "",
    )
