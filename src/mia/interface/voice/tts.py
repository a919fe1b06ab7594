"""Text-to-speech for MIA.

Two engines:

1. **ElevenLabs**: cloud API, the persona's production voice.  Writes MP3.
2. **Piper TTS**: fast, local, no API key.  Requires the ``piper-tts``
   package and a downloaded voice model (``.onnx`` + ``.json``).  Writes WAV.

Each engine writes the audio artifact into the session's audio directory
and returns its path; the lip-sync extractor reads it from there.
"""

from __future__ import annotations

import logging
import wave
from pathlib import Path
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from mia.config import Settings, get_settings
from mia.errors import ConfigurationError, SynthesisError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ElevenLabs TTS (cloud)
# ---------------------------------------------------------------------------

class ElevenLabsTTS:
    """Cloud text-to-speech via the ElevenLabs API.

    Parameters
    ----------
    api_key : str
        ElevenLabs API key.
    model_id : str
        ElevenLabs model.  The multilingual model handles Spanish.
    """

    suffix = ".mp3"

    def __init__(
        self,
        api_key: str = "",
        model_id: str = "eleven_multilingual_v2",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model_id = model_id
        self.client = httpx.Client(
            base_url="https://api.elevenlabs.io/v1",
            timeout=timeout,
            transport=transport,
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def synthesize(self, text: str, voice_id: str, dest: Path) -> Path:
        """Synthesize ``text`` to an MP3 file at ``dest`` (suffix forced)."""
        if not self.available:
            raise ConfigurationError(
                "ElevenLabs TTS not available: set ELEVEN_LABS_API_KEY"
            )
        target = Path(dest).with_suffix(self.suffix)
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
            },
        }
        try:
            resp = self._post(f"/text-to-speech/{voice_id}", payload)
        except httpx.HTTPError as exc:
            logger.exception("ElevenLabs synthesis failed")
            raise SynthesisError(f"ElevenLabs synthesis failed: {exc}") from exc

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(resp.content)
        return target

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=8),
        reraise=True,
    )
    def _post(self, path: str, payload: dict) -> httpx.Response:
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        resp = self.client.post(path, json=payload, headers=headers)
        resp.raise_for_status()
        return resp

    def close(self) -> None:
        self.client.close()


# ---------------------------------------------------------------------------
# Piper TTS (local)
# ---------------------------------------------------------------------------

class PiperTTS:
    """Local text-to-speech via Piper.

    Parameters
    ----------
    model_path : str or Path
        Path to the Piper ONNX voice model file.  The voice id passed to
        :meth:`synthesize` is ignored; the model is the voice.
    config_path : str or Path or None
        Path to the model's JSON config.  If None, assumes
        ``{model_path}.json`` exists alongside the model.
    """

    suffix = ".wav"

    def __init__(
        self,
        model_path: str | Path = "",
        config_path: str | Path | None = None,
    ) -> None:
        self.model_path = Path(model_path) if model_path else None
        self.config_path = Path(config_path) if config_path else None
        self._voice: object = None
        self._available: Optional[bool] = None

    @property
    def available(self) -> bool:
        if self._available is not None:
            return self._available
        try:
            import piper  # noqa: F401  # type: ignore[import-untyped]
            self._available = self.model_path is not None and self.model_path.exists()
        except ImportError:
            self._available = False
        return self._available

    def _ensure_voice(self) -> None:
        if self._voice is not None:
            return
        from piper import PiperVoice  # type: ignore[import-untyped]

        config = self.config_path or self.model_path.with_suffix(  # type: ignore[union-attr]
            self.model_path.suffix + ".json"  # type: ignore[union-attr]
        )
        self._voice = PiperVoice.load(str(self.model_path), config_path=str(config))
        logger.info("Loaded Piper voice: %s", self.model_path)

    def synthesize(self, text: str, voice_id: str, dest: Path) -> Path:
        if not self.available:
            raise ConfigurationError(
                "Piper TTS not available: check MIA_PIPER_MODEL_PATH and installation"
            )
        target = Path(dest).with_suffix(self.suffix)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_voice()
            with wave.open(str(target), "wb") as wf:
                wf.setnchannels(1)
                wf.setsampwidth(2)
                wf.setframerate(22050)
                self._voice.synthesize(text, wf)  # type: ignore[union-attr]
        except Exception as exc:
            logger.exception("Piper synthesis failed")
            raise SynthesisError(f"Piper synthesis failed: {exc}") from exc
        return target


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_synthesizer(settings: Optional[Settings] = None):
    """Create the best available TTS engine.

    Prefers Piper (local, no latency) if a model is configured and the
    library is installed, otherwise ElevenLabs.  An ElevenLabs engine
    without a key is still returned; it raises ConfigurationError on use
    so the pipeline can answer with an explanatory degraded reply.
    """
    settings = settings or get_settings()
    if settings.piper_model_path:
        piper = PiperTTS(model_path=settings.piper_model_path)
        if piper.available:
            logger.info("Using Piper TTS (local)")
            return piper
    logger.info("Using ElevenLabs TTS (cloud)")
    return ElevenLabsTTS(
        api_key=settings.elevenlabs_api_key,
        model_id=settings.elevenlabs_model,
        timeout=settings.tts_timeout,
    )
