"""Central configuration loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM provider (OpenAI by default)
    llm_provider: Literal["openai", "anthropic"] = Field(
        default="openai", alias="MIA_LLM_PROVIDER"
    )
    llm_api_key: str = Field(default="", alias="MIA_LLM_API_KEY")
    llm_base_url: str = Field(default="", alias="MIA_LLM_BASE_URL")
    llm_model: str = Field(default="", alias="MIA_LLM_MODEL")
    llm_max_tokens: int = Field(default=1024, alias="MIA_LLM_MAX_TOKENS")
    llm_temperature: float = Field(default=0.6, alias="MIA_LLM_TEMPERATURE")

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")

    # Anthropic-native LLM settings
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")

    # Speech-to-text
    stt_backend: Literal["openai", "local"] = Field(default="openai", alias="MIA_STT_BACKEND")
    stt_language: str = Field(default="es", alias="MIA_STT_LANGUAGE")
    whisper_model: str = Field(default="base", alias="MIA_WHISPER_MODEL")
    whisper_device: str = Field(default="auto", alias="MIA_WHISPER_DEVICE")

    # Local sentiment / emotion model service
    models_url: str = Field(default="http://localhost:8001", alias="MIA_MODELS_URL")
    classifier_timeout: float = Field(default=10.0, alias="MIA_CLASSIFIER_TIMEOUT")

    # Text-to-speech
    elevenlabs_api_key: str = Field(default="", alias="ELEVEN_LABS_API_KEY")
    voice_id: str = Field(default="5vkxOzoz40FrElmLP4P7", alias="MIA_VOICE_ID")
    elevenlabs_model: str = Field(default="eleven_multilingual_v2", alias="MIA_ELEVENLABS_MODEL")
    piper_model_path: str = Field(default="", alias="MIA_PIPER_MODEL_PATH")
    tts_timeout: float = Field(default=60.0, alias="MIA_TTS_TIMEOUT")

    # Lip-sync
    lipsync_backend: Literal["rhubarb", "amplitude"] = Field(
        default="rhubarb", alias="MIA_LIPSYNC_BACKEND"
    )
    rhubarb_path: str = Field(default="rhubarb", alias="MIA_RHUBARB_PATH")
    ffmpeg_path: str = Field(default="ffmpeg", alias="MIA_FFMPEG_PATH")

    # Session
    data_dir: Path = Field(default=_PROJECT_ROOT / "data", alias="MIA_DATA_DIR")
    summary_threshold_chars: int = Field(
        default=10_000, alias="MIA_SUMMARY_THRESHOLD_CHARS",
        description="Serialized history size above which the rolling summary is refreshed",
    )
    recent_turns: int = Field(
        default=6, alias="MIA_RECENT_TURNS",
        description="Turns included verbatim in the generation prompt",
    )
    inactivity_timeout: float = Field(
        default=300.0, alias="MIA_INACTIVITY_TIMEOUT",
        description="Seconds without activity before the session is wiped",
    )
    liveness_interval: float = Field(default=30.0, alias="MIA_LIVENESS_INTERVAL")
    language: str = Field(default="Spanish", alias="MIA_LANGUAGE")
    greeting: str = Field(
        default="Estoy aquí. ¿Qué te gustaría contarme?", alias="MIA_GREETING"
    )

    # Server
    host: str = Field(default="127.0.0.1", alias="MIA_HOST")
    port: int = Field(default=3000, alias="MIA_PORT")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="MIA_CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", alias="MIA_LOG_LEVEL")

    model_config = {
        "env_file": str(_PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    # Derived LLM settings (provider-aware defaults)
    @property
    def resolved_llm_api_key(self) -> str:
        """Return the API key for the active provider.

        For anthropic: uses ANTHROPIC_API_KEY directly.
        For openai: uses MIA_LLM_API_KEY, falling back to OPENAI_API_KEY.
        """
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.llm_api_key or self.openai_api_key

    @property
    def transcription_api_key(self) -> str:
        """OpenAI key for the Whisper API, whatever the generation provider."""
        if self.llm_provider == "openai" and self.llm_api_key:
            return self.llm_api_key
        return self.openai_api_key

    @property
    def resolved_llm_model(self) -> str:
        """Return the model, defaulting based on provider."""
        if self.llm_provider == "anthropic":
            return self.anthropic_model
        return self.llm_model or "gpt-4o-mini"

    @property
    def generation_available(self) -> bool:
        """True when the selected provider has an API key configured."""
        return bool(self.resolved_llm_api_key)

    @property
    def tts_available(self) -> bool:
        return bool(self.elevenlabs_api_key or self.piper_model_path)

    # Derived paths
    @property
    def history_dir(self) -> Path:
        return self.data_dir / "history"

    @property
    def history_path(self) -> Path:
        return self.history_dir / "history.json"

    @property
    def summary_path(self) -> Path:
        return self.history_dir / "summary.json"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"


def get_settings() -> Settings:
    """Return a cached Settings instance."""
    if not hasattr(get_settings, "_instance"):
        get_settings._instance = Settings()  # type: ignore[attr-defined]
    return get_settings._instance  # type: ignore[attr-defined]
