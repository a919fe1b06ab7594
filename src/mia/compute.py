"""Text generation for MIA's replies and rolling summaries.

One system prompt (the persona or the summarizer brief) plus one user
payload in, plain text out.  ``MIA_LLM_PROVIDER`` picks OpenAI chat
completions or Anthropic messages.
"""

from __future__ import annotations

import logging
from typing import Optional

from mia.config import Settings, get_settings
from mia.errors import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)


class ComputeClient:
    """``TextGenerator`` backed by the configured LLM provider.

    SDK clients are built lazily on the first call, so a missing key only
    surfaces when MIA actually tries to speak::

        text = ComputeClient(settings).generate(REPLY_SYSTEM_PROMPT, payload)
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._openai_client: Optional[object] = None
        self._anthropic_client: Optional[object] = None

    @property
    def provider(self) -> str:
        return self.settings.llm_provider

    @property
    def model(self) -> str:
        return self.settings.resolved_llm_model

    @property
    def available(self) -> bool:
        return self.settings.generation_available

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Return the model's reply to ``user_prompt`` under ``system_prompt``.

        Raises ``ConfigurationError`` when the provider has no API key and
        ``GenerationError`` when the API call fails.
        """
        if not self.available:
            raise ConfigurationError(
                f"Text generation unavailable: no API key for provider "
                f"'{self.provider}'.  Set MIA_LLM_API_KEY, OPENAI_API_KEY "
                f"or ANTHROPIC_API_KEY."
            )
        max_tokens = max_tokens or self.settings.llm_max_tokens
        if temperature is None:
            temperature = self.settings.llm_temperature

        if self.provider == "anthropic":
            return self._generate_anthropic(
                system_prompt, user_prompt, max_tokens, temperature
            )
        return self._generate_openai(
            system_prompt, user_prompt, max_tokens, temperature
        )

    # ------------------------------------------------------------------
    # OpenAI backend
    # ------------------------------------------------------------------
    def _get_openai_client(self):  # -> openai.OpenAI
        if self._openai_client is None:
            from openai import OpenAI

            self._openai_client = OpenAI(
                api_key=self.settings.resolved_llm_api_key,
                base_url=self.settings.llm_base_url or None,
            )
        return self._openai_client

    def _generate_openai(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            client = self._get_openai_client()
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return response.choices[0].message.content or ""
        except Exception as exc:
            logger.exception("OpenAI generation call failed")
            raise GenerationError(f"OpenAI generation call failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Anthropic backend
    # ------------------------------------------------------------------
    def _get_anthropic_client(self):  # -> anthropic.Anthropic
        if self._anthropic_client is None:
            try:
                import anthropic
            except ImportError as exc:
                raise ConfigurationError(
                    "anthropic SDK not installed.  Run: pip install 'mia-companion[anthropic]'"
                ) from exc
            self._anthropic_client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
            )
        return self._anthropic_client

    def _generate_anthropic(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        client = self._get_anthropic_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
            )
            parts = []
            for block in response.content:
                if block.type == "text":
                    parts.append(block.text)
            return "\n".join(parts)
        except Exception as exc:
            logger.exception("Anthropic generation call failed")
            raise GenerationError(f"Anthropic generation call failed: {exc}") from exc
