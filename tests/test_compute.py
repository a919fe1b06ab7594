"""Tests for the dual-provider ComputeClient."""

from types import SimpleNamespace

import pytest

from mia.compute import ComputeClient
from mia.config import Settings
from mia.errors import ConfigurationError, GenerationError


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with specific overrides (no keys by default)."""
    defaults = {
        "MIA_LLM_PROVIDER": "openai",
        "MIA_LLM_API_KEY": "",
        "MIA_LLM_MODEL": "",
        "OPENAI_API_KEY": "",
        "ANTHROPIC_API_KEY": "",
        "ANTHROPIC_MODEL": "claude-sonnet-4-20250514",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


# ------------------------------------------------------------------
# Provider routing
# ------------------------------------------------------------------
class TestProviderRouting:
    def test_openai_provider_selected(self):
        s = _make_settings(MIA_LLM_API_KEY="sk-test")
        client = ComputeClient(settings=s)
        assert client.provider == "openai"
        assert client.model == "gpt-4o-mini"
        assert client.available is True

    def test_openai_key_fallback(self):
        s = _make_settings(OPENAI_API_KEY="sk-env")
        assert ComputeClient(settings=s).available is True

    def test_anthropic_provider_selected(self):
        s = _make_settings(MIA_LLM_PROVIDER="anthropic", ANTHROPIC_API_KEY="sk-ant-test")
        client = ComputeClient(settings=s)
        assert client.provider == "anthropic"
        assert client.model == "claude-sonnet-4-20250514"
        assert client.available is True

    def test_custom_openai_model(self):
        s = _make_settings(MIA_LLM_API_KEY="sk-test", MIA_LLM_MODEL="gpt-4o")
        assert ComputeClient(settings=s).model == "gpt-4o"


# ------------------------------------------------------------------
# Unavailability
# ------------------------------------------------------------------
class TestComputeUnavailable:
    def test_openai_no_key(self):
        client = ComputeClient(settings=_make_settings())
        assert client.available is False
        with pytest.raises(ConfigurationError, match="no API key"):
            client.generate("system", "user")

    def test_anthropic_no_key(self):
        s = _make_settings(MIA_LLM_PROVIDER="anthropic", OPENAI_API_KEY="sk-wrong-provider")
        client = ComputeClient(settings=s)
        assert client.available is False
        with pytest.raises(ConfigurationError, match="no API key"):
            client.generate("system", "user")


# ------------------------------------------------------------------
# OpenAI call shape
# ------------------------------------------------------------------
class TestOpenAIGeneration:
    def test_messages_and_parameters(self):
        completions = _FakeCompletions(content="Estoy contigo.")
        client = ComputeClient(settings=_make_settings(MIA_LLM_API_KEY="sk-test"))
        client._openai_client = _fake_openai(completions)

        assert client.generate("persona", "payload") == "Estoy contigo."
        assert completions.kwargs["model"] == "gpt-4o-mini"
        assert completions.kwargs["messages"] == [
            {"role": "system", "content": "persona"},
            {"role": "user", "content": "payload"},
        ]
        assert completions.kwargs["temperature"] == 0.6
        assert completions.kwargs["max_tokens"] == 1024

    def test_overrides(self):
        completions = _FakeCompletions(content="ok")
        client = ComputeClient(settings=_make_settings(MIA_LLM_API_KEY="sk-test"))
        client._openai_client = _fake_openai(completions)
        client.generate("s", "u", max_tokens=50, temperature=0.0)
        assert completions.kwargs["max_tokens"] == 50
        assert completions.kwargs["temperature"] == 0.0

    def test_null_content_is_empty_string(self):
        client = ComputeClient(settings=_make_settings(MIA_LLM_API_KEY="sk-test"))
        client._openai_client = _fake_openai(_FakeCompletions(content=None))
        assert client.generate("s", "u") == ""

    def test_api_failure_is_generation_error(self):
        client = ComputeClient(settings=_make_settings(MIA_LLM_API_KEY="sk-test"))
        client._openai_client = _fake_openai(_FakeCompletions(error=RuntimeError("429")))
        with pytest.raises(GenerationError, match="429"):
            client.generate("s", "u")


# ------------------------------------------------------------------
# Anthropic call shape
# ------------------------------------------------------------------
class TestAnthropicGeneration:
    def test_text_blocks_joined(self):
        calls = {}

        def create(**kwargs):
            calls.update(kwargs)
            return SimpleNamespace(content=[
                SimpleNamespace(type="text", text="Hola."),
                SimpleNamespace(type="tool_use", text="ignored"),
                SimpleNamespace(type="text", text="Aquí estoy."),
            ])

        s = _make_settings(MIA_LLM_PROVIDER="anthropic", ANTHROPIC_API_KEY="sk-ant-test")
        client = ComputeClient(settings=s)
        client._anthropic_client = SimpleNamespace(messages=SimpleNamespace(create=create))

        assert client.generate("persona", "payload") == "Hola.\nAquí estoy."
        assert calls["system"] == "persona"
        assert calls["messages"] == [{"role": "user", "content": "payload"}]
