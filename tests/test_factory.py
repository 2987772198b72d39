from __future__ import annotations

import pytest

from conftest import model_config
from omnichat.ai.factory import create_adapter
from omnichat.ai.providers.claude_adapter import ClaudeAdapter
from omnichat.ai.providers.groq_adapter import GroqAdapter
from omnichat.ai.providers.ollama_adapter import OllamaAdapter
from omnichat.ai.providers.openai_adapter import OpenAIAdapter
from omnichat.ai.providers.webhook_adapter import WebhookAdapter
from omnichat.config import AppConfig
from omnichat.core.errors import UnsupportedProviderError


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig.model_validate(
        {"providers": {"openai": {"api_key": "a"}, "anthropic": {"api_key": "b"}, "groq": {"api_key": "c"}}}
    )


@pytest.mark.parametrize(
    "provider, extra, expected",
    [
        ("openai", {}, OpenAIAdapter),
        ("claude", {}, ClaudeAdapter),
        ("groq", {}, GroqAdapter),
        ("ollama", {}, OllamaAdapter),
        ("webhook", {"api_endpoint": "https://hooks.example.com/x"}, WebhookAdapter),
    ],
)
async def test_selects_adapter_by_provider(store, settings, provider, extra, expected):
    adapter = create_adapter(model_config(provider=provider, **extra), store, settings)
    try:
        assert isinstance(adapter, expected)
        assert adapter.provider == provider
    finally:
        await adapter.aclose()


def test_unknown_provider(store, settings):
    with pytest.raises(UnsupportedProviderError) as exc_info:
        create_adapter(model_config(provider="mistral"), store, settings)
    assert exc_info.value.message == "Unsupported AI provider: mistral"
    assert exc_info.value.status_code == 500
