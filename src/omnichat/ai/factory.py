"""Adapter factory: model configuration to provider adapter."""

from __future__ import annotations

from omnichat.ai.client import ProviderAdapter
from omnichat.config import AppConfig
from omnichat.core.errors import UnsupportedProviderError
from omnichat.core.types import Provider
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import ModelConfig


def create_adapter(config: ModelConfig, store: AttachmentStore, settings: AppConfig) -> ProviderAdapter:
    """Instantiate the adapter for ``config.provider``.

    Model configs are operator-editable, so an unknown provider is possible
    and raises UnsupportedProviderError.
    """
    providers = settings.providers
    match config.provider:
        case Provider.OPENAI:
            from omnichat.ai.providers.openai_adapter import OpenAIAdapter

            return OpenAIAdapter(config, store, providers.openai, settings.assistants)
        case Provider.CLAUDE:
            from omnichat.ai.providers.claude_adapter import ClaudeAdapter

            return ClaudeAdapter(config, store, providers.anthropic)
        case Provider.GROQ:
            from omnichat.ai.providers.groq_adapter import GroqAdapter

            return GroqAdapter(config, store, providers.groq)
        case Provider.OLLAMA:
            from omnichat.ai.providers.ollama_adapter import OllamaAdapter

            return OllamaAdapter(config, store, providers.ollama)
        case Provider.WEBHOOK:
            from omnichat.ai.providers.webhook_adapter import WebhookAdapter

            return WebhookAdapter(config, store, providers.webhook)
        case _:
            raise UnsupportedProviderError(config.provider)
