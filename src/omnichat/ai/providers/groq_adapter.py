"""Groq adapter over its OpenAI-compatible endpoint. Text only, no vision."""

from __future__ import annotations

from typing import Any

from openai import AsyncOpenAI

from omnichat.ai.attachments import attachment_as_text, image_unsupported, is_image
from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import latest_user_content, replace_latest_user_content
from omnichat.ai.providers.openai_adapter import create_chat_completion
from omnichat.config import GroqConfig
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import ModelConfig


class GroqAdapter(ProviderAdapter):
    provider = "groq"

    def __init__(
        self,
        config: ModelConfig,
        store: AttachmentStore,
        settings: GroqConfig,
        client: AsyncOpenAI | None = None,
    ):
        super().__init__(config, store)
        self._owns_client = client is None
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            max_retries=settings.max_retries,
            timeout=settings.timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        messages = list(history)
        if options.attachments:
            text = latest_user_content(history)
            parts = [text] if text else []
            for att in options.attachments:
                if is_image(att.mime_type):
                    parts.append(image_unsupported(att.name))
                else:
                    parts.append(await attachment_as_text(self._store, att))
            messages = replace_latest_user_content(messages, "\n\n".join(parts))
        if options.system_prompt:
            messages = [{"role": "system", "content": options.system_prompt}, *messages]
        return await create_chat_completion(
            self._client, self.provider, self.model_name, messages, options
        )
