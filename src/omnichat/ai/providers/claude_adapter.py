"""Anthropic Claude adapter using the official SDK."""

from __future__ import annotations

from typing import Any

import anthropic

from omnichat.ai.attachments import (
    attachment_as_text,
    binary_notice,
    encode_base64,
    image_error,
    is_image,
    read_attachment,
)
from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import latest_user_content, latest_user_index
from omnichat.config import AnthropicConfig
from omnichat.core.errors import FileAccessError, ProviderError
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import AttachmentInfo, ModelConfig

logger = get_logger(__name__)

SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


def _status_detail(error: anthropic.APIStatusError) -> str:
    body = error.body if isinstance(error.body, dict) else {}
    inner = body.get("error", body)
    detail = inner.get("message") if isinstance(inner, dict) else None
    return detail or error.message


class ClaudeAdapter(ProviderAdapter):
    """Claude backend: images inline as base64 blocks, PDFs and text files inline as text."""

    provider = "claude"

    def __init__(
        self,
        config: ModelConfig,
        store: AttachmentStore,
        settings: AnthropicConfig,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        super().__init__(config, store)
        self._owns_client = client is None
        self._client = client or anthropic.AsyncAnthropic(
            api_key=settings.api_key,
            base_url=settings.base_url,
            max_retries=settings.max_retries,
            timeout=settings.timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        system_parts = [options.system_prompt] if options.system_prompt else []
        messages: list[dict[str, Any]] = []
        # The Messages API takes the system prompt separately
        for m in history:
            if m["role"] == "system":
                system_parts.append(m["content"])
            else:
                messages.append({"role": m["role"], "content": m["content"] or "(no text)"})

        if options.attachments:
            idx = latest_user_index(messages)
            blocks = await self._content_blocks(latest_user_content(history), options.attachments)
            if idx is None:
                messages.append({"role": "user", "content": blocks})
            else:
                messages[idx]["content"] = blocks

        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": options.max_tokens,
            "messages": messages,
            "temperature": options.temperature,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        logger.debug("api_request", provider=self.provider, model=self.model_name, message_count=len(messages))
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            raise ProviderError(self.provider, _status_detail(e), e.status_code) from e
        except anthropic.APIError as e:
            raise ProviderError(self.provider, e.message or type(e).__name__) from e

        texts = [b.text for b in response.content if getattr(b, "type", None) == "text"]
        if not texts:
            raise ProviderError(self.provider, "response contained no text content")

        usage = response.usage
        tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0) if usage else 0
        logger.debug(
            "api_response",
            provider=self.provider,
            model=self.model_name,
            input_tokens=getattr(usage, "input_tokens", 0),
            output_tokens=getattr(usage, "output_tokens", 0),
            stop_reason=response.stop_reason,
        )
        return AIResponse(content="".join(texts), tokens_used=tokens, raw=response)

    async def _content_blocks(self, text: str, attachments: list[AttachmentInfo]) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        if text:
            blocks.append({"type": "text", "text": text})
        for att in attachments:
            if not is_image(att.mime_type):
                blocks.append({"type": "text", "text": await attachment_as_text(self._store, att)})
                continue
            if att.mime_type.lower() not in SUPPORTED_IMAGE_TYPES:
                blocks.append({"type": "text", "text": binary_notice(att)})
                continue
            try:
                data = await read_attachment(self._store, att)
            except FileAccessError as e:
                logger.warning("attachment_unreadable", name=att.name, error=e.message)
                blocks.append({"type": "text", "text": image_error(att.name)})
                continue
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": att.mime_type.lower(),
                        "data": encode_base64(data),
                    },
                }
            )
        return blocks
