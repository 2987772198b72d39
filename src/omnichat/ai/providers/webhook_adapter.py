"""Generic webhook adapter (n8n-style workflows)."""

from __future__ import annotations

import uuid
from typing import Any

import httpx

from omnichat.ai.attachments import decode_text, encode_base64, file_error, image_error, is_image, read_attachment
from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import latest_user_content
from omnichat.ai.providers.http_errors import post_json
from omnichat.config import WebhookConfig
from omnichat.core.errors import FileAccessError, ProviderError
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import AttachmentInfo, ModelConfig

logger = get_logger(__name__)

REPLY_FIELDS = ("output", "content")
TOKEN_FIELDS = ("tokensUsed", "tokens_used")


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class WebhookAdapter(ProviderAdapter):
    """POSTs the whole conversation to the model's configured endpoint."""

    provider = "webhook"

    def __init__(
        self,
        config: ModelConfig,
        store: AttachmentStore,
        settings: WebhookConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, store)
        if not config.api_endpoint:
            raise ProviderError(self.provider, f"no endpoint configured for model {config.model_name}")
        self._endpoint = config.api_endpoint
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        payload = {
            "messages": history,
            "systemPrompt": options.system_prompt,
            "sessionId": new_session_id(),
            "chatInput": latest_user_content(history),
            "temperature": options.temperature,
            "maxTokens": options.max_tokens,
            "attachments": [await self._normalize(att) for att in options.attachments],
        }
        logger.debug("webhook_request", endpoint=self._endpoint, session_id=payload["sessionId"])
        data = await post_json(self._http, self.provider, self._endpoint, payload)

        # Workflow tools often answer with a one-element list
        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict):
            raise ProviderError(self.provider, "response is not a JSON object")

        content = next((data[f] for f in REPLY_FIELDS if data.get(f) is not None), None)
        if content is None:
            raise ProviderError(self.provider, "response has neither 'output' nor 'content'")

        tokens = next((data[f] for f in TOKEN_FIELDS if data.get(f) is not None), 0)
        try:
            tokens = max(int(tokens), 0)
        except (TypeError, ValueError):
            tokens = 0
        return AIResponse(content=str(content), tokens_used=tokens, raw=data)

    async def _normalize(self, att: AttachmentInfo) -> dict[str, Any]:
        entry: dict[str, Any] = {"name": att.name, "type": att.mime_type, "size": att.size}
        try:
            data = await read_attachment(self._store, att)
        except FileAccessError as e:
            logger.warning("attachment_unreadable", name=att.name, error=e.message)
            placeholder = image_error(att.name) if is_image(att.mime_type) else file_error(att.name)
            return {**entry, "encoding": "utf-8", "data": placeholder}
        if is_image(att.mime_type):
            return {**entry, "encoding": "base64", "data": encode_base64(data)}
        return {**entry, "encoding": "utf-8", "data": decode_text(data)}
