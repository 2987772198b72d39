"""Ollama adapter: one flattened prompt against /api/generate."""

from __future__ import annotations

from typing import Any

import httpx

from omnichat.ai.attachments import (
    attachment_as_text,
    encode_base64,
    image_error,
    image_unsupported,
    is_image,
    read_attachment,
)
from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import flatten, latest_user_content, replace_latest_user_content
from omnichat.ai.providers.http_errors import post_json
from omnichat.config import OllamaConfig
from omnichat.core.errors import FileAccessError, ProviderError
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import ModelConfig

logger = get_logger(__name__)

MODEL_PREFIX = "ollama-"
VISION_MARKERS = ("llava", "vision", "bakllava", "moondream")


class OllamaAdapter(ProviderAdapter):
    """Local Ollama backend. Ollama reports no token usage, so tokens are always 0."""

    provider = "ollama"

    def __init__(
        self,
        config: ModelConfig,
        store: AttachmentStore,
        settings: OllamaConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, store)
        self._base_url = settings.url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout))

    @property
    def upstream_model(self) -> str:
        return self.model_name.removeprefix(MODEL_PREFIX)

    @property
    def supports_vision(self) -> bool:
        name = self.model_name.lower()
        return any(marker in name for marker in VISION_MARKERS)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        messages = list(history)
        images: list[str] = []
        if options.attachments:
            text = latest_user_content(history)
            parts = [text] if text else []
            for att in options.attachments:
                if not is_image(att.mime_type):
                    parts.append(await attachment_as_text(self._store, att))
                elif not self.supports_vision:
                    parts.append(image_unsupported(att.name))
                else:
                    try:
                        images.append(encode_base64(await read_attachment(self._store, att)))
                    except FileAccessError as e:
                        logger.warning("attachment_unreadable", name=att.name, error=e.message)
                        parts.append(image_error(att.name))
            messages = replace_latest_user_content(messages, "\n\n".join(parts))

        payload: dict[str, Any] = {
            "model": self.upstream_model,
            "prompt": flatten(messages, options.system_prompt),
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if images:
            payload["images"] = images

        logger.debug("api_request", provider=self.provider, model=self.upstream_model, images=len(images))
        data = await post_json(self._http, self.provider, f"{self._base_url}/api/generate", payload)
        content = data.get("response") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise ProviderError(self.provider, "response is missing the 'response' field")
        return AIResponse(content=content, tokens_used=0, raw=data)
