"""Provider adapter abstraction shared by every AI backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import AttachmentInfo, ModelConfig


@dataclass
class AIResponse:
    """Unified response from any provider."""

    content: str
    tokens_used: int = 0
    raw: Any = None  # Provider-specific raw response


@dataclass
class SendOptions:
    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: str = ""
    # Attachments of the latest user message
    attachments: list[AttachmentInfo] = field(default_factory=list)


class ProviderAdapter(ABC):
    """Normalizes one provider's wire protocol into ``send_message``.

    To add a provider, subclass this, implement ``send_message`` and add a
    case to ``omnichat.ai.factory.create_adapter``.
    """

    provider: ClassVar[str]

    def __init__(self, config: ModelConfig, store: AttachmentStore):
        self.config = config
        self._store = store

    @property
    def model_name(self) -> str:
        return self.config.model_name

    @abstractmethod
    async def send_message(
        self,
        history: list[dict[str, Any]],
        options: SendOptions,
    ) -> AIResponse:
        """Send the conversation (oldest first) and return the reply.

        Raises ProviderError when the upstream call fails, times out or
        returns a malformed payload.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
