"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class AttachmentInfo:
    """Descriptor of an uploaded file; the bytes live in the attachment store."""

    name: str
    mime_type: str
    size: int
    filename: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttachmentInfo:
        return cls(
            name=data.get("name", data.get("filename", "attachment")),
            mime_type=data.get("mime_type", "application/octet-stream"),
            size=int(data.get("size", 0)),
            filename=data.get("filename", ""),
            path=data.get("path", ""),
        )


@dataclass(frozen=True, slots=True)
class ModelConfig:
    model_name: str
    display_name: str
    provider: str  # "openai" | "claude" | "groq" | "ollama" | "webhook"
    enabled: bool = False
    default_temperature: float = 0.7
    max_tokens: int = 2048
    system_prompt: str = "You are a helpful AI assistant."
    api_endpoint: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Chat:
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    id: str
    chat_id: str
    role: str  # "user" | "assistant" | "system"
    content: str
    created_at: str
    model_used: Optional[str] = None
    tokens_used: int = 0
    attachments: list[AttachmentInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "role": self.role,
            "content": self.content,
            "model_used": self.model_used,
            "tokens_used": self.tokens_used,
            "attachments": [a.to_dict() for a in self.attachments],
            "created_at": self.created_at,
        }
