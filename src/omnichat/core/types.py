"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    OPENAI = "openai"
    CLAUDE = "claude"
    GROQ = "groq"
    OLLAMA = "ollama"
    WEBHOOK = "webhook"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
