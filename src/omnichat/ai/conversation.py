"""Convert stored messages into provider-neutral conversation history."""

from __future__ import annotations

from typing import Any

from omnichat.storage.models import Message


def build_history(messages: list[Message]) -> list[dict[str, Any]]:
    """Role and content of every message, oldest first."""
    return [{"role": m.role, "content": m.content} for m in messages]


def latest_user_index(history: list[dict[str, Any]]) -> int | None:
    for idx in range(len(history) - 1, -1, -1):
        if history[idx].get("role") == "user":
            return idx
    return None


def latest_user_content(history: list[dict[str, Any]]) -> str:
    idx = latest_user_index(history)
    if idx is None:
        return ""
    content = history[idx].get("content", "")
    return content if isinstance(content, str) else ""


def replace_latest_user_content(history: list[dict[str, Any]], content: Any) -> list[dict[str, Any]]:
    """Return a copy of *history* whose latest user message carries *content*."""
    messages = [dict(m) for m in history]
    idx = latest_user_index(messages)
    if idx is None:
        messages.append({"role": "user", "content": content})
    else:
        messages[idx]["content"] = content
    return messages


def flatten(history: list[dict[str, Any]], system_prompt: str = "") -> str:
    """One newline-joined prompt: system prompt, blank line, ``role: content`` lines."""
    lines = "\n".join(f"{m['role']}: {m['content']}" for m in history)
    if system_prompt:
        return f"{system_prompt}\n\n{lines}"
    return lines
