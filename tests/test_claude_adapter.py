from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from conftest import model_config
from omnichat.ai.client import SendOptions
from omnichat.ai.providers.claude_adapter import ClaudeAdapter
from omnichat.config import AnthropicConfig
from omnichat.core.errors import ProviderError
from omnichat.storage.models import AttachmentInfo


def _mock_client(text="Looks like a chart.") -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text=text)],
            usage=SimpleNamespace(input_tokens=30, output_tokens=12),
            stop_reason="end_turn",
        )
    )
    return client


def _adapter(store, client) -> ClaudeAdapter:
    return ClaudeAdapter(
        model_config("claude-3-haiku", "claude"),
        store,
        AnthropicConfig(api_key="test-key"),
        client=client,
    )


async def test_system_prompt_is_passed_separately(store):
    client = _mock_client()
    history = [
        {"role": "system", "content": "Earlier instructions."},
        {"role": "user", "content": "Hi"},
    ]

    response = await _adapter(store, client).send_message(history, SendOptions(system_prompt="Be kind."))

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Be kind.\n\nEarlier instructions."
    assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
    assert response.tokens_used == 42


async def test_image_becomes_base64_block(store):
    client = _mock_client()
    image = await store.save(b"\x89PNG", "chart.png", "image/png")

    await _adapter(store, client).send_message(
        [{"role": "user", "content": "Describe"}], SendOptions(attachments=[image])
    )

    blocks = client.messages.create.call_args.kwargs["messages"][-1]["content"]
    assert blocks[0] == {"type": "text", "text": "Describe"}
    assert blocks[1]["type"] == "image"
    assert blocks[1]["source"] == {"type": "base64", "media_type": "image/png", "data": "iVBORw=="}


async def test_unreadable_image_is_replaced_and_send_succeeds(store, tmp_path):
    client = _mock_client()
    missing = AttachmentInfo("chart.png", "image/png", 4, "chart.png", str(tmp_path / "chart.png"))

    response = await _adapter(store, client).send_message(
        [{"role": "user", "content": "Describe"}], SendOptions(attachments=[missing])
    )

    assert response.content == "Looks like a chart."
    blocks = client.messages.create.call_args.kwargs["messages"][-1]["content"]
    assert {"type": "text", "text": "[Error processing image: chart.png]"} in blocks


async def test_text_file_is_inlined(store):
    client = _mock_client()
    notes = await store.save(b"line one", "notes.txt", "text/plain")

    await _adapter(store, client).send_message(
        [{"role": "user", "content": "Summarize"}], SendOptions(attachments=[notes])
    )

    blocks = client.messages.create.call_args.kwargs["messages"][-1]["content"]
    assert blocks[1] == {"type": "text", "text": "[File: notes.txt]\nline one"}


async def test_status_error_maps_to_provider_error(store):
    client = _mock_client()
    client.messages.create = AsyncMock(
        side_effect=anthropic.APIStatusError(
            "overloaded",
            response=httpx.Response(529, request=httpx.Request("POST", "https://api.anthropic.com")),
            body={"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )
    )

    with pytest.raises(ProviderError) as exc_info:
        await _adapter(store, client).send_message([{"role": "user", "content": "Hi"}], SendOptions())

    assert exc_info.value.upstream_status == 529
    assert exc_info.value.detail == "Overloaded"


async def test_reply_without_text_is_provider_error(store):
    client = _mock_client()
    client.messages.create.return_value.content = []

    with pytest.raises(ProviderError, match="no text content"):
        await _adapter(store, client).send_message([{"role": "user", "content": "Hi"}], SendOptions())
