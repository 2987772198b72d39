"""Groq, Ollama and webhook adapters against mocked upstreams."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import model_config
from omnichat.ai.client import SendOptions
from omnichat.ai.providers.groq_adapter import GroqAdapter
from omnichat.ai.providers.ollama_adapter import OllamaAdapter
from omnichat.ai.providers.webhook_adapter import WebhookAdapter
from omnichat.config import GroqConfig, OllamaConfig, WebhookConfig
from omnichat.core.errors import ProviderError

HISTORY = [
    {"role": "user", "content": "Hello"},
    {"role": "assistant", "content": "Hi there"},
    {"role": "user", "content": "Look at this"},
]


class Upstream:
    """httpx.MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code: int = 200, body=None, text: str | None = None):
        self.status_code = status_code
        self.body = body
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def _http(upstream: Upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


class TestGroq:
    async def test_images_are_described_not_sent(self, store):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))],
                usage=SimpleNamespace(total_tokens=9),
            )
        )
        image = await store.save(b"\x89PNG", "cat.png", "image/png")
        adapter = GroqAdapter(
            model_config("llama-3.3-70b-versatile", "groq"), store, GroqConfig(api_key="k"), client=client
        )

        response = await adapter.send_message(HISTORY, SendOptions(system_prompt="sys", attachments=[image]))

        assert response.tokens_used == 9
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[-1]["content"] == (
            "Look at this\n\n[Image attached: cat.png (image analysis is not supported by this model)]"
        )


class TestOllama:
    async def test_flattened_prompt_and_zero_tokens(self, store):
        upstream = Upstream(body={"response": "Hey!", "done": True})
        adapter = OllamaAdapter(
            model_config("ollama-llama3.1:latest", "ollama"),
            store,
            OllamaConfig(url="http://ollama.local:11434/"),
            http_client=_http(upstream),
        )

        response = await adapter.send_message(HISTORY, SendOptions(system_prompt="sys", temperature=0.2, max_tokens=64))

        assert response.content == "Hey!"
        assert response.tokens_used == 0
        assert str(upstream.requests[0].url) == "http://ollama.local:11434/api/generate"
        payload = upstream.last_json
        assert payload["model"] == "llama3.1:latest"
        assert payload["prompt"] == "sys\n\nuser: Hello\nassistant: Hi there\nuser: Look at this"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.2, "num_predict": 64}
        assert "images" not in payload

    async def test_vision_model_sends_images(self, store):
        upstream = Upstream(body={"response": "A cat."})
        image = await store.save(b"abc", "cat.png", "image/png")
        adapter = OllamaAdapter(
            model_config("ollama-llava:7b", "ollama"), store, OllamaConfig(), http_client=_http(upstream)
        )

        await adapter.send_message(HISTORY, SendOptions(attachments=[image]))

        assert upstream.last_json["images"] == ["YWJj"]

    async def test_text_model_describes_images(self, store):
        upstream = Upstream(body={"response": "ok"})
        image = await store.save(b"abc", "cat.png", "image/png")
        adapter = OllamaAdapter(
            model_config("ollama-llama3.1:latest", "ollama"), store, OllamaConfig(), http_client=_http(upstream)
        )

        await adapter.send_message(HISTORY, SendOptions(attachments=[image]))

        assert "images" not in upstream.last_json
        assert "[Image attached: cat.png" in upstream.last_json["prompt"]

    async def test_upstream_error(self, store):
        upstream = Upstream(status_code=500, text="model not loaded")
        adapter = OllamaAdapter(
            model_config("ollama-llama3.1:latest", "ollama"), store, OllamaConfig(), http_client=_http(upstream)
        )

        with pytest.raises(ProviderError) as exc_info:
            await adapter.send_message(HISTORY, SendOptions())

        assert exc_info.value.upstream_status == 500
        assert "model not loaded" in exc_info.value.message

    async def test_missing_response_field(self, store):
        adapter = OllamaAdapter(
            model_config("ollama-llama3.1:latest", "ollama"),
            store,
            OllamaConfig(),
            http_client=_http(Upstream(body={"error": "?"})),
        )
        with pytest.raises(ProviderError, match="'response'"):
            await adapter.send_message(HISTORY, SendOptions())


class TestWebhook:
    def _adapter(self, store, upstream, endpoint="https://hooks.example.com/agent") -> WebhookAdapter:
        return WebhookAdapter(
            model_config("webhook-agent", "webhook", api_endpoint=endpoint),
            store,
            WebhookConfig(),
            http_client=_http(upstream),
        )

    async def test_payload_and_list_response(self, store):
        upstream = Upstream(body=[{"output": "Done.", "tokensUsed": "11"}])
        notes = await store.save(b"todo", "notes.txt", "text/plain")
        image = await store.save(b"abc", "cat.png", "image/png")

        response = await self._adapter(store, upstream).send_message(
            HISTORY, SendOptions(system_prompt="sys", temperature=0.3, max_tokens=50, attachments=[notes, image])
        )

        assert response.content == "Done."
        assert response.tokens_used == 11
        payload = upstream.last_json
        assert payload["messages"] == HISTORY
        assert payload["systemPrompt"] == "sys"
        assert payload["chatInput"] == "Look at this"
        assert payload["sessionId"].startswith("session_")
        assert payload["temperature"] == 0.3
        assert payload["maxTokens"] == 50
        assert payload["attachments"] == [
            {"name": "notes.txt", "type": "text/plain", "size": 4, "encoding": "utf-8", "data": "todo"},
            {"name": "cat.png", "type": "image/png", "size": 3, "encoding": "base64", "data": "YWJj"},
        ]

    async def test_content_field_and_missing_tokens(self, store):
        upstream = Upstream(body={"content": "Fine."})
        response = await self._adapter(store, upstream).send_message(HISTORY, SendOptions())
        assert response.content == "Fine."
        assert response.tokens_used == 0

    async def test_reply_without_output_is_provider_error(self, store):
        upstream = Upstream(body={"status": "ok"})
        with pytest.raises(ProviderError):
            await self._adapter(store, upstream).send_message(HISTORY, SendOptions())

    async def test_invalid_json(self, store):
        upstream = Upstream(text="<html>bad gateway</html>")
        with pytest.raises(ProviderError, match="not valid JSON"):
            await self._adapter(store, upstream).send_message(HISTORY, SendOptions())

    def test_endpoint_is_required(self, store):
        with pytest.raises(ProviderError, match="no endpoint"):
            WebhookAdapter(model_config("webhook-agent", "webhook"), store, WebhookConfig())
