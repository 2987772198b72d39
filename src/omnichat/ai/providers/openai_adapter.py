"""OpenAI adapter: chat completions, or the assistants workflow for documents."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from omnichat.ai.attachments import (
    attachment_as_text,
    data_uri,
    file_error,
    image_error,
    is_document,
    is_image,
    read_attachment,
)
from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import latest_user_content, replace_latest_user_content
from omnichat.config import AssistantsConfig, OpenAIConfig
from omnichat.core.errors import FileAccessError, ProviderError, RunTimeoutError
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import ModelConfig

logger = get_logger(__name__)

TERMINAL_RUN_STATUSES = frozenset({"completed", "failed", "cancelled", "expired"})
FILE_SEARCH_TOOL = {"type": "file_search"}


def api_error_to_provider_error(provider: str, error: openai.APIError) -> ProviderError:
    """Map an OpenAI SDK error (also raised by OpenAI-compatible upstreams) to ProviderError."""
    if isinstance(error, openai.APIStatusError):
        body = error.body if isinstance(error.body, dict) else {}
        inner = body.get("error", body)
        detail = inner.get("message") if isinstance(inner, dict) else None
        return ProviderError(provider, detail or error.message, error.status_code)
    return ProviderError(provider, error.message or type(error).__name__)


async def create_chat_completion(
    client: AsyncOpenAI,
    provider: str,
    model: str,
    messages: list[dict[str, Any]],
    options: SendOptions,
) -> AIResponse:
    """Run one chat-completion call and normalize the reply."""
    logger.debug("api_request", provider=provider, model=model, message_count=len(messages))
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            stream=False,
        )
    except openai.APIError as e:
        raise api_error_to_provider_error(provider, e) from e

    if not response.choices or response.choices[0].message.content is None:
        raise ProviderError(provider, "response contained no message content")

    tokens = response.usage.total_tokens if response.usage else 0
    logger.debug("api_response", provider=provider, model=model, tokens_used=tokens)
    return AIResponse(
        content=response.choices[0].message.content,
        tokens_used=tokens or 0,
        raw=response,
    )


class OpenAIAdapter(ProviderAdapter):
    """OpenAI backend.

    Images ride along as base64 data URIs in a chat completion. Any document
    attachment switches to the assistants workflow: upload files, create an
    ephemeral assistant with file_search, run it on a fresh thread, poll until
    the run ends, then delete what was created. The assistants API does not
    report usage, so that path reports 0 tokens.
    """

    provider = "openai"

    def __init__(
        self,
        config: ModelConfig,
        store: AttachmentStore,
        settings: OpenAIConfig,
        assistants: AssistantsConfig,
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
        self._poll_interval = assistants.poll_interval
        self._run_timeout = assistants.run_timeout

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        if any(is_document(a.mime_type) for a in options.attachments):
            return await self._send_with_assistant(history, options)
        return await self._send_chat(history, options)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()

    # ── Direct chat completion ─────────────────────────

    async def _send_chat(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        messages = list(history)
        if options.attachments:
            messages = replace_latest_user_content(
                messages, await self._content_parts(latest_user_content(history), options)
            )
        if options.system_prompt:
            messages = [{"role": "system", "content": options.system_prompt}, *messages]
        return await create_chat_completion(
            self._client, self.provider, self.model_name, messages, options
        )

    async def _content_parts(self, text: str, options: SendOptions) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        if text:
            parts.append({"type": "text", "text": text})
        for att in options.attachments:
            if is_image(att.mime_type):
                try:
                    data = await read_attachment(self._store, att)
                except FileAccessError as e:
                    logger.warning("attachment_unreadable", name=att.name, error=e.message)
                    parts.append({"type": "text", "text": image_error(att.name)})
                    continue
                parts.append(
                    {"type": "image_url", "image_url": {"url": data_uri(att.mime_type, data)}}
                )
            else:
                parts.append({"type": "text", "text": await attachment_as_text(self._store, att)})
        return parts

    # ── Assistants workflow ────────────────────────────

    async def _send_with_assistant(
        self, history: list[dict[str, Any]], options: SendOptions
    ) -> AIResponse:
        file_ids: list[str] = []
        assistant_id: Optional[str] = None
        thread_id: Optional[str] = None
        try:
            content, file_refs = await self._upload_attachments(
                latest_user_content(history), options, file_ids
            )

            assistant = await self._client.beta.assistants.create(
                model=self.model_name,
                name="omnichat-ephemeral",
                instructions=options.system_prompt or None,
                tools=[FILE_SEARCH_TOOL],
                temperature=options.temperature,
            )
            assistant_id = assistant.id

            thread = await self._client.beta.threads.create()
            thread_id = thread.id
            message_kwargs: dict[str, Any] = {
                "thread_id": thread_id,
                "role": "user",
                "content": content,
            }
            if file_refs:
                message_kwargs["attachments"] = file_refs
            await self._client.beta.threads.messages.create(**message_kwargs)
            run = await self._client.beta.threads.runs.create(
                thread_id=thread_id,
                assistant_id=assistant_id,
            )
            logger.info("assistant_run_started", run_id=run.id, files=len(file_ids))

            run = await self._wait_for_run(thread_id, run.id)
            if run.status != "completed":
                last_error = getattr(run, "last_error", None)
                detail = getattr(last_error, "message", None) or "no detail"
                raise ProviderError(self.provider, f"assistant run {run.status}: {detail}")

            reply = await self._fetch_reply(thread_id, run.id)
            return AIResponse(content=reply, tokens_used=0, raw=run)
        except openai.APIError as e:
            raise api_error_to_provider_error(self.provider, e) from e
        finally:
            await self._cleanup(assistant_id, thread_id, file_ids)

    async def _upload_attachments(
        self, text: str, options: SendOptions, file_ids: list[str]
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Upload attachments; returns (message content parts, file_search references).

        Uploaded ids are appended to *file_ids* as they are created so cleanup
        sees them even if a later upload fails.
        """
        content: list[dict[str, Any]] = [
            {"type": "text", "text": text or "Please analyze the attached files."}
        ]
        file_refs: list[dict[str, Any]] = []
        for att in options.attachments:
            try:
                data = await read_attachment(self._store, att)
            except FileAccessError as e:
                logger.warning("attachment_unreadable", name=att.name, error=e.message)
                placeholder = image_error(att.name) if is_image(att.mime_type) else file_error(att.name)
                content.append({"type": "text", "text": placeholder})
                continue

            purpose = "vision" if is_image(att.mime_type) else "assistants"
            uploaded = await self._client.files.create(
                file=(att.name, data, att.mime_type),
                purpose=purpose,
            )
            file_ids.append(uploaded.id)
            if is_image(att.mime_type):
                content.append({"type": "image_file", "image_file": {"file_id": uploaded.id}})
            else:
                file_refs.append({"file_id": uploaded.id, "tools": [FILE_SEARCH_TOOL]})
        return content, file_refs

    async def _wait_for_run(self, thread_id: str, run_id: str) -> Any:
        """Poll the run until it reaches a terminal status or the timeout elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._run_timeout
        while True:
            run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
            if run.status in TERMINAL_RUN_STATUSES:
                return run
            remaining = deadline - loop.time()
            if remaining <= 0:
                await self._cancel_run(thread_id, run_id)
                raise RunTimeoutError(self.provider, run_id, self._run_timeout)
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def _fetch_reply(self, thread_id: str, run_id: str) -> str:
        page = await self._client.beta.threads.messages.list(
            thread_id=thread_id, order="desc", limit=20
        )
        for message in page.data:
            if message.role != "assistant":
                continue
            message_run = getattr(message, "run_id", None)
            if message_run and message_run != run_id:
                continue
            texts = [
                block.text.value
                for block in message.content
                if getattr(block, "type", None) == "text"
            ]
            if texts:
                return "\n".join(texts)
        raise ProviderError(self.provider, "assistant run completed without a reply")

    async def _cancel_run(self, thread_id: str, run_id: str) -> None:
        try:
            await self._client.beta.threads.runs.cancel(run_id, thread_id=thread_id)
        except Exception as e:
            logger.warning("assistant_run_cancel_failed", run_id=run_id, error=str(e))

    async def _cleanup(
        self, assistant_id: Optional[str], thread_id: Optional[str], file_ids: list[str]
    ) -> None:
        """Delete the ephemeral assistant, thread and uploaded files. Never raises."""
        if assistant_id:
            try:
                await self._client.beta.assistants.delete(assistant_id)
            except Exception as e:
                logger.warning("assistant_cleanup_failed", assistant_id=assistant_id, error=str(e))
        if thread_id:
            try:
                await self._client.beta.threads.delete(thread_id)
            except Exception as e:
                logger.warning("thread_cleanup_failed", thread_id=thread_id, error=str(e))
        for file_id in file_ids:
            try:
                await self._client.files.delete(file_id)
            except Exception as e:
                logger.warning("file_cleanup_failed", file_id=file_id, error=str(e))
