"""Send-message transaction: validate, persist, call the provider, persist or discard."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.conversation import build_history
from omnichat.core.cancellation import CancellationToken
from omnichat.core.errors import ChatNotFoundError, ModelNotFoundError, ProviderError, ValidationError
from omnichat.core.generation import Generation, GenerationRegistry
from omnichat.core.types import Role
from omnichat.log import bind_request_context, get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.chat_repo import ChatRepository
from omnichat.storage.model_registry import ModelRegistry
from omnichat.storage.models import AttachmentInfo, Message, ModelConfig

logger = get_logger(__name__)

AdapterFactory = Callable[[ModelConfig], ProviderAdapter]


@dataclass(frozen=True, slots=True)
class UploadedFile:
    name: str
    mime_type: str
    data: bytes


@dataclass
class SendRequest:
    user_id: str
    chat_id: str
    content: str
    model_name: str
    files: list[UploadedFile] = field(default_factory=list)
    # Overrides for the model's defaults
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class SendOutcome:
    request_id: str
    user_message: Message
    assistant_message: Optional[Message] = None
    aborted: bool = False


def merge_options(
    config: ModelConfig, request: SendRequest, attachments: list[AttachmentInfo]
) -> SendOptions:
    """Caller values win over the model's configured defaults when given."""
    return SendOptions(
        temperature=request.temperature if request.temperature is not None else config.default_temperature,
        max_tokens=request.max_tokens or config.max_tokens,
        system_prompt=request.system_prompt or config.system_prompt,
        attachments=list(attachments),
    )


class MessageOrchestrator:
    """Handles the full flow: validate -> user message -> history -> provider -> reply.

    Cancellation is observed through the request's CancellationToken at fixed
    checkpoints: after the user message is stored, right after the provider
    call, right before the reply is stored, and right before returning. A
    reply stored before a late cancellation is deleted again, so no assistant
    message outlives a cancellation seen before the response goes out.
    """

    def __init__(
        self,
        chats: ChatRepository,
        models: ModelRegistry,
        store: AttachmentStore,
        generations: GenerationRegistry,
        adapter_factory: AdapterFactory,
    ):
        self._chats = chats
        self._models = models
        self._store = store
        self._generations = generations
        self._adapter_factory = adapter_factory

    async def send(self, request: SendRequest, token: CancellationToken | None = None) -> SendOutcome:
        """Run one send. Returns an aborted outcome on cancellation, raises ChatError otherwise."""
        config = await self._validate(request)

        generation = self._generations.start(
            request.user_id, request.chat_id, token=token, request_id=request.request_id
        )
        bind_request_context(chat_id=request.chat_id, request_id=generation.request_id)
        try:
            return await self._run(request, config, generation)
        finally:
            self._generations.finish(generation)

    async def stop_generation(self, user_id: str, chat_id: str, request_id: str | None = None) -> int:
        """Cancel in-flight generations of a chat. Idempotent; returns how many were stopped."""
        generations = self._generations.find(user_id, chat_id, request_id)
        for generation in generations:
            generation.token.cancel("stopped by client")
            if generation.assistant_message_id:
                await self._discard(generation.assistant_message_id)
        logger.info("generation_stop_requested", chat_id=chat_id, stopped=len(generations))
        return len(generations)

    # ── States ─────────────────────────────────────────

    async def _validate(self, request: SendRequest) -> ModelConfig:
        if not request.content.strip() and not request.files:
            raise ValidationError("Content or attachments are required")
        if not request.model_name:
            raise ValidationError("Model name is required")

        chat = await self._chats.find_chat_for_user(request.chat_id, request.user_id)
        if chat is None:
            raise ChatNotFoundError(request.chat_id)

        config = await self._models.find_enabled_by_name(request.model_name)
        if config is None:
            raise ModelNotFoundError(request.model_name)
        return config

    async def _run(self, request: SendRequest, config: ModelConfig, generation: Generation) -> SendOutcome:
        token = generation.token

        user_message = await self._persist_user_message(request)

        if token.is_cancelled:
            return self._aborted(generation, user_message, "before_provider")

        options = merge_options(config, request, user_message.attachments)
        adapter = self._adapter_factory(config)
        try:
            history = build_history(await self._chats.list_messages(request.chat_id))
            response = await self._call_adapter(adapter, history, options, token)
            if response is None or token.is_cancelled:
                return self._aborted(generation, user_message, "after_provider")
        finally:
            await self._close_adapter(adapter)

        if token.is_cancelled:
            return self._aborted(generation, user_message, "before_persist")

        assistant_message = await self._chats.append_message(
            request.chat_id,
            Role.ASSISTANT.value,
            response.content,
            model_used=request.model_name,
            tokens_used=response.tokens_used,
        )
        generation.assistant_message_id = assistant_message.id

        if token.is_cancelled:
            await self._discard(assistant_message.id)
            return self._aborted(generation, user_message, "before_response")

        await self._chats.touch_chat(request.chat_id)

        # A stop that landed during the touch has already deleted the reply
        if token.is_cancelled:
            await self._discard(assistant_message.id)
            return self._aborted(generation, user_message, "before_response")

        logger.info(
            "message_sent",
            provider=config.provider,
            model=request.model_name,
            tokens_used=assistant_message.tokens_used,
            attachments=len(user_message.attachments),
        )
        return SendOutcome(
            request_id=generation.request_id,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    async def _persist_user_message(self, request: SendRequest) -> Message:
        saved: list[AttachmentInfo] = []
        try:
            for f in request.files:
                saved.append(await self._store.save(f.data, f.name, f.mime_type))
            return await self._chats.append_message(
                request.chat_id, Role.USER.value, request.content, attachments=saved
            )
        except Exception:
            for att in saved:
                try:
                    await self._store.delete(att.path)
                except OSError as e:
                    logger.warning("attachment_rollback_failed", path=att.path, error=str(e))
            raise

    async def _close_adapter(self, adapter: ProviderAdapter) -> None:
        try:
            await adapter.aclose()
        except Exception as e:
            logger.warning("adapter_close_failed", provider=adapter.provider, error=str(e))

    async def _call_adapter(
        self,
        adapter: ProviderAdapter,
        history: list[dict],
        options: SendOptions,
        token: CancellationToken,
    ) -> AIResponse | None:
        """Run the provider call as its own task; None means it was cancelled via the token."""
        call = asyncio.create_task(adapter.send_message(history, options))
        token.on_cancel(call.cancel)
        try:
            return await call
        except asyncio.CancelledError:
            if token.is_cancelled and call.cancelled():
                logger.info("provider_call_cancelled", provider=adapter.provider)
                return None
            raise
        except ProviderError as e:
            logger.error(
                "provider_error",
                provider=e.provider,
                upstream_status=e.upstream_status,
                error=e.detail,
            )
            raise
        except Exception as e:
            logger.exception("provider_unexpected_error", provider=adapter.provider)
            raise ProviderError(adapter.provider, str(e) or type(e).__name__) from e
        finally:
            token.remove_callback(call.cancel)

    async def _discard(self, message_id: str) -> None:
        """Best-effort delete of an assistant reply."""
        try:
            deleted = await self._chats.delete_message(message_id)
        except Exception as e:
            logger.warning("assistant_discard_failed", message_id=message_id, error=str(e))
            return
        if deleted:
            logger.info("assistant_message_discarded", message_id=message_id)

    @staticmethod
    def _aborted(generation: Generation, user_message: Message, checkpoint: str) -> SendOutcome:
        logger.info("send_aborted", checkpoint=checkpoint, reason=generation.token.cancel_reason)
        return SendOutcome(
            request_id=generation.request_id,
            user_message=user_message,
            aborted=True,
        )
