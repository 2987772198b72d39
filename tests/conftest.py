"""Shared fixtures: temporary SQLite database, attachment store and a scriptable adapter."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any, Optional

import pytest

from omnichat.ai.client import AIResponse, ProviderAdapter, SendOptions
from omnichat.ai.orchestrator import MessageOrchestrator
from omnichat.core.generation import GenerationRegistry
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.chat_repo import ChatRepository
from omnichat.storage.database import Database
from omnichat.storage.model_registry import ModelRegistry
from omnichat.storage.models import ModelConfig


class FakeAdapter(ProviderAdapter):
    """Adapter double. Records every call and answers with a fixed reply.

    ``behavior`` may be an exception to raise, or an async callable run
    before replying (used to block or cancel mid-call).
    """

    provider = "fake"

    def __init__(
        self,
        config: ModelConfig,
        reply: str = "Hello from the model",
        tokens: int = 42,
        behavior: Optional[Any] = None,
        close_error: Optional[Exception] = None,
    ):
        super().__init__(config, store=None)  # type: ignore[arg-type]
        self.reply = reply
        self.tokens = tokens
        self.behavior = behavior
        self.close_error = close_error
        self.calls: list[tuple[list[dict[str, Any]], SendOptions]] = []
        self.closed = False

    async def send_message(self, history: list[dict[str, Any]], options: SendOptions) -> AIResponse:
        self.calls.append((history, options))
        if isinstance(self.behavior, BaseException):
            raise self.behavior
        if self.behavior is not None:
            await self.behavior()
        return AIResponse(content=self.reply, tokens_used=self.tokens)

    async def aclose(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class AdapterFactoryStub:
    """Callable adapter factory that remembers the adapters it built."""

    def __init__(self, **adapter_kwargs: Any):
        self.adapter_kwargs = adapter_kwargs
        self.adapters: list[FakeAdapter] = []

    def __call__(self, config: ModelConfig) -> FakeAdapter:
        adapter = FakeAdapter(config, **self.adapter_kwargs)
        self.adapters.append(adapter)
        return adapter

    @property
    def last(self) -> FakeAdapter:
        return self.adapters[-1]


@pytest.fixture
async def db(tmp_path: Path) -> AsyncGenerator[Database, None]:
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def chats(db: Database) -> ChatRepository:
    return ChatRepository(db)


@pytest.fixture
async def models(db: Database) -> ModelRegistry:
    registry = ModelRegistry(db)
    await registry.seed_defaults()
    return registry


@pytest.fixture
def store(tmp_path: Path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "uploads")


@pytest.fixture
def factory() -> AdapterFactoryStub:
    return AdapterFactoryStub()


@pytest.fixture
def generations() -> GenerationRegistry:
    return GenerationRegistry()


@pytest.fixture
def orchestrator(
    chats: ChatRepository,
    models: ModelRegistry,
    store: AttachmentStore,
    generations: GenerationRegistry,
    factory: AdapterFactoryStub,
) -> MessageOrchestrator:
    return MessageOrchestrator(
        chats=chats,
        models=models,
        store=store,
        generations=generations,
        adapter_factory=factory,
    )


def model_config(
    model_name: str = "test-model",
    provider: str = "openai",
    **overrides: Any,
) -> ModelConfig:
    values: dict[str, Any] = {
        "model_name": model_name,
        "display_name": model_name,
        "provider": provider,
        "enabled": True,
    }
    values.update(overrides)
    return ModelConfig(**values)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until *predicate* holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


