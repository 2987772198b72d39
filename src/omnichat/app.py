"""Application container - wires storage, registries and the orchestrator."""

from __future__ import annotations

from omnichat.ai.client import ProviderAdapter
from omnichat.ai.factory import create_adapter
from omnichat.ai.orchestrator import AdapterFactory, MessageOrchestrator
from omnichat.config import AppConfig
from omnichat.core.generation import GenerationRegistry
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.chat_repo import ChatRepository
from omnichat.storage.database import Database
from omnichat.storage.model_registry import ModelRegistry
from omnichat.storage.models import ModelConfig

logger = get_logger(__name__)


class OmniChatApp:
    """Top-level container. One instance per process, owned by the web app lifespan."""

    def __init__(self, config: AppConfig, adapter_factory: AdapterFactory | None = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.chats = ChatRepository(self.db)
        self.models = ModelRegistry(self.db)
        self.store = AttachmentStore(config.storage.upload_dir)
        self.generations = GenerationRegistry()
        self.orchestrator = MessageOrchestrator(
            chats=self.chats,
            models=self.models,
            store=self.store,
            generations=self.generations,
            adapter_factory=adapter_factory or self._create_adapter,
        )

    async def start(self) -> None:
        """Open the database and seed default models."""
        await self.db.initialize()
        await self.models.seed_defaults()
        logger.info("omnichat_started", db=self.config.storage.db_path)

    async def stop(self) -> None:
        if self.generations:
            logger.warning("stopping_with_inflight_generations", count=len(self.generations))
        await self.db.close()
        logger.info("omnichat_stopped")

    def _create_adapter(self, model_config: ModelConfig) -> ProviderAdapter:
        return create_adapter(model_config, self.store, self.config)
