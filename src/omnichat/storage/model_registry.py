"""Model configuration registry backed by the model_configs table."""

from __future__ import annotations

import uuid
from typing import Optional

from omnichat.log import get_logger
from omnichat.storage.database import Database
from omnichat.storage.models import ModelConfig

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

DEFAULT_MODELS: tuple[ModelConfig, ...] = (
    ModelConfig("gpt-4.1-mini", "GPT-4.1 mini", "openai", True, 0.7, 4096, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("claude-3-opus", "Claude 3 Opus", "claude", False, 0.7, 4096, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("claude-3-sonnet", "Claude 3 Sonnet", "claude", False, 0.7, 4096, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("claude-3-haiku", "Claude 3 Haiku", "claude", False, 0.7, 4096, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("llama-3.3-70b-versatile", "Llama 3.3 70B (Groq)", "groq", False, 0.7, 4096, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("ollama-llama3.1:latest", "Llama 3.1 (Local)", "ollama", False, 0.7, 2048, DEFAULT_SYSTEM_PROMPT),
    ModelConfig("webhook-agent", "Webhook Agent", "webhook", False, 0.7, 2048, DEFAULT_SYSTEM_PROMPT),
)


class ModelRegistry:
    """Resolves model names to their configuration."""

    def __init__(self, db: Database):
        self._db = db

    async def find_enabled_by_name(self, model_name: str) -> Optional[ModelConfig]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM model_configs WHERE model_name = ? AND enabled = 1",
            (model_name,),
        )
        row = await cursor.fetchone()
        return self._row_to_config(row) if row else None

    async def list_enabled(self) -> list[ModelConfig]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM model_configs WHERE enabled = 1 ORDER BY display_name"
        )
        rows = await cursor.fetchall()
        return [self._row_to_config(row) for row in rows]

    async def list_all(self) -> list[ModelConfig]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM model_configs ORDER BY provider, display_name"
        )
        rows = await cursor.fetchall()
        return [self._row_to_config(row) for row in rows]

    async def upsert(self, config: ModelConfig) -> None:
        """Create or update a model configuration keyed by model name."""
        await self._db.conn.execute(
            """INSERT INTO model_configs
               (id, model_name, display_name, provider, enabled,
                default_temperature, max_tokens, system_prompt, api_endpoint)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(model_name) DO UPDATE SET
                   display_name = excluded.display_name,
                   provider = excluded.provider,
                   enabled = excluded.enabled,
                   default_temperature = excluded.default_temperature,
                   max_tokens = excluded.max_tokens,
                   system_prompt = excluded.system_prompt,
                   api_endpoint = excluded.api_endpoint,
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (
                config.id or uuid.uuid4().hex,
                config.model_name,
                config.display_name,
                config.provider,
                int(config.enabled),
                config.default_temperature,
                config.max_tokens,
                config.system_prompt,
                config.api_endpoint,
            ),
        )
        await self._db.conn.commit()

    async def seed_defaults(self) -> int:
        """Insert the default model set if the table is empty. Returns rows inserted."""
        cursor = await self._db.conn.execute("SELECT COUNT(*) FROM model_configs")
        (count,) = await cursor.fetchone()
        if count:
            return 0
        for config in DEFAULT_MODELS:
            await self.upsert(config)
        logger.info("default_models_seeded", count=len(DEFAULT_MODELS))
        return len(DEFAULT_MODELS)

    @staticmethod
    def _row_to_config(row) -> ModelConfig:
        return ModelConfig(
            id=row["id"],
            model_name=row["model_name"],
            display_name=row["display_name"],
            provider=row["provider"],
            enabled=bool(row["enabled"]),
            default_temperature=float(row["default_temperature"]),
            max_tokens=row["max_tokens"],
            system_prompt=row["system_prompt"],
            api_endpoint=row["api_endpoint"],
        )
