"""SQLite database connection manager with schema bootstrap."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from omnichat.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS chats (
    id              TEXT    PRIMARY KEY,
    user_id         TEXT    NOT NULL,
    title           TEXT    NOT NULL DEFAULT 'New Chat' CHECK(length(title) > 0),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_chats_user
    ON chats(user_id, updated_at DESC);

CREATE TABLE IF NOT EXISTS messages (
    id              TEXT    PRIMARY KEY,
    chat_id         TEXT    NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
    role            TEXT    NOT NULL CHECK(role IN ('user','assistant','system')),
    content         TEXT    NOT NULL,
    model_used      TEXT,
    tokens_used     INTEGER NOT NULL DEFAULT 0 CHECK(tokens_used >= 0),
    attachments     TEXT    NOT NULL DEFAULT '[]',
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_chat
    ON messages(chat_id, created_at);

CREATE TRIGGER IF NOT EXISTS trg_messages_role_immutable
BEFORE UPDATE OF role ON messages
WHEN new.role != old.role
BEGIN
    SELECT RAISE(ABORT, 'message role is immutable');
END;

CREATE TABLE IF NOT EXISTS model_configs (
    id                  TEXT    PRIMARY KEY,
    model_name          TEXT    NOT NULL UNIQUE,
    display_name        TEXT    NOT NULL,
    provider            TEXT    NOT NULL CHECK(provider IN ('openai','claude','groq','ollama','webhook')),
    enabled             INTEGER NOT NULL DEFAULT 0,
    default_temperature REAL    NOT NULL DEFAULT 0.7 CHECK(default_temperature BETWEEN 0 AND 2),
    max_tokens          INTEGER NOT NULL DEFAULT 2048 CHECK(max_tokens > 0),
    system_prompt       TEXT    NOT NULL DEFAULT 'You are a helpful AI assistant.',
    api_endpoint        TEXT,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_model_configs_enabled
    ON model_configs(enabled);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and create the schema."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
