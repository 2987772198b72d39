"""Chat and message repository."""

from __future__ import annotations

import json
import uuid
from typing import Optional, Sequence

from omnichat.log import get_logger
from omnichat.storage.database import Database
from omnichat.storage.models import AttachmentInfo, Chat, Message

logger = get_logger(__name__)

_NOW = "strftime('%Y-%m-%dT%H:%M:%f','now')"


class ChatRepository:
    """CRUD over chats and their ordered messages."""

    def __init__(self, db: Database):
        self._db = db

    # ── Chats ──────────────────────────────────────────

    async def create_chat(self, user_id: str, title: str = "New Chat") -> Chat:
        chat_id = uuid.uuid4().hex
        await self._db.conn.execute(
            "INSERT INTO chats (id, user_id, title) VALUES (?, ?, ?)",
            (chat_id, user_id, title.strip() or "New Chat"),
        )
        await self._db.conn.commit()
        chat = await self.find_chat_for_user(chat_id, user_id)
        assert chat is not None
        return chat

    async def find_chat_for_user(self, chat_id: str, user_id: str) -> Optional[Chat]:
        """Return the chat only if it belongs to *user_id*."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM chats WHERE id = ? AND user_id = ?",
            (chat_id, user_id),
        )
        row = await cursor.fetchone()
        return self._row_to_chat(row) if row else None

    async def list_chats(self, user_id: str) -> list[Chat]:
        """List a user's chats, most recently active first."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM chats WHERE user_id = ? ORDER BY updated_at DESC, rowid DESC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_chat(row) for row in rows]

    async def update_title(self, chat_id: str, user_id: str, title: str) -> Optional[Chat]:
        cursor = await self._db.conn.execute(
            f"UPDATE chats SET title = ?, updated_at = {_NOW} WHERE id = ? AND user_id = ?",
            (title, chat_id, user_id),
        )
        await self._db.conn.commit()
        if cursor.rowcount == 0:
            return None
        return await self.find_chat_for_user(chat_id, user_id)

    async def delete_chat(self, chat_id: str, user_id: str) -> bool:
        """Delete a chat and (via cascade) its messages."""
        cursor = await self._db.conn.execute(
            "DELETE FROM chats WHERE id = ? AND user_id = ?",
            (chat_id, user_id),
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0

    async def touch_chat(self, chat_id: str) -> None:
        await self._db.conn.execute(
            f"UPDATE chats SET updated_at = {_NOW} WHERE id = ?",
            (chat_id,),
        )
        await self._db.conn.commit()

    # ── Messages ───────────────────────────────────────

    async def append_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        attachments: Sequence[AttachmentInfo] = (),
        model_used: Optional[str] = None,
        tokens_used: int = 0,
    ) -> Message:
        """Insert a message and return it as stored."""
        message_id = uuid.uuid4().hex
        await self._db.conn.execute(
            """INSERT INTO messages
               (id, chat_id, role, content, model_used, tokens_used, attachments)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                message_id,
                chat_id,
                role,
                content,
                model_used,
                max(int(tokens_used or 0), 0),
                json.dumps([a.to_dict() for a in attachments]),
            ),
        )
        await self._db.conn.commit()
        message = await self.get_message(message_id)
        assert message is not None
        return message

    async def get_message(self, message_id: str) -> Optional[Message]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM messages WHERE id = ?", (message_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_message(row) if row else None

    async def list_messages(self, chat_id: str) -> list[Message]:
        """All messages of a chat, oldest first."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM messages WHERE chat_id = ? ORDER BY created_at ASC, rowid ASC",
            (chat_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def delete_message(self, message_id: str) -> bool:
        """Delete a message. Deleting a missing message is not an error."""
        cursor = await self._db.conn.execute(
            "DELETE FROM messages WHERE id = ?", (message_id,)
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_chat(row) -> Chat:
        return Chat(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row) -> Message:
        try:
            raw_attachments = json.loads(row["attachments"] or "[]")
        except (json.JSONDecodeError, TypeError):
            raw_attachments = []
        return Message(
            id=row["id"],
            chat_id=row["chat_id"],
            role=row["role"],
            content=row["content"],
            model_used=row["model_used"],
            tokens_used=row["tokens_used"],
            attachments=[AttachmentInfo.from_dict(a) for a in raw_attachments],
            created_at=row["created_at"],
        )
