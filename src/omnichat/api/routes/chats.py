from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel

from omnichat.api.dependencies import App, CurrentUser
from omnichat.core.errors import ChatNotFoundError, ValidationError
from omnichat.log import get_logger

logger = get_logger(__name__)

router = APIRouter()


class CreateChatRequest(BaseModel):
    title: Optional[str] = None


class RenameChatRequest(BaseModel):
    title: str


@router.get("")
async def list_chats(app: App, user_id: CurrentUser) -> dict[str, Any]:
    """List the user's chats, most recently updated first."""
    chats = await app.chats.list_chats(user_id)
    return {"chats": [c.to_dict() for c in chats]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_chat(
    app: App, user_id: CurrentUser, body: CreateChatRequest | None = None
) -> dict[str, Any]:
    title = (body.title or "").strip() if body else ""
    chat = await app.chats.create_chat(user_id, title or "New Chat")
    logger.info("chat_created", chat_id=chat.id)
    return chat.to_dict()


@router.get("/{chat_id}")
async def get_chat(chat_id: str, app: App, user_id: CurrentUser) -> dict[str, Any]:
    chat = await app.chats.find_chat_for_user(chat_id, user_id)
    if chat is None:
        raise ChatNotFoundError(chat_id)
    messages = await app.chats.list_messages(chat_id)
    return {"chat": chat.to_dict(), "messages": [m.to_dict() for m in messages]}


@router.patch("/{chat_id}")
async def rename_chat(
    chat_id: str, body: RenameChatRequest, app: App, user_id: CurrentUser
) -> dict[str, Any]:
    title = body.title.strip()
    if not title:
        raise ValidationError("Title is required")
    chat = await app.chats.update_title(chat_id, user_id, title)
    if chat is None:
        raise ChatNotFoundError(chat_id)
    return chat.to_dict()


@router.delete("/{chat_id}")
async def delete_chat(chat_id: str, app: App, user_id: CurrentUser) -> dict[str, Any]:
    """Delete a chat, its messages and their stored attachment files."""
    if await app.chats.find_chat_for_user(chat_id, user_id) is None:
        raise ChatNotFoundError(chat_id)
    messages = await app.chats.list_messages(chat_id)
    await app.chats.delete_chat(chat_id, user_id)
    for message in messages:
        for att in message.attachments:
            await app.store.delete(att.path)
    logger.info("chat_deleted", chat_id=chat_id, messages=len(messages))
    return {"deleted": True}
