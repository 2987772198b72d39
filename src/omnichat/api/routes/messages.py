from __future__ import annotations

import asyncio
import contextlib
from typing import Annotated, Any, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from omnichat.ai.orchestrator import SendRequest, UploadedFile
from omnichat.api.dependencies import App, CurrentUser
from omnichat.config import StorageConfig
from omnichat.core.cancellation import CancellationToken
from omnichat.core.errors import ValidationError
from omnichat.log import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Not an IANA status; the client closed the request
STATUS_CLIENT_CLOSED = 499
DISCONNECT_POLL_INTERVAL = 0.5


async def _read_uploads(files: list[UploadFile], limits: StorageConfig) -> list[UploadedFile]:
    """Read uploads into memory, enforcing the count and per-file size limits."""
    if len(files) > limits.max_files:
        raise ValidationError(f"Too many files (max {limits.max_files})")
    uploads: list[UploadedFile] = []
    for f in files:
        data = await f.read()
        if len(data) > limits.max_file_size:
            raise ValidationError(
                f"File {f.filename} exceeds {limits.max_file_size // (1024 * 1024)} MB"
            )
        uploads.append(
            UploadedFile(
                name=f.filename or "attachment",
                mime_type=f.content_type or "application/octet-stream",
                data=data,
            )
        )
    return uploads


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Cancel *token* once the client goes away."""
    while not token.is_cancelled:
        if await request.is_disconnected():
            token.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post("/{chat_id}/messages", response_model=None)
async def send_message(
    chat_id: str,
    request: Request,
    app: App,
    user_id: CurrentUser,
    content: Annotated[str, Form()] = "",
    model_name: Annotated[str, Form(alias="modelName")] = "",
    files: Annotated[Optional[list[UploadFile]], File()] = None,
    request_id: Annotated[Optional[str], Form(alias="requestId")] = None,
    temperature: Annotated[Optional[float], Form()] = None,
    max_tokens: Annotated[Optional[int], Form(alias="maxTokens")] = None,
    system_prompt: Annotated[Optional[str], Form(alias="systemPrompt")] = None,
) -> dict[str, Any] | JSONResponse:
    """Send a user message and return it together with the assistant reply."""
    uploads = await _read_uploads(files or [], app.config.storage)
    send = SendRequest(
        user_id=user_id,
        chat_id=chat_id,
        content=content,
        model_name=model_name,
        files=uploads,
        temperature=temperature,
        max_tokens=max_tokens,
        system_prompt=system_prompt,
        request_id=request_id,
    )

    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        outcome = await app.orchestrator.send(send, token)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    if outcome.aborted:
        return JSONResponse(
            status_code=STATUS_CLIENT_CLOSED,
            content={"status": "aborted", "requestId": outcome.request_id},
        )
    return {
        "requestId": outcome.request_id,
        "userMessage": outcome.user_message.to_dict(),
        "assistantMessage": outcome.assistant_message.to_dict(),
    }


@router.post("/{chat_id}/stop")
async def stop_generation(
    chat_id: str,
    app: App,
    user_id: CurrentUser,
    request_id: Annotated[Optional[str], Form(alias="requestId")] = None,
) -> dict[str, Any]:
    """Stop in-flight generations of a chat. Safe to call repeatedly."""
    stopped = await app.orchestrator.stop_generation(user_id, chat_id, request_id)
    return {"stopped": stopped}
