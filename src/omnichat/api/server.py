"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from omnichat.ai.orchestrator import AdapterFactory
from omnichat.api.routes import chats, health, messages, models
from omnichat.app import OmniChatApp
from omnichat.config import AppConfig
from omnichat.core.errors import ChatError
from omnichat.log import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", status=exc.status_code, error=exc.message)
    else:
        logger.info("request_rejected", status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_context(request: Request) -> None:
    """Reset and bind per-request log context."""
    clear_request_context()
    bind_request_context(method=request.method, path=request.url.path)


def create_app(config: AppConfig, adapter_factory: AdapterFactory | None = None) -> FastAPI:
    """Build the web app; the container starts and stops with the app lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        omnichat = OmniChatApp(config, adapter_factory=adapter_factory)
        await omnichat.start()
        app.state.omnichat = omnichat
        try:
            yield
        finally:
            await omnichat.stop()

    app = FastAPI(
        title="omnichat",
        version="0.1.0",
        lifespan=lifespan,
        dependencies=[Depends(request_context)],
    )

    app.add_exception_handler(ChatError, chat_error_handler)

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(models.router, prefix="/api", tags=["models"])
    app.include_router(chats.router, prefix="/api/chats", tags=["chats"])
    app.include_router(messages.router, prefix="/api/chats", tags=["messages"])
    return app
