from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from omnichat.api.dependencies import App

router = APIRouter()


@router.get("/health")
async def health_check(app: App) -> dict[str, Any]:
    return {
        "status": "ok",
        "active_generations": len(app.generations),
    }
