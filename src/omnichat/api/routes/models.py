from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from omnichat.api.dependencies import App, CurrentUser

router = APIRouter()


@router.get("/models")
async def list_models(app: App, user_id: CurrentUser) -> dict[str, Any]:
    """Enabled models, ordered by display name."""
    models = await app.models.list_enabled()
    return {
        "models": [
            {
                "modelName": m.model_name,
                "displayName": m.display_name,
                "provider": m.provider,
                "defaultTemperature": m.default_temperature,
                "maxTokens": m.max_tokens,
            }
            for m in models
        ]
    }
