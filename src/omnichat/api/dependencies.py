from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from omnichat.app import OmniChatApp
from omnichat.core.errors import AuthenticationError


def get_omnichat(request: Request) -> OmniChatApp:
    """Get the application container from app state."""
    return request.app.state.omnichat


def get_current_user(request: Request, app: Annotated[OmniChatApp, Depends(get_omnichat)]) -> str:
    """User id from the auth header, falling back to the configured dev user."""
    auth = app.config.auth
    user_id = (request.headers.get(auth.user_header) or "").strip()
    if user_id:
        return user_id
    if auth.dev_user:
        return auth.dev_user
    raise AuthenticationError()


# Type aliases for cleaner route signatures
App = Annotated[OmniChatApp, Depends(get_omnichat)]
CurrentUser = Annotated[str, Depends(get_current_user)]
