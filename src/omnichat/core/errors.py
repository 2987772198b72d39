"""Error taxonomy for the send-message path.

Every error carries the HTTP status the API layer answers with. Cancellation
is deliberately absent: an aborted send is an outcome, not an error.
"""

from __future__ import annotations

from typing import Any, Optional


class ChatError(Exception):
    """Base class for all errors raised by omnichat."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(ChatError):
    """Rejected client input. Raised before any store is mutated."""

    status_code = 400


class ChatNotFoundError(ValidationError):
    """The chat does not exist or belongs to another user."""

    status_code = 404

    def __init__(self, chat_id: str):
        super().__init__("Chat not found")
        self.chat_id = chat_id


class ModelNotFoundError(ChatError):
    status_code = 404

    def __init__(self, model_name: str):
        super().__init__(f"Model {model_name} not found or not enabled")
        self.model_name = model_name


class FileAccessError(ChatError):
    """Attachment bytes could not be read from the attachment store."""

    def __init__(self, path: str, reason: str = ""):
        super().__init__(f"Cannot read attachment at {path}" + (f": {reason}" if reason else ""))
        self.path = path


class PDFExtractionError(ChatError):
    def __init__(self, name: str, reason: str = ""):
        super().__init__(f"Could not extract text from {name}" + (f": {reason}" if reason else ""))
        self.name = name


class ProviderError(ChatError):
    """Upstream AI provider failed, timed out, or answered with a malformed payload."""

    def __init__(self, provider: str, detail: str, upstream_status: Optional[int] = None):
        super().__init__(f"{provider} API error: {detail}")
        self.provider = provider
        self.detail = detail
        self.upstream_status = upstream_status

    def to_dict(self) -> dict[str, Any]:
        return {"error": "AI service error", "details": self.message}


class RunTimeoutError(ProviderError):
    """An assistants run did not reach a terminal status in time."""

    def __init__(self, provider: str, run_id: str, timeout: float):
        super().__init__(provider, f"run {run_id} did not finish within {timeout:g}s")
        self.run_id = run_id
        self.timeout = timeout


class UnsupportedProviderError(ChatError):
    def __init__(self, provider: str):
        super().__init__(f"Unsupported AI provider: {provider}")
        self.provider = provider


class AuthenticationError(ChatError):
    """No user identity on the request."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)
