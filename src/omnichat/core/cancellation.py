"""Cooperative cancellation token for in-flight generations."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from omnichat.log import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Signals that the client gave up on a request.

    The orchestrator checks ``is_cancelled`` at its checkpoints. Callbacks
    registered with ``on_cancel`` run once, when the token is first cancelled,
    which is how the running adapter task gets cancelled.
    """

    __slots__ = ("_callbacks", "_cancel_reason", "_cancelled")

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()
        self._callbacks: list[Callable[[], object]] = []
        self._cancel_reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def cancel_reason(self) -> Optional[str]:
        return self._cancel_reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        if self._cancelled.is_set():
            return False
        self._cancel_reason = reason
        self._cancelled.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)
        return True

    def on_cancel(self, callback: Callable[[], object]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        if self._cancelled.is_set():
            self._invoke(callback)
        else:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], object]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def wait(self) -> None:
        await self._cancelled.wait()

    @staticmethod
    def _invoke(callback: Callable[[], object]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning("cancel_callback_error", error=str(e))
