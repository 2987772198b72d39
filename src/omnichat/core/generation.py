"""Registry of in-flight generations, addressable by stop-generation requests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

from omnichat.core.cancellation import CancellationToken
from omnichat.core.errors import ValidationError
from omnichat.log import get_logger

logger = get_logger(__name__)

GenerationKey = tuple[str, str, str]


@dataclass
class Generation:
    request_id: str
    user_id: str
    chat_id: str
    token: CancellationToken = field(default_factory=CancellationToken)
    assistant_message_id: Optional[str] = None

    @property
    def key(self) -> GenerationKey:
        return (self.user_id, self.chat_id, self.request_id)


class GenerationRegistry:
    """Tracks generations for the lifetime of one send.

    Request ids come from clients, so entries are keyed by (user, chat,
    request id) and one tenant's id never addresses another's generation.
    """

    def __init__(self) -> None:
        self._active: dict[GenerationKey, Generation] = {}

    def start(
        self,
        user_id: str,
        chat_id: str,
        token: CancellationToken | None = None,
        request_id: str | None = None,
    ) -> Generation:
        """Register a generation. Raises ValidationError if the same request is already running."""
        generation = Generation(
            request_id=request_id or uuid.uuid4().hex,
            user_id=user_id,
            chat_id=chat_id,
            token=token or CancellationToken(),
        )
        if generation.key in self._active:
            raise ValidationError(f"Request {generation.request_id} is already in progress")
        self._active[generation.key] = generation
        logger.debug("generation_started", request_id=generation.request_id, chat_id=chat_id)
        return generation

    def finish(self, generation: Generation) -> None:
        """Drop *generation*; an entry registered by another send is left alone."""
        if self._active.get(generation.key) is generation:
            del self._active[generation.key]

    def find(self, user_id: str, chat_id: str, request_id: str | None = None) -> list[Generation]:
        """Return in-flight generations of a user's chat, optionally one request only."""
        return [
            g
            for g in self._active.values()
            if g.user_id == user_id
            and g.chat_id == chat_id
            and (request_id is None or g.request_id == request_id)
        ]

    def __len__(self) -> int:
        return len(self._active)
