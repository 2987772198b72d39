"""Filesystem attachment store."""

from __future__ import annotations

import re
import secrets
import time
from pathlib import Path

import aiofiles
import aiofiles.os

from omnichat.core.errors import FileAccessError
from omnichat.log import get_logger
from omnichat.storage.models import AttachmentInfo

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def generate_filename(suggested_name: str) -> str:
    """Collision-resistant storage name: <epoch ms>-<random hex>-<sanitized name>."""
    base = Path(suggested_name or "attachment").name
    safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "attachment"
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{safe[:120]}"


class AttachmentStore:
    """Saves uploaded bytes under one directory and reads them back by path."""

    def __init__(self, upload_dir: str | Path):
        self._upload_dir = Path(upload_dir)

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    async def save(self, data: bytes, suggested_name: str, mime_type: str) -> AttachmentInfo:
        await aiofiles.os.makedirs(self._upload_dir, exist_ok=True)
        filename = generate_filename(suggested_name)
        path = self._upload_dir / filename
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.debug("attachment_saved", filename=filename, size=len(data))
        return AttachmentInfo(
            name=suggested_name or "attachment",
            mime_type=mime_type or "application/octet-stream",
            size=len(data),
            filename=filename,
            path=str(path),
        )

    async def read(self, path: str) -> bytes:
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise FileAccessError(path, e.strerror or type(e).__name__) from e

    async def delete(self, path: str) -> None:
        """Remove stored bytes; a missing file is ignored."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
