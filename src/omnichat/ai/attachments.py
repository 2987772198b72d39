"""Attachment helpers shared by the provider adapters."""

from __future__ import annotations

import asyncio
import base64
import io

from pypdf import PdfReader

from omnichat.core.errors import FileAccessError, PDFExtractionError
from omnichat.log import get_logger
from omnichat.storage.attachments import AttachmentStore
from omnichat.storage.models import AttachmentInfo

logger = get_logger(__name__)

PDF_TYPE = "application/pdf"

DOCUMENT_TYPES = frozenset({
    PDF_TYPE,
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "application/json",
    "text/csv",
})

_TEXT_PREFIXES = ("text/",)
_TEXT_TYPES = frozenset({
    "application/json", "application/xml", "application/javascript",
    "application/x-yaml", "application/sql", "application/x-sh",
    "application/xhtml+xml", "application/csv",
})


def is_image(mime_type: str) -> bool:
    return (mime_type or "").lower().startswith("image/")


def is_pdf(mime_type: str) -> bool:
    return (mime_type or "").lower() == PDF_TYPE


def is_document(mime_type: str) -> bool:
    """Types the OpenAI assistants file_search tool is used for."""
    return (mime_type or "").lower() in DOCUMENT_TYPES


def is_text(mime_type: str) -> bool:
    """Return True if the media type represents a human-readable text format."""
    mime_type = (mime_type or "").lower()
    return mime_type.startswith(_TEXT_PREFIXES) or mime_type in _TEXT_TYPES


def image_error(name: str) -> str:
    return f"[Error processing image: {name}]"


def file_error(name: str) -> str:
    return f"[Error processing file: {name}]"


def pdf_error(name: str) -> str:
    return f"[PDF content could not be extracted: {name}]"


def image_unsupported(name: str) -> str:
    return f"[Image attached: {name} (image analysis is not supported by this model)]"


def binary_notice(att: AttachmentInfo) -> str:
    size_kb = att.size / 1024
    return f"[File: {att.name} ({att.mime_type}, {size_kb:.1f} KB), binary file, content not shown]"


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def data_uri(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{encode_base64(data)}"


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="replace")


async def read_attachment(store: AttachmentStore, att: AttachmentInfo) -> bytes:
    """Read attachment bytes; raises FileAccessError when unreadable."""
    return await store.read(att.path)


def _extract_pdf_text_sync(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    parts = []
    for page in reader.pages:
        text = page.extract_text()
        if text:
            parts.append(text)
    return "\n\n".join(parts)


async def extract_pdf_text(data: bytes, name: str) -> str:
    """Extract PDF text in a worker thread. Raises PDFExtractionError."""
    try:
        return await asyncio.to_thread(_extract_pdf_text_sync, data)
    except Exception as e:  # pypdf raises many types on damaged files
        raise PDFExtractionError(name, str(e)) from e


async def attachment_as_text(store: AttachmentStore, att: AttachmentInfo) -> str:
    """Labeled text rendering of a non-image attachment, or a placeholder.

    Unreadable files and failed PDF extraction never abort the send.
    """
    try:
        data = await read_attachment(store, att)
    except FileAccessError as e:
        logger.warning("attachment_unreadable", name=att.name, error=e.message)
        return file_error(att.name)

    if is_pdf(att.mime_type):
        try:
            text = await extract_pdf_text(data, att.name)
        except PDFExtractionError as e:
            logger.warning("pdf_extraction_failed", name=att.name, error=e.message)
            return pdf_error(att.name)
        return f"[PDF: {att.name}]\n{text}"

    if is_text(att.mime_type):
        return f"[File: {att.name}]\n{decode_text(data)}"

    return binary_notice(att)
