"""httpx error mapping shared by the plain-HTTP providers."""

from __future__ import annotations

from typing import Any

import httpx

from omnichat.core.errors import ProviderError


async def post_json(
    client: httpx.AsyncClient, provider: str, url: str, payload: dict[str, Any]
) -> Any:
    """POST *payload* and return the decoded JSON body, or raise ProviderError."""
    try:
        response = await client.post(url, json=payload)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        detail = e.response.text[:500] or e.response.reason_phrase
        raise ProviderError(provider, detail, e.response.status_code) from e
    except httpx.HTTPError as e:
        raise ProviderError(provider, str(e) or type(e).__name__) from e

    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(provider, "response body is not valid JSON", response.status_code) from e
