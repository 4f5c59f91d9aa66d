"""Client for the external media-search provider."""

from __future__ import annotations

from typing import Any

import httpx

from storysense.config import settings


async def search_media(term: str, project_id: str) -> list[dict[str, Any]]:
    """Fuzzy-search the project's media library.

    Returns an empty list when no provider URL is configured. HTTP and
    transport errors propagate to the caller.
    """
    if not settings.media_search_url:
        return []

    async with httpx.AsyncClient(timeout=settings.media_search_timeout) as client:
        r = await client.post(
            settings.media_search_url,
            json={"searchTerm": term, "projectId": project_id},
        )
        r.raise_for_status()
        data = r.json()

    if isinstance(data, dict):
        data = data.get("results", [])
    if not isinstance(data, list):
        return []
    return data
