"""Full-text lookups and the search fan-out used by the search bar."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, cast

from postgrest import CountMethod
from supabase import Client

from storysense.config import settings
from storysense.ingestion.indexing import search_table
from storysense.ingestion.storage import get_supabase_client
from storysense.retrieval.media import search_media

logger = logging.getLogger(__name__)


@dataclass
class SearchHits:
    """One category of results: total hit count plus the returned page."""

    count: int = 0
    hits: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class FanoutResult:
    transcripts: SearchHits = field(default_factory=SearchHits)
    speakers: SearchHits = field(default_factory=SearchHits)
    external_media: SearchHits = field(default_factory=SearchHits)


def full_text_search(
    client: Client,
    index_name: str,
    term: str,
    project_id: str,
    limit: int = 50,
) -> SearchHits:
    """Web-search style full-text query on one index, filtered by project."""
    result = (
        client.table(search_table(index_name))
        .select("*", count=CountMethod.exact)
        .eq("project_id", project_id)
        .text_search("search_text", term, options={"type": "websearch"})
        .limit(limit)
        .execute()
    )
    hits = cast(list[dict[str, Any]], result.data)
    for hit in hits:
        hit.pop("search_text", None)
    return SearchHits(count=result.count if result.count is not None else len(hits), hits=hits)


class SearchFanout:
    """Queries the transcript index, speaker index and media provider together.

    If any lookup fails the whole result is empty: partial tabs are never
    shown.
    """

    def __init__(self, client: Client | None = None, limit: int = 50) -> None:
        self._client = client
        self.limit = limit

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def query(self, term: str, project_id: str) -> FanoutResult:
        if not term.strip() or not project_id:
            return FanoutResult()

        try:
            transcripts, speakers, media = await asyncio.gather(
                asyncio.to_thread(
                    full_text_search,
                    self.client,
                    settings.transcripts_index_name,
                    term,
                    project_id,
                    self.limit,
                ),
                asyncio.to_thread(
                    full_text_search,
                    self.client,
                    settings.speakers_index_name,
                    term,
                    project_id,
                    self.limit,
                ),
                search_media(term, project_id),
            )
        except Exception:
            logger.exception("Search failed for term %r in project %s", term, project_id)
            return FanoutResult()

        return FanoutResult(
            transcripts=transcripts,
            speakers=speakers,
            external_media=SearchHits(count=len(media), hits=media),
        )
