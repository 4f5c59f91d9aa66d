"""Search endpoint: transcripts, speakers and external media in one call."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Query

from storysense.api.models import SearchCategory, SearchResponse
from storysense.retrieval.search import SearchFanout

router = APIRouter()


@router.get("/api/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., description="Search term"),
    project_id: str = Query(...),
) -> SearchResponse:
    """Fan out *q* across all indices; any lookup failure yields empty results."""
    result = await SearchFanout().query(q, project_id)
    return SearchResponse(
        term=q,
        project_id=project_id,
        transcripts=SearchCategory(**asdict(result.transcripts)),
        speakers=SearchCategory(**asdict(result.speakers)),
        external_media=SearchCategory(**asdict(result.external_media)),
    )
