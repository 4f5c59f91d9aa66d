"""Pydantic request/response schemas for the StorySense indexing API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class EventResponse(BaseModel):
    """Response body for the /api/events/storage endpoint."""

    status: str
    transcript_id: str | None = None
    num_chunks: int = 0
    num_speakers: int = 0
    completed_steps: list[str] = []


class SearchCategory(BaseModel):
    """Hits for one search tab."""

    count: int = 0
    hits: list[dict[str, Any]] = []


class SearchResponse(BaseModel):
    """Response body for the /api/search endpoint."""

    term: str
    project_id: str
    transcripts: SearchCategory
    speakers: SearchCategory
    external_media: SearchCategory


class TranscriptStatus(BaseModel):
    """Job status as seen by consumers. ``ready`` mirrors the completion flag."""

    id: str
    status: str | None = None
    file_name: str | None = None
    media_file_uri: str | None = None
    output_location_uri: str | None = None
    completed_at: str | None = None
    speaker_ids: list[str] = []
    ready: bool = False


class StoryRow(BaseModel):
    """A persisted chunk as returned to the story builder."""

    id: str
    content: str
    start_time: str
    end_time: str
    speaker_id: str
    speaker_color: str | None = None
    name: str | None = None
    content_word_count: int = 0
    file_name: str | None = None
    media_file_uri: str | None = None
    node_id: str | None = None
    text_items: list[dict[str, Any]] = []


class SpeakerOut(BaseModel):
    id: str
    name: str
    color: str
    type: str = "main"
    description: str = ""
    image: str | None = None
    aliases: list[str] = []
    job_names: list[dict[str, Any]] = []
