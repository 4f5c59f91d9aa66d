"""Read-side endpoints: job status, story rows and speakers.

Story rows are only served once the job's completion flag is set. Rows that
are visible earlier belong to a run that has not finished committing.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from storysense.api.models import SpeakerOut, StoryRow, TranscriptStatus
from storysense.ingestion.models import TranscriptKey
from storysense.ingestion.storage import (
    get_job_record,
    get_supabase_client,
    list_speakers,
    list_story_rows,
)

router = APIRouter()


def _key(transcript_id: str, project_id: str | None, user_id: str | None) -> TranscriptKey:
    if not project_id and not user_id:
        raise HTTPException(status_code=400, detail="project_id or user_id is required")
    return TranscriptKey(user_id=user_id or "", transcript_id=transcript_id, project_id=project_id)


@router.get("/api/transcripts/{transcript_id}", response_model=TranscriptStatus)
async def get_transcript(
    transcript_id: str,
    project_id: str | None = None,
    user_id: str | None = None,
) -> TranscriptStatus:
    """Return job status; ``ready`` is true only after the completion flag is set."""
    key = _key(transcript_id, project_id, user_id)
    record = get_job_record(get_supabase_client(), key)
    if record is None:
        raise HTTPException(status_code=404, detail="Transcript not found")

    return TranscriptStatus(
        id=transcript_id,
        status=record.get("status"),
        file_name=record.get("file_name"),
        media_file_uri=record.get("media_file_uri"),
        output_location_uri=record.get("output_location_uri"),
        completed_at=record.get("completed_at"),
        speaker_ids=record.get("speaker_ids") or [],
        ready=bool(record.get("processing_complete")),
    )


@router.get("/api/transcripts/{transcript_id}/story-rows", response_model=list[StoryRow])
async def get_story_rows(
    transcript_id: str,
    project_id: str | None = None,
    user_id: str | None = None,
) -> list[StoryRow]:
    """Story rows ordered by start time. 409 until the job is ready."""
    key = _key(transcript_id, project_id, user_id)
    client = get_supabase_client()
    record = get_job_record(client, key)
    if record is None:
        raise HTTPException(status_code=404, detail="Transcript not found")
    if not record.get("processing_complete"):
        raise HTTPException(status_code=409, detail="Transcript is still being indexed")

    return [
        StoryRow(
            id=r["id"],
            content=r["content"],
            start_time=r["start_time"],
            end_time=r["end_time"],
            speaker_id=r["speaker_id"],
            speaker_color=r.get("speaker_color"),
            name=r.get("name"),
            content_word_count=r.get("content_word_count") or 0,
            file_name=r.get("file_name"),
            media_file_uri=r.get("media_file_uri"),
            node_id=r.get("node_id"),
            text_items=r.get("text_items") or [],
        )
        for r in list_story_rows(client, key)
    ]


@router.get("/api/speakers", response_model=list[SpeakerOut])
async def get_speakers(project_id: str | None = None, user_id: str | None = None) -> list[SpeakerOut]:
    """All speakers in a project (or a legacy user scope)."""
    key = _key("", project_id, user_id)
    return [
        SpeakerOut(
            id=s["id"],
            name=s["name"],
            color=s["color"],
            type=s.get("type") or "main",
            description=s.get("description") or "",
            image=s.get("image"),
            aliases=s.get("aliases") or [],
            job_names=s.get("job_names") or [],
        )
        for s in list_speakers(get_supabase_client(), key.scope)
    ]
