"""Supabase helpers for object storage and the document store.

Documents are scoped by a ``scope`` column (``projects/{id}`` or
``users/{id}``) that mirrors where the job lives.
"""

from __future__ import annotations

import os
from typing import Any, cast

from supabase import Client, create_client

from storysense.config import settings
from storysense.ingestion.models import Chunk, Speaker, TranscriptKey

TRANSCRIPTS_TABLE = "transcripts"
SPEAKERS_TABLE = "speakers"
STORY_ROWS_TABLE = "story_rows"


def get_supabase_client() -> Client:
    """Create and return a Supabase client from environment variables."""
    return create_client(
        os.getenv("SUPABASE_URL", settings.supabase_url),
        os.getenv("SUPABASE_KEY", settings.supabase_key),
    )


def object_uri(bucket: str, key: str) -> str:
    """Location of an object in Supabase Storage, stored as the job's output URI."""
    base = settings.supabase_url.rstrip("/")
    return f"{base}/storage/v1/object/{bucket}/{key}"


def fetch_object(client: Client, bucket: str, key: str) -> bytes:
    """Download the raw bytes of an object (the ASR result JSON)."""
    return client.storage.from_(bucket).download(key)


def get_job_record(client: Client, key: TranscriptKey) -> dict[str, Any] | None:
    """Return the ``transcripts`` row for *key*, or None if it does not exist."""
    result = (
        client.table(TRANSCRIPTS_TABLE)
        .select("*")
        .eq("scope", key.scope)
        .eq("id", key.transcript_id)
        .limit(1)
        .execute()
    )
    rows = cast(list[dict[str, Any]], result.data)
    return rows[0] if rows else None


def store_speakers(client: Client, scope: str, speakers: list[Speaker]) -> None:
    """Upsert all speakers in one request, so the batch lands or fails as a whole."""
    if not speakers:
        return
    rows = [{"scope": scope, **s.to_record()} for s in speakers]
    client.table(SPEAKERS_TABLE).upsert(rows, on_conflict="scope,id").execute()


def store_story_row(client: Client, scope: str, chunk: Chunk) -> None:
    """Upsert a single story row under its job."""
    row = {"scope": scope, "transcript_id": chunk.job_id, **chunk.to_record()}
    client.table(STORY_ROWS_TABLE).upsert(row, on_conflict="scope,transcript_id,id").execute()


def update_job(client: Client, key: TranscriptKey, fields: dict[str, Any]) -> None:
    """Field-level update of the job record."""
    (
        client.table(TRANSCRIPTS_TABLE)
        .update(fields)
        .eq("scope", key.scope)
        .eq("id", key.transcript_id)
        .execute()
    )


def list_story_rows(client: Client, key: TranscriptKey) -> list[dict[str, Any]]:
    """Story rows of one job ordered by start time."""
    result = (
        client.table(STORY_ROWS_TABLE)
        .select("*")
        .eq("scope", key.scope)
        .eq("transcript_id", key.transcript_id)
        .order("start_time")
        .execute()
    )
    return cast(list[dict[str, Any]], result.data)


def list_speakers(client: Client, scope: str) -> list[dict[str, Any]]:
    result = client.table(SPEAKERS_TABLE).select("*").eq("scope", scope).execute()
    return cast(list[dict[str, Any]], result.data)
