"""End-to-end ingestion pipeline: storage event -> chunk -> commit to all sinks."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from storysense.config import settings
from storysense.ingestion.chunking import ChunkingResult, speaker_chunk
from storysense.ingestion.commit import CommitReport, MultiSinkCommitter
from storysense.ingestion.parsers import (
    is_test_event,
    parse_asr_json,
    parse_job_metadata,
    parse_storage_event,
)
from storysense.ingestion.storage import (
    fetch_object,
    get_job_record,
    get_supabase_client,
    object_uri,
)
from storysense.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)


async def process_storage_event(
    event: dict[str, Any],
    client: Client | None = None,
    config: PipelineConfig | None = None,
    committer: MultiSinkCommitter | None = None,
) -> CommitReport | None:
    """Full ingestion run for one completed transcription job.

    Args:
        event: Storage notification for the ASR result object.
        client: Supabase client (created from settings if omitted).
        config: Chunking configuration; defaults use ``settings.max_word_count``.
        committer: Write-plan executor (built around *client* if omitted).

    Returns:
        The commit report, or None for a connectivity test event.

    Raises:
        MalformedInputError: For an unusable key, job record or ASR payload.
        SinkWriteError: If any write fails; the completion flag stays unset.
    """
    if is_test_event(event):
        logger.info("Test event received, nothing to process")
        return None

    # 1. Decode trigger
    key = parse_storage_event(event)
    logger.info(
        "Processing transcript %s (user=%s, project=%s) from %s/%s",
        key.transcript_id,
        key.user_id,
        key.project_id,
        key.bucket,
        key.key,
    )

    client = client or get_supabase_client()
    config = config or PipelineConfig(max_word_count=settings.max_word_count)

    # 2. Fetch ASR output and job metadata
    raw = await asyncio.to_thread(fetch_object, client, key.bucket, key.key)
    transcript = parse_asr_json(raw)
    record = await asyncio.to_thread(get_job_record, client, key)
    job = parse_job_metadata(record, key)
    job = dataclasses.replace(job, output_location_uri=object_uri(key.bucket, key.key))

    # 3. Chunk
    completed_at = datetime.now(timezone.utc)
    result: ChunkingResult = speaker_chunk(transcript, job, config, completed_at=completed_at)
    logger.info(
        "Transcript %s: %d segments -> %d chunks, %d speakers",
        key.transcript_id,
        len(transcript.segments),
        len(result.chunks),
        len(result.speakers),
    )

    # 4. Commit
    committer = committer or MultiSinkCommitter(client)
    return await committer.commit(
        key, job, result.chunks, result.speakers, completed_at=completed_at
    )
