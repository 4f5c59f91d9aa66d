"""Ordered, idempotent write plan across the document store and both indices.

Steps run strictly in :class:`CommitStep` order. The completion flag is the
last write, so a job whose flag is unset must not be treated as queryable no
matter how many of its documents are already visible. There is no rollback:
a failed step raises :class:`SinkWriteError` and later steps never run.
Redelivering a finished job clears its flag before anything is rewritten.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from supabase import Client

from storysense.config import settings
from storysense.exceptions import SinkWriteError
from storysense.ingestion.embeddings import embed_chunks
from storysense.ingestion.indexing import index_chunks, index_speakers, upsert_vectors
from storysense.ingestion.models import Chunk, JobMetadata, JobStatus, Speaker, TranscriptKey
from storysense.ingestion.storage import store_speakers, store_story_row, update_job

logger = logging.getLogger(__name__)

Embedder = Callable[[list[Chunk]], list[tuple[Chunk, list[float]]]]


class CommitStep(str, Enum):
    SPEAKERS = "speakers"
    STORY_ROWS = "story_rows"
    JOB_STATUS = "job_status"
    SEARCH_INDEX = "search_index"
    VECTOR_STORE = "vector_store"
    COMPLETION_FLAG = "completion_flag"


@dataclass
class CommitReport:
    """Outcome of a successful commit."""

    job_id: str
    chunk_count: int
    speaker_count: int
    completed: list[CommitStep] = field(default_factory=list)


class MultiSinkCommitter:
    """Persists one run's chunks and speakers, then raises the completion flag."""

    def __init__(self, client: Client, embedder: Embedder | None = None) -> None:
        self.client = client
        self.embedder = embedder

    async def commit(
        self,
        key: TranscriptKey,
        job: JobMetadata,
        chunks: list[Chunk],
        speakers: Mapping[str, Speaker],
        completed_at: datetime | None = None,
    ) -> CommitReport:
        """Run the write plan.

        Raises:
            SinkWriteError: If any step fails. ``step`` names the failed step and
                ``completed`` the steps that landed before it.
        """
        completed_at = completed_at or datetime.now(timezone.utc)
        speaker_list = list(speakers.values())

        plan: list[tuple[CommitStep, Callable[[], Awaitable[None]]]] = [
            (CommitStep.SPEAKERS, lambda: self._write_speakers(key, job, speaker_list)),
            (CommitStep.STORY_ROWS, lambda: self._write_story_rows(key, chunks)),
            (
                CommitStep.JOB_STATUS,
                lambda: self._mark_completed(key, job, speaker_list, completed_at),
            ),
            (CommitStep.SEARCH_INDEX, lambda: self._write_search_index(speaker_list, chunks)),
            (CommitStep.VECTOR_STORE, lambda: self._write_vectors(key, chunks)),
            (CommitStep.COMPLETION_FLAG, lambda: self._raise_completion_flag(key, job)),
        ]

        completed: list[CommitStep] = []
        for step, action in plan:
            logger.info("Commit %s: %s started", key.transcript_id, step.value)
            try:
                await action()
            except Exception as exc:
                logger.exception("Commit %s: %s failed", key.transcript_id, step.value)
                raise SinkWriteError(
                    f"Commit step {step.value!r} failed for {key.transcript_id}: {exc}",
                    step=step,
                    completed=completed,
                ) from exc
            completed.append(step)

        logger.info(
            "Commit %s complete: %d chunks, %d speakers",
            key.transcript_id,
            len(chunks),
            len(speaker_list),
        )
        return CommitReport(
            job_id=key.transcript_id,
            chunk_count=len(chunks),
            speaker_count=len(speaker_list),
            completed=completed,
        )

    async def _write_speakers(
        self, key: TranscriptKey, job: JobMetadata, speakers: list[Speaker]
    ) -> None:
        if job.processing_complete:
            # Redelivery of a finished job: hide it again until this run's flag lands
            await asyncio.to_thread(update_job, self.client, key, {"processing_complete": False})
            job.processing_complete = False
        await asyncio.to_thread(store_speakers, self.client, key.scope, speakers)

    async def _write_story_rows(self, key: TranscriptKey, chunks: list[Chunk]) -> None:
        # Independent writes: some rows may land before another one fails
        await asyncio.gather(
            *(asyncio.to_thread(store_story_row, self.client, key.scope, c) for c in chunks)
        )

    async def _mark_completed(
        self,
        key: TranscriptKey,
        job: JobMetadata,
        speakers: list[Speaker],
        completed_at: datetime,
    ) -> None:
        speaker_ids = [s.id for s in speakers]
        fields = {
            "status": JobStatus.COMPLETED.value,
            "completed_at": completed_at.isoformat(),
            "output_location_uri": job.output_location_uri,
            "index_name": settings.transcripts_index_name,
            "speaker_ids": speaker_ids,
        }
        await asyncio.to_thread(update_job, self.client, key, fields)
        job.status = JobStatus.COMPLETED.value
        job.completed_at = completed_at
        job.index_name = settings.transcripts_index_name
        job.speaker_ids = speaker_ids

    async def _write_search_index(self, speakers: list[Speaker], chunks: list[Chunk]) -> None:
        await asyncio.to_thread(index_speakers, self.client, speakers)
        await asyncio.to_thread(index_chunks, self.client, chunks)

    async def _write_vectors(self, key: TranscriptKey, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        embedder = self.embedder or embed_chunks
        pairs = await asyncio.to_thread(embedder, chunks)
        await asyncio.to_thread(upsert_vectors, self.client, key.namespace, pairs)

    async def _raise_completion_flag(self, key: TranscriptKey, job: JobMetadata) -> None:
        await asyncio.to_thread(update_job, self.client, key, {"processing_complete": True})
        job.processing_complete = True
