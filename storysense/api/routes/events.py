"""Storage-event endpoint: runs the indexing pipeline for a finished ASR job."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException

from storysense.api.models import EventResponse
from storysense.exceptions import MalformedInputError, SinkWriteError
from storysense.ingestion.pipeline import process_storage_event

router = APIRouter()


@router.post("/api/events/storage", response_model=EventResponse)
async def storage_event(event: dict[str, Any] = Body(...)) -> EventResponse:  # noqa: B008
    """Handle an object-storage notification for an ASR result.

    - 400: the event, key, job record or ASR payload is unusable. Redelivery
      would fail the same way.
    - 502: a sink write failed. The job is left incomplete and the trigger is
      expected to redeliver; writes are upserts, so a rerun converges.
    """
    try:
        report = await process_storage_event(event)
    except MalformedInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SinkWriteError as exc:
        raise HTTPException(
            status_code=502,
            detail=f"Indexing failed at step {exc.step.value!r}: {exc}",
        ) from exc

    if report is None:
        return EventResponse(status="ok")

    return EventResponse(
        status="ok",
        transcript_id=report.job_id,
        num_chunks=report.chunk_count,
        num_speakers=report.speaker_count,
        completed_steps=[s.value for s in report.completed],
    )
