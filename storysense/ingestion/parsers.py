"""Parsers for ASR output, object-storage keys and job metadata records."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from urllib.parse import unquote_plus

from storysense.exceptions import MalformedInputError
from storysense.ingestion.models import (
    JobMetadata,
    RawItem,
    RawSegment,
    RawTranscript,
    TranscriptKey,
)

# Extensions stripped from the source filename shown on story rows
MEDIA_EXTENSIONS = {"mp3", "wav", "m4a", "mp4", "ogg", "flac", "mov", "webm"}


def _time_ref(value: Any) -> str | None:
    """Normalise an ASR time value to the string form used as a lookup key."""
    if value is None:
        return None
    return str(value)


def parse_asr_json(content: str | bytes) -> RawTranscript:
    """Parse ASR engine JSON into a :class:`RawTranscript`.

    Expected shape::

        {"results": {
            "items": [{"start_time": "0.04", "end_time": "0.4", "type": "pronunciation",
                       "alternatives": [{"content": "Hello", "confidence": "0.99"}]}],
            "speaker_labels": {"segments": [
                {"speaker_label": "spk_0", "start_time": "0.04", "end_time": "1.2",
                 "items": [{"start_time": "0.04", "end_time": "0.4"}]}]}}}

    Punctuation items carry no timing and can never be referenced by a
    segment; they are kept as-is and simply never match.

    Raises:
        MalformedInputError: If the JSON is invalid, lacks items/segments, or
            has an item or segment missing required fields.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"ASR output is not valid JSON: {exc}") from exc

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, dict):
        raise MalformedInputError("ASR output has no 'results' object")

    raw_items = results.get("items")
    speaker_labels = results.get("speaker_labels") or {}
    raw_segments = speaker_labels.get("segments") if isinstance(speaker_labels, dict) else None
    if raw_items is None or raw_segments is None:
        msg = f"ASR output lacks items or speaker segments. Keys: {list(results.keys())}"
        raise MalformedInputError(msg)

    try:
        items = [_parse_item(item) for item in raw_items]
        segments = [_parse_segment(seg) for seg in raw_segments]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise MalformedInputError(f"ASR output has a malformed item or segment: {exc!r}") from exc

    return RawTranscript(
        items=tuple(i for i in items if i is not None),
        segments=tuple(segments),
    )


def _parse_item(item: dict[str, Any]) -> RawItem | None:
    alternatives = item.get("alternatives") or []
    if not alternatives:
        return None
    best = alternatives[0]
    return RawItem(
        content=best.get("content", ""),
        confidence=float(best.get("confidence") or 0.0),
        start_time=_time_ref(item.get("start_time")),
        end_time=_time_ref(item.get("end_time")),
        item_type=item.get("type", "pronunciation"),
    )


def _parse_segment(seg: dict[str, Any]) -> RawSegment:
    refs = tuple(
        (str(ref["start_time"]), str(ref["end_time"]))
        for ref in seg.get("items", [])
        if ref.get("start_time") is not None and ref.get("end_time") is not None
    )
    return RawSegment(
        speaker_label=seg["speaker_label"],
        start_time=float(seg["start_time"]),
        end_time=float(seg["end_time"]),
        item_refs=refs,
    )


def parse_transcript_key(key: str, bucket: str = "") -> TranscriptKey:
    """Decode ``userId_[projectId_]transcriptId.json`` object keys.

    The key arrives URL-encoded with ``+`` for spaces, as in storage
    notifications.

    Raises:
        MalformedInputError: If the key does not have two or three parts.
    """
    decoded = unquote_plus(key)
    parts = decoded.split("_")
    if len(parts) == 2:
        # Legacy keys written before projects existed
        user_id, transcript_part = parts
        project_id = None
    elif len(parts) == 3:
        user_id, project_id, transcript_part = parts
    else:
        raise MalformedInputError(f"Unrecognized transcript key format: {decoded!r}")

    transcript_id = transcript_part.removesuffix(".json")
    if not user_id or not transcript_id:
        raise MalformedInputError(f"Transcript key is missing identifiers: {decoded!r}")

    return TranscriptKey(
        user_id=user_id,
        transcript_id=transcript_id,
        project_id=project_id or None,
        bucket=bucket,
        key=decoded,
    )


def is_test_event(event: dict[str, Any]) -> bool:
    """Return True for the connectivity ping the trigger sends on setup."""
    return bool(event.get("test"))


def parse_storage_event(event: dict[str, Any]) -> TranscriptKey:
    """Extract the bucket and decoded key from a storage notification.

    Only the first record is processed; notifications carry one object each.

    Raises:
        MalformedInputError: If the notification has no S3-style record.
    """
    try:
        record = event["Records"][0]["s3"]
        bucket = record["bucket"]["name"]
        key = record["object"]["key"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedInputError(f"Storage event has no object record: {exc!r}") from exc
    return parse_transcript_key(key, bucket=bucket)


def strip_media_extension(file_name: str) -> str:
    """Drop a trailing audio/video extension from a source filename."""
    stem, dot, ext = file_name.rpartition(".")
    if dot and ext.lower() in MEDIA_EXTENSIONS:
        return stem
    return file_name


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_job_metadata(record: dict[str, Any] | None, key: TranscriptKey) -> JobMetadata:
    """Build :class:`JobMetadata` from a ``transcripts`` row.

    Raises:
        MalformedInputError: If the row is missing or has no media reference.
    """
    if not record:
        raise MalformedInputError(
            f"No job metadata for transcript {key.transcript_id} in {key.scope}"
        )

    file_name = record.get("file_name")
    media_file_uri = record.get("media_file_uri")
    if not file_name or not media_file_uri:
        raise MalformedInputError(
            f"Job {key.transcript_id} has no source filename or media reference"
        )

    return JobMetadata(
        transcript_id=key.transcript_id,
        user_id=key.user_id,
        project_id=key.project_id,
        file_name=strip_media_extension(file_name),
        media_file_uri=media_file_uri,
        sequence_id=record.get("sequence_id") or None,
        node_id=record.get("node_id") or None,
        created_at=_parse_timestamp(record.get("created_at")),
        status=record.get("status"),
        output_location_uri=record.get("output_location_uri"),
        index_name=record.get("index_name"),
        completed_at=_parse_timestamp(record.get("completed_at")),
        speaker_ids=list(record.get("speaker_ids") or []),
        processing_complete=bool(record.get("processing_complete", False)),
    )
