"""Shared fixtures: job metadata and a small ASR transcript builder."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from storysense.ingestion.models import JobMetadata, RawItem, RawSegment, RawTranscript

SegmentSpec = tuple[str, str, float, float]  # (speaker_label, text, start, end)


def _word_times(text: str, start: float, end: float) -> list[tuple[str, str, str]]:
    words = text.split()
    step = (end - start) / max(len(words), 1)
    return [
        (w, f"{start + i * step:.3f}", f"{start + (i + 1) * step:.3f}")
        for i, w in enumerate(words)
    ]


@pytest.fixture
def job() -> JobMetadata:
    return JobMetadata(
        transcript_id="job-1",
        user_id="user-1",
        project_id="proj-1",
        file_name="interview",
        media_file_uri="https://media.example.com/interview.mp3",
        sequence_id="seq-9",
    )


@pytest.fixture
def make_transcript() -> Callable[[list[SegmentSpec]], RawTranscript]:
    """Build a RawTranscript where each whitespace token is one ASR item."""

    def build(specs: list[SegmentSpec]) -> RawTranscript:
        items: list[RawItem] = []
        segments: list[RawSegment] = []
        for label, text, start, end in specs:
            refs = []
            for word, s, e in _word_times(text, start, end):
                items.append(RawItem(content=word, confidence=0.9, start_time=s, end_time=e))
                refs.append((s, e))
            segments.append(RawSegment(label, start, end, tuple(refs)))
        return RawTranscript(items=tuple(items), segments=tuple(segments))

    return build


@pytest.fixture
def make_asr_json() -> Callable[[list[SegmentSpec]], str]:
    """Same as make_transcript but serialised in the ASR engine's JSON shape."""

    def build(specs: list[SegmentSpec]) -> str:
        items: list[dict[str, Any]] = []
        segments: list[dict[str, Any]] = []
        for label, text, start, end in specs:
            refs = []
            for word, s, e in _word_times(text, start, end):
                items.append(
                    {
                        "start_time": s,
                        "end_time": e,
                        "type": "pronunciation",
                        "alternatives": [{"content": word, "confidence": "0.95"}],
                    }
                )
                refs.append({"start_time": s, "end_time": e, "speaker_label": label})
            items.append({"type": "punctuation", "alternatives": [{"content": ".", "confidence": "0.0"}]})
            segments.append(
                {
                    "speaker_label": label,
                    "start_time": str(start),
                    "end_time": str(end),
                    "items": refs,
                }
            )
        return json.dumps(
            {
                "jobName": "job-1",
                "results": {
                    "transcripts": [{"transcript": "..."}],
                    "items": items,
                    "speaker_labels": {"speakers": len({s[0] for s in specs}), "segments": segments},
                },
            }
        )

    return build
