"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Lifecycle states written to a transcription job record."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SpeakerType(str, Enum):
    MAIN = "main"
    OTHER = "other"


@dataclass(frozen=True)
class RawItem:
    """One recognized word (or punctuation mark) from the ASR engine."""

    content: str
    confidence: float
    start_time: str | None = None
    end_time: str | None = None
    item_type: str = "pronunciation"


@dataclass(frozen=True)
class RawSegment:
    """A diarized span attributed to one speaker label."""

    speaker_label: str
    start_time: float
    end_time: float
    # (start_time, end_time) references into RawTranscript.items
    item_refs: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class RawTranscript:
    """ASR engine output: ordered word items and ordered diarized segments."""

    items: tuple[RawItem, ...]
    segments: tuple[RawSegment, ...]


@dataclass(frozen=True)
class TranscriptKey:
    """Identifiers decoded from an object-storage key.

    Legacy keys (``userId_transcriptId.json``) carry no project id.
    """

    user_id: str
    transcript_id: str
    project_id: str | None = None
    bucket: str = ""
    key: str = ""

    @property
    def scope(self) -> str:
        """Document-store scope that owns the job, its speakers and rows."""
        if self.project_id:
            return f"projects/{self.project_id}"
        return f"users/{self.user_id}"

    @property
    def namespace(self) -> str:
        """Vector-store namespace for this job's chunks."""
        return self.project_id or self.user_id


@dataclass
class JobMetadata:
    """Per-transcription-job record read from the document store.

    The trailing fields are written only by the completion steps.
    """

    transcript_id: str
    user_id: str
    file_name: str
    media_file_uri: str
    project_id: str | None = None
    sequence_id: str | None = None
    node_id: str | None = None
    created_at: datetime | None = None
    status: str | None = None
    output_location_uri: str | None = None
    index_name: str | None = None
    completed_at: datetime | None = None
    speaker_ids: list[str] = field(default_factory=list)
    processing_complete: bool = False


@dataclass(frozen=True)
class RecognizedWord:
    """A word resolved from a segment's item reference."""

    content: str
    confidence: float
    start_time: str
    end_time: str

    def to_record(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "confidence": self.confidence,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass(frozen=True)
class SpeakerJob:
    """Association between a speaker and a transcription job."""

    job_id: str
    filename: str
    speaker_id: str


@dataclass
class Speaker:
    """A speaker identity scoped to a project (or user, for legacy keys)."""

    id: str
    name: str
    color: str
    user_id: str
    project_id: str | None = None
    type: SpeakerType = SpeakerType.MAIN
    description: str = ""
    image: str | None = None
    jobs: list[SpeakerJob] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)

    @property
    def search_text(self) -> str:
        return " ".join(part for part in [self.name, *self.aliases, self.description] if part)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "name": self.name,
            "color": self.color,
            "type": self.type.value,
            "description": self.description,
            "image": self.image,
            "job_names": [
                {"id": j.job_id, "filename": j.filename, "speaker_id": j.speaker_id}
                for j in self.jobs
            ],
            "aliases": list(self.aliases),
        }


@dataclass
class Chunk:
    """A bounded, single-speaker story row ready for the three sinks."""

    id: str
    user_id: str
    job_id: str
    speaker_id: str
    speaker_color: str
    speaker_name: str
    words: list[RecognizedWord]
    content: str
    start_time: str
    end_time: str
    word_count: int
    file_name: str
    media_file_uri: str
    completed_at: datetime
    project_id: str | None = None
    output_location_uri: str | None = None
    sequence_id: str | None = None
    node_id: str | None = None
    status: JobStatus = JobStatus.COMPLETED
    type: str = "transcription"

    def metadata(self) -> dict[str, Any]:
        """Identifying fields shared by the search record and vector metadata."""
        meta: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "speaker_id": self.speaker_id,
            "speaker_color": self.speaker_color,
            "name": self.speaker_name,
            "type": self.type,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "content_word_count": self.word_count,
            "output_location_uri": self.output_location_uri,
            "status": self.status.value,
            "job_name": self.job_id,
            "file_name": self.file_name,
            "media_file_uri": self.media_file_uri,
            "completed_at": self.completed_at.isoformat(),
            "sequence_id": self.sequence_id,
        }
        if self.node_id:
            meta["node_id"] = self.node_id
        return meta

    def to_record(self) -> dict[str, Any]:
        record = self.metadata()
        record["content"] = self.content
        record["text_items"] = [w.to_record() for w in self.words]
        return record
