"""Speaker-coherent chunking of diarized ASR segments.

Segments are folded, in ASR order, into an :class:`Accumulator`. A chunk is
emitted whenever the speaker changes or the next segment would push the
accumulator past the word ceiling. Segments are never split, so a single
segment longer than the ceiling becomes one oversized chunk.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from storysense.ingestion.models import (
    Chunk,
    JobMetadata,
    RawSegment,
    RawTranscript,
    RecognizedWord,
    Speaker,
)
from storysense.ingestion.speakers import SpeakerResolver
from storysense.ingestion.timecode import format_timecode
from storysense.ingestion.word_index import WordIndex
from storysense.pipeline_config import IdStrategy, PipelineConfig

logger = logging.getLogger(__name__)

CHUNK_ID_NAMESPACE = uuid.UUID("0b7f3a52-91c4-5d8e-b2a6-4c19e7d05f33")


def count_words(text: str) -> int:
    """Whitespace-token count. A recognized "word" may hold several tokens."""
    return len(text.split())


def chunk_id_for(job_id: str, start_time: str, end_time: str, strategy: IdStrategy) -> str:
    """Deterministic ids assume no two chunks of a job share both formatted times.

    Overlapping or zero-length segments at millisecond resolution break that
    assumption and the later chunk overwrites the earlier one on upsert.
    """
    if strategy is IdStrategy.DETERMINISTIC:
        return str(uuid.uuid5(CHUNK_ID_NAMESPACE, f"{job_id}:{start_time}:{end_time}"))
    return str(uuid.uuid4())


@dataclass
class Accumulator:
    """The in-progress chunk carried across the segment scan."""

    words: list[RecognizedWord] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    speaker: Speaker | None = None

    def is_empty(self) -> bool:
        return not self.words

    @property
    def word_count(self) -> int:
        return sum(count_words(w.content) for w in self.words)


@dataclass
class ChunkingResult:
    """Chunks in time order plus the speakers they reference, keyed by id."""

    chunks: list[Chunk]
    speakers: dict[str, Speaker]


class ChunkAggregator:
    """Folds ordered segments into bounded, single-speaker chunks."""

    def __init__(
        self,
        word_index: WordIndex,
        resolver: SpeakerResolver,
        job: JobMetadata,
        config: PipelineConfig | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        self.word_index = word_index
        self.resolver = resolver
        self.job = job
        self.config = config or PipelineConfig()
        self.completed_at = completed_at or datetime.now(timezone.utc)

    def step(self, acc: Accumulator, segment: RawSegment) -> tuple[Accumulator, Chunk | None]:
        """Consume one segment.

        Returns the accumulator to carry forward and the chunk flushed by
        this segment, if any.
        """
        words = self.word_index.resolve(segment)
        segment_word_count = sum(count_words(w.content) for w in words)
        would_exceed = acc.word_count + segment_word_count > self.config.max_word_count
        speaker = self.resolver.resolve(segment.speaker_label)

        if acc.is_empty() or acc.speaker is None or speaker.id != acc.speaker.id or would_exceed:
            flushed = self.flush(acc)
            fresh = Accumulator(
                words=list(words),
                start_time=format_timecode(segment.start_time),
                end_time=format_timecode(segment.end_time),
                speaker=speaker,
            )
            return fresh, flushed

        acc.words.extend(words)
        acc.end_time = format_timecode(segment.end_time)
        return acc, None

    def flush(self, acc: Accumulator) -> Chunk | None:
        """Turn a non-empty accumulator into a :class:`Chunk`."""
        if acc.is_empty() or acc.speaker is None or acc.start_time is None or acc.end_time is None:
            return None

        content = " ".join(w.content for w in acc.words)
        return Chunk(
            id=chunk_id_for(
                self.job.transcript_id, acc.start_time, acc.end_time, self.config.id_strategy
            ),
            user_id=self.job.user_id,
            project_id=self.job.project_id,
            job_id=self.job.transcript_id,
            speaker_id=acc.speaker.id,
            speaker_color=acc.speaker.color,
            speaker_name=acc.speaker.name,
            words=list(acc.words),
            content=content,
            start_time=acc.start_time,
            end_time=acc.end_time,
            # Recounted from the joined content rather than the running tally
            word_count=count_words(content.strip()),
            file_name=self.job.file_name,
            media_file_uri=self.job.media_file_uri,
            output_location_uri=self.job.output_location_uri,
            completed_at=self.completed_at,
            sequence_id=self.job.sequence_id,
            node_id=self.job.node_id,
        )

    def aggregate(self, segments: Iterable[RawSegment]) -> ChunkingResult:
        chunks: list[Chunk] = []
        acc = Accumulator()
        for segment in segments:
            acc, flushed = self.step(acc, segment)
            if flushed is not None:
                chunks.append(flushed)

        # Trailing flush: the last chunk is otherwise never emitted
        last = self.flush(acc)
        if last is not None:
            chunks.append(last)

        self._warn_on_id_collisions(chunks)

        speakers = {s.id: s for s in self.resolver.speakers}
        return ChunkingResult(chunks=chunks, speakers=speakers)

    def _warn_on_id_collisions(self, chunks: list[Chunk]) -> None:
        seen: set[str] = set()
        for chunk in chunks:
            if chunk.id in seen:
                logger.warning(
                    "Job %s: chunks share id %s (%s-%s); the later one overwrites the earlier",
                    self.job.transcript_id,
                    chunk.id,
                    chunk.start_time,
                    chunk.end_time,
                )
            seen.add(chunk.id)


def speaker_chunk(
    transcript: RawTranscript,
    job: JobMetadata,
    config: PipelineConfig | None = None,
    completed_at: datetime | None = None,
) -> ChunkingResult:
    """Chunk a whole transcript for *job*.

    Args:
        transcript: Parsed ASR output.
        job: Metadata of the transcription job being processed.
        config: Word ceiling, id strategy and palette.
        completed_at: Timestamp stamped on every chunk (defaults to now, UTC).

    Returns:
        A :class:`ChunkingResult` with chunks in ASR order.
    """
    config = config or PipelineConfig()
    resolver = SpeakerResolver(job, palette=config.palette, id_strategy=config.id_strategy)
    aggregator = ChunkAggregator(
        WordIndex.build(transcript), resolver, job, config=config, completed_at=completed_at
    )
    return aggregator.aggregate(transcript.segments)
