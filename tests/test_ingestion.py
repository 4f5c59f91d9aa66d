"""Tests for the ingestion pipeline: parsers, word index, speaker resolution and chunking."""

from __future__ import annotations

import json
import logging
import random

import pytest

from storysense.exceptions import MalformedInputError
from storysense.ingestion.chunking import Accumulator, ChunkAggregator, count_words, speaker_chunk
from storysense.ingestion.models import RawItem, RawSegment, RawTranscript, TranscriptKey
from storysense.ingestion.parsers import (
    is_test_event,
    parse_asr_json,
    parse_job_metadata,
    parse_storage_event,
    parse_transcript_key,
    strip_media_extension,
)
from storysense.ingestion.speakers import SpeakerResolver
from storysense.ingestion.timecode import format_timecode
from storysense.ingestion.word_index import WordIndex
from storysense.pipeline_config import DEFAULT_PALETTE, IdStrategy, PipelineConfig


class TestTimecode:
    def test_zero(self) -> None:
        assert format_timecode(0) == "00:00:00.000"

    def test_fractional_seconds(self) -> None:
        assert format_timecode(2.5) == "00:00:02.500"
        assert format_timecode(0.04) == "00:00:00.040"

    def test_hours_minutes(self) -> None:
        assert format_timecode(3723.25) == "01:02:03.250"

    def test_rounds_to_nearest_millisecond(self) -> None:
        assert format_timecode(1.2346) == "00:00:01.235"

    def test_rounding_carries_into_seconds(self) -> None:
        assert format_timecode(59.9996) == "00:01:00.000"


class TestASRParser:
    def test_items_and_segments(self, make_asr_json) -> None:
        raw = make_asr_json([("spk_0", "hello world", 0.0, 1.0), ("spk_1", "hi", 1.0, 1.5)])
        transcript = parse_asr_json(raw)
        assert len(transcript.segments) == 2
        assert transcript.segments[0].speaker_label == "spk_0"
        assert transcript.segments[1].start_time == 1.0
        words = [i for i in transcript.items if i.item_type == "pronunciation"]
        assert [w.content for w in words] == ["hello", "world", "hi"]
        assert words[0].confidence == 0.95

    def test_punctuation_has_no_timing(self, make_asr_json) -> None:
        transcript = parse_asr_json(make_asr_json([("spk_0", "hello", 0.0, 1.0)]))
        punct = [i for i in transcript.items if i.item_type == "punctuation"]
        assert punct and punct[0].start_time is None

    def test_accepts_bytes(self, make_asr_json) -> None:
        raw = make_asr_json([("spk_0", "hello", 0.0, 1.0)]).encode("utf-8")
        assert len(parse_asr_json(raw).segments) == 1

    def test_missing_speaker_labels_raises(self) -> None:
        data = json.dumps({"results": {"items": []}})
        with pytest.raises(MalformedInputError, match="speaker segments"):
            parse_asr_json(data)

    def test_missing_results_raises(self) -> None:
        with pytest.raises(MalformedInputError, match="results"):
            parse_asr_json(json.dumps({"status": "FAILED"}))

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(MalformedInputError, match="not valid JSON"):
            parse_asr_json("{not json")

    def test_segment_without_speaker_label_raises(self) -> None:
        data = json.dumps(
            {"results": {"items": [], "speaker_labels": {"segments": [{"start_time": "0.0", "end_time": "1.0"}]}}}
        )
        with pytest.raises(MalformedInputError, match="malformed item or segment"):
            parse_asr_json(data)

    @pytest.mark.parametrize("missing", ["start_time", "end_time"])
    def test_segment_without_times_raises(self, missing: str) -> None:
        segment = {"speaker_label": "spk_0", "start_time": "0.0", "end_time": "1.0", "items": []}
        del segment[missing]
        data = json.dumps({"results": {"items": [], "speaker_labels": {"segments": [segment]}}})
        with pytest.raises(MalformedInputError):
            parse_asr_json(data)

    def test_non_numeric_confidence_raises(self) -> None:
        item = {
            "start_time": "0.0",
            "end_time": "0.5",
            "type": "pronunciation",
            "alternatives": [{"content": "hello", "confidence": "n/a"}],
        }
        data = json.dumps({"results": {"items": [item], "speaker_labels": {"segments": []}}})
        with pytest.raises(MalformedInputError):
            parse_asr_json(data)

    def test_non_object_speaker_labels_raises(self) -> None:
        data = json.dumps({"results": {"items": [], "speaker_labels": ["spk_0"]}})
        with pytest.raises(MalformedInputError):
            parse_asr_json(data)

    def test_non_object_item_raises(self) -> None:
        data = json.dumps({"results": {"items": ["hello"], "speaker_labels": {"segments": []}}})
        with pytest.raises(MalformedInputError):
            parse_asr_json(data)


class TestTranscriptKey:
    def test_current_three_part_key(self) -> None:
        key = parse_transcript_key("u1_p1_t1.json", bucket="asr-output")
        assert key.user_id == "u1"
        assert key.project_id == "p1"
        assert key.transcript_id == "t1"
        assert key.bucket == "asr-output"
        assert key.scope == "projects/p1"
        assert key.namespace == "p1"

    def test_legacy_two_part_key(self) -> None:
        key = parse_transcript_key("u1_t1.json")
        assert key.project_id is None
        assert key.transcript_id == "t1"
        assert key.scope == "users/u1"
        assert key.namespace == "u1"

    def test_url_encoded_key(self) -> None:
        key = parse_transcript_key("u1_p1_my+talk%21.json")
        assert key.transcript_id == "my talk!"
        assert key.key == "u1_p1_my talk!.json"

    @pytest.mark.parametrize("bad", ["justone.json", "a_b_c_d.json", "_t1.json"])
    def test_malformed_key_raises(self, bad: str) -> None:
        with pytest.raises(MalformedInputError):
            parse_transcript_key(bad)


class TestStorageEvent:
    def test_parses_first_record(self) -> None:
        event = {
            "Records": [
                {"s3": {"bucket": {"name": "asr-output"}, "object": {"key": "u1_p1_t1.json"}}}
            ]
        }
        key = parse_storage_event(event)
        assert key.bucket == "asr-output"
        assert key.transcript_id == "t1"

    def test_missing_record_raises(self) -> None:
        with pytest.raises(MalformedInputError):
            parse_storage_event({"Records": []})

    def test_test_event(self) -> None:
        assert is_test_event({"test": True})
        assert not is_test_event({"Records": []})


class TestJobMetadata:
    def test_builds_metadata(self) -> None:
        key = TranscriptKey(user_id="u1", transcript_id="t1", project_id="p1")
        record = {
            "id": "t1",
            "file_name": "interview.mp3",
            "media_file_uri": "https://media/interview.mp3",
            "sequence_id": "s1",
            "node_id": "n1",
            "created_at": "2024-03-01T10:00:00Z",
        }
        job = parse_job_metadata(record, key)
        assert job.file_name == "interview"
        assert job.sequence_id == "s1"
        assert job.node_id == "n1"
        assert job.created_at is not None and job.created_at.year == 2024
        assert job.processing_complete is False

    def test_missing_record_raises(self) -> None:
        key = TranscriptKey(user_id="u1", transcript_id="t1")
        with pytest.raises(MalformedInputError, match="No job metadata"):
            parse_job_metadata(None, key)

    def test_missing_media_reference_raises(self) -> None:
        key = TranscriptKey(user_id="u1", transcript_id="t1")
        with pytest.raises(MalformedInputError, match="media reference"):
            parse_job_metadata({"file_name": "a.mp3"}, key)

    def test_strip_media_extension(self) -> None:
        assert strip_media_extension("talk.MP3") == "talk"
        assert strip_media_extension("notes.v2") == "notes.v2"
        assert strip_media_extension("noext") == "noext"


class TestWordIndex:
    def test_resolves_in_reference_order(self) -> None:
        transcript = RawTranscript(
            items=(
                RawItem("hello", 0.9, "0.0", "0.5"),
                RawItem("world", 0.8, "0.5", "1.0"),
            ),
            segments=(),
        )
        index = WordIndex.build(transcript)
        segment = RawSegment("spk_0", 0.0, 1.0, (("0.5", "1.0"), ("0.0", "0.5")))
        assert [w.content for w in index.resolve(segment)] == ["world", "hello"]

    def test_alignment_gap_skipped(self) -> None:
        transcript = RawTranscript(items=(RawItem("hello", 0.9, "0.0", "0.5"),), segments=())
        index = WordIndex.build(transcript)
        segment = RawSegment("spk_0", 0.0, 1.0, (("0.0", "0.5"), ("0.5", "1.0")))
        words = index.resolve(segment)
        assert [w.content for w in words] == ["hello"]

    def test_untimed_items_not_indexed(self) -> None:
        transcript = RawTranscript(items=(RawItem(".", 0.0),), segments=())
        assert len(WordIndex.build(transcript)) == 0

    def test_first_item_wins_on_duplicate_times(self) -> None:
        transcript = RawTranscript(
            items=(RawItem("first", 0.9, "0.0", "0.5"), RawItem("second", 0.9, "0.0", "0.5")),
            segments=(),
        )
        segment = RawSegment("spk_0", 0.0, 0.5, (("0.0", "0.5"),))
        assert WordIndex.build(transcript).resolve(segment)[0].content == "first"


class TestSpeakerResolver:
    def test_same_label_same_speaker(self, job) -> None:
        resolver = SpeakerResolver(job)
        a = resolver.resolve("spk_0")
        assert resolver.resolve("spk_0") is a
        assert len(resolver.speakers) == 1

    def test_new_speaker_fields(self, job) -> None:
        speaker = SpeakerResolver(job).resolve("spk_0")
        assert speaker.name == "spk_0"
        assert speaker.color == DEFAULT_PALETTE[0]
        assert speaker.project_id == "proj-1"
        assert speaker.type.value == "main"
        assert speaker.aliases == []
        assert speaker.jobs[0].job_id == "job-1"
        assert speaker.jobs[0].filename == "interview"
        assert speaker.jobs[0].speaker_id == speaker.id

    def test_palette_wraps(self, job) -> None:
        resolver = SpeakerResolver(job)
        speakers = [resolver.resolve(f"spk_{i}") for i in range(26)]
        assert len(DEFAULT_PALETTE) == 25
        assert speakers[25].color == speakers[0].color
        assert speakers[1].color == DEFAULT_PALETTE[1]

    def test_deterministic_ids_stable_across_runs(self, job) -> None:
        first = SpeakerResolver(job).resolve("spk_0")
        second = SpeakerResolver(job).resolve("spk_0")
        assert first.id == second.id

    def test_random_ids_differ_across_runs(self, job) -> None:
        first = SpeakerResolver(job, id_strategy=IdStrategy.RANDOM).resolve("spk_0")
        second = SpeakerResolver(job, id_strategy=IdStrategy.RANDOM).resolve("spk_0")
        assert first.id != second.id

    def test_empty_palette_rejected(self, job) -> None:
        with pytest.raises(ValueError):
            SpeakerResolver(job, palette=())


class TestChunkAggregation:
    def test_same_speaker_merged(self, job, make_transcript) -> None:
        transcript = make_transcript(
            [("A", "hello world", 0.0, 1.0), ("A", "how are you", 1.0, 2.0)]
        )
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=100))
        assert len(result.chunks) == 1
        chunk = result.chunks[0]
        assert chunk.content == "hello world how are you"
        assert chunk.start_time == "00:00:00.000"
        assert chunk.end_time == "00:00:02.000"
        assert chunk.word_count == 5
        assert chunk.speaker_name == "A"

    def test_split_at_word_ceiling(self, job, make_transcript) -> None:
        transcript = make_transcript(
            [("A", "hello world", 0.0, 1.0), ("A", "how are you", 1.0, 2.0)]
        )
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=3))
        assert [c.content for c in result.chunks] == ["hello world", "how are you"]
        assert result.chunks[0].speaker_id == result.chunks[1].speaker_id
        assert result.chunks[1].start_time == "00:00:01.000"
        assert len(result.speakers) == 1

    def test_speaker_changes(self, job, make_transcript) -> None:
        transcript = make_transcript(
            [("A", "one two", 0.0, 1.0), ("B", "three", 1.0, 2.0), ("A", "four", 2.0, 3.0)]
        )
        result = speaker_chunk(transcript, job)
        assert [c.speaker_name for c in result.chunks] == ["A", "B", "A"]
        assert [c.content for c in result.chunks] == ["one two", "three", "four"]
        assert result.chunks[0].speaker_id == result.chunks[2].speaker_id
        assert len(result.speakers) == 2

    def test_oversized_segment_not_split(self, job, make_transcript) -> None:
        transcript = make_transcript(
            [("A", "a b", 0.0, 1.0), ("A", "c d e f g", 1.0, 2.0), ("A", "h", 2.0, 3.0)]
        )
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=3))
        assert [c.word_count for c in result.chunks] == [2, 5, 1]

    def test_trailing_chunk_emitted(self, job, make_transcript) -> None:
        transcript = make_transcript([("A", "only segment", 0.0, 1.0)])
        result = speaker_chunk(transcript, job)
        assert len(result.chunks) == 1
        assert result.chunks[0].content == "only segment"

    def test_empty_segment_flushes_without_chunk(self, job) -> None:
        transcript = RawTranscript(
            items=(
                RawItem("hi", 0.9, "0.0", "0.5"),
                RawItem("there", 0.9, "2.0", "2.5"),
            ),
            segments=(
                RawSegment("A", 0.0, 0.5, (("0.0", "0.5"),)),
                RawSegment("B", 1.0, 1.5, (("9.9", "9.9"),)),
                RawSegment("A", 2.0, 2.5, (("2.0", "2.5"),)),
            ),
        )
        result = speaker_chunk(transcript, job)
        assert [c.content for c in result.chunks] == ["hi", "there"]
        assert result.chunks[1].start_time == "00:00:02.000"
        assert {s.name for s in result.speakers.values()} == {"A", "B"}

    def test_multi_token_words_counted(self, job) -> None:
        transcript = RawTranscript(
            items=(RawItem("New York", 0.9, "0.0", "0.5"), RawItem("city", 0.9, "0.5", "1.0")),
            segments=(RawSegment("A", 0.0, 1.0, (("0.0", "0.5"), ("0.5", "1.0"))),),
        )
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=100))
        assert result.chunks[0].word_count == 3

    def test_multi_token_words_trigger_ceiling(self, job) -> None:
        transcript = RawTranscript(
            items=(
                RawItem("New York", 0.9, "0.0", "0.5"),
                RawItem("Los Angeles", 0.9, "1.0", "1.5"),
            ),
            segments=(
                RawSegment("A", 0.0, 0.5, (("0.0", "0.5"),)),
                RawSegment("A", 1.0, 1.5, (("1.0", "1.5"),)),
            ),
        )
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=3))
        assert len(result.chunks) == 2

    def test_empty_transcript(self, job) -> None:
        result = speaker_chunk(RawTranscript(items=(), segments=()), job)
        assert result.chunks == []
        assert result.speakers == {}

    def test_chunk_carries_job_fields(self, job, make_transcript) -> None:
        chunk = speaker_chunk(make_transcript([("A", "hello", 0.0, 1.0)]), job).chunks[0]
        assert chunk.job_id == "job-1"
        assert chunk.project_id == "proj-1"
        assert chunk.file_name == "interview"
        assert chunk.sequence_id == "seq-9"
        assert chunk.status.value == "COMPLETED"
        assert chunk.words[0].confidence == 0.9
        record = chunk.to_record()
        assert "node_id" not in record
        assert record["text_items"][0]["content"] == "hello"

    def test_deterministic_chunk_ids(self, job, make_transcript) -> None:
        transcript = make_transcript([("A", "hello", 0.0, 1.0), ("B", "bye", 1.0, 2.0)])
        first = [c.id for c in speaker_chunk(transcript, job).chunks]
        second = [c.id for c in speaker_chunk(transcript, job).chunks]
        assert first == second
        assert len(set(first)) == 2

    def test_colliding_chunk_ids_are_logged(self, job, caplog: pytest.LogCaptureFixture) -> None:
        transcript = RawTranscript(
            items=(RawItem("a", 0.9, "0", "1"), RawItem("b", 0.9, "1", "2")),
            segments=(
                RawSegment("A", 1.0, 1.0, (("0", "1"),)),
                RawSegment("B", 1.0, 1.0, (("1", "2"),)),
            ),
        )
        with caplog.at_level(logging.WARNING, logger="storysense.ingestion.chunking"):
            chunks = speaker_chunk(transcript, job).chunks

        assert len(chunks) == 2
        assert chunks[0].id == chunks[1].id
        assert "share id" in caplog.text

    def test_random_ids_never_logged_as_colliding(self, job, caplog: pytest.LogCaptureFixture) -> None:
        transcript = RawTranscript(
            items=(RawItem("a", 0.9, "0", "1"), RawItem("b", 0.9, "1", "2")),
            segments=(
                RawSegment("A", 1.0, 1.0, (("0", "1"),)),
                RawSegment("B", 1.0, 1.0, (("1", "2"),)),
            ),
        )
        config = PipelineConfig(id_strategy=IdStrategy.RANDOM)
        with caplog.at_level(logging.WARNING, logger="storysense.ingestion.chunking"):
            chunks = speaker_chunk(transcript, job, config).chunks

        assert chunks[0].id != chunks[1].id
        assert "share id" not in caplog.text


class TestAccumulatorStep:
    def test_step_appends_same_speaker(self, job) -> None:
        transcript = RawTranscript(
            items=(RawItem("a", 0.9, "0", "1"), RawItem("b", 0.9, "1", "2")),
            segments=(),
        )
        aggregator = ChunkAggregator(WordIndex.build(transcript), SpeakerResolver(job), job)
        acc, flushed = aggregator.step(Accumulator(), RawSegment("A", 0.0, 1.0, (("0", "1"),)))
        assert flushed is None
        acc, flushed = aggregator.step(acc, RawSegment("A", 1.0, 2.0, (("1", "2"),)))
        assert flushed is None
        assert [w.content for w in acc.words] == ["a", "b"]
        assert acc.start_time == "00:00:00.000"
        assert acc.end_time == "00:00:02.000"

    def test_flush_of_empty_accumulator_is_none(self, job) -> None:
        aggregator = ChunkAggregator(
            WordIndex({}), SpeakerResolver(job), job
        )
        assert aggregator.flush(Accumulator()) is None


class TestChunkingProperties:
    @pytest.mark.parametrize("seed", range(10))
    def test_words_preserved_bounded_and_single_speaker(self, seed: int, job, make_transcript) -> None:
        rng = random.Random(seed)
        vocab = ["alpha", "beta", "gamma", "delta", "epsilon"]
        specs = []
        t = 0.0
        for _ in range(rng.randint(1, 40)):
            n = rng.randint(1, 12)
            text = " ".join(rng.choice(vocab) for _ in range(n))
            specs.append((rng.choice(["A", "B", "C"]), text, t, t + 1.0))
            t += 1.0
        transcript = make_transcript(specs)
        ceiling = rng.randint(3, 20)
        result = speaker_chunk(transcript, job, PipelineConfig(max_word_count=ceiling))

        index = WordIndex.build(transcript)
        expected = [w for seg in transcript.segments for w in index.resolve(seg)]
        emitted = [w for c in result.chunks for w in c.words]
        assert emitted == expected

        segment_sizes = {
            sum(count_words(w.content) for w in index.resolve(seg)) for seg in transcript.segments
        }
        for chunk in result.chunks:
            assert chunk.word_count <= ceiling or chunk.word_count in segment_sizes
            assert chunk.speaker_id in result.speakers

        # The last segment always lands in the last chunk
        assert result.chunks[-1].words[-1] == expected[-1]
        assert result.chunks[-1].end_time == format_timecode(transcript.segments[-1].end_time)
