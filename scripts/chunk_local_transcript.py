"""Dry-run the chunker over a local ASR JSON file. No sinks are touched."""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storysense.ingestion.chunking import speaker_chunk
from storysense.ingestion.models import JobMetadata
from storysense.ingestion.parsers import parse_asr_json, strip_media_extension
from storysense.pipeline_config import IdStrategy, PipelineConfig


def chunk_local_transcript(
    path: str,
    max_word_count: int = 100,
    id_strategy: str = "deterministic",
) -> None:
    """Parse *path*, chunk it and print one line per chunk."""
    file_path = Path(path)
    if not file_path.exists():
        print(f"File {path} not found.")
        return

    transcript = parse_asr_json(file_path.read_bytes())
    job = JobMetadata(
        transcript_id=file_path.stem,
        user_id="local",
        file_name=strip_media_extension(file_path.stem),
        media_file_uri=str(file_path),
    )
    config = PipelineConfig(max_word_count=max_word_count, id_strategy=IdStrategy(id_strategy))
    result = speaker_chunk(transcript, job, config)

    print(
        f"{len(transcript.segments)} segments -> {len(result.chunks)} chunks, "
        f"{len(result.speakers)} speakers\n"
    )
    for chunk in result.chunks:
        preview = chunk.content if len(chunk.content) <= 80 else chunk.content[:77] + "..."
        print(
            f"  [{chunk.start_time} - {chunk.end_time}] {chunk.speaker_name} "
            f"({chunk.word_count} words) {preview}"
        )


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("path")
    parser.add_argument("--max-words", type=int, default=100)
    parser.add_argument("--ids", choices=["deterministic", "random"], default="deterministic")
    args = parser.parse_args()
    chunk_local_transcript(args.path, args.max_words, args.ids)
