"""Writers for the full-text search tables and the pgvector store."""

from __future__ import annotations

from typing import Any

from supabase import Client

from storysense.config import settings
from storysense.ingestion.models import Chunk, Speaker

UPSERT_BATCH_SIZE = 50


def search_table(index_name: str) -> str:
    """Supabase table backing a named full-text index."""
    return f"search_{index_name}"


def _upsert_batched(
    client: Client, table: str, rows: list[dict[str, Any]], on_conflict: str
) -> None:
    for i in range(0, len(rows), UPSERT_BATCH_SIZE):
        client.table(table).upsert(rows[i : i + UPSERT_BATCH_SIZE], on_conflict=on_conflict).execute()


def index_speakers(client: Client, speakers: list[Speaker], index_name: str | None = None) -> None:
    """Bulk-upsert speakers into the speaker search index."""
    rows = [{**s.to_record(), "search_text": s.search_text} for s in speakers]
    _upsert_batched(client, search_table(index_name or settings.speakers_index_name), rows, "id")


def index_chunks(client: Client, chunks: list[Chunk], index_name: str | None = None) -> None:
    """Bulk-upsert story rows into the transcript search index."""
    rows = [{**c.to_record(), "search_text": c.content} for c in chunks]
    _upsert_batched(
        client, search_table(index_name or settings.transcripts_index_name), rows, "id"
    )


def upsert_vectors(
    client: Client,
    namespace: str,
    chunks_with_embeddings: list[tuple[Chunk, list[float]]],
) -> None:
    """Upsert ``(id, embedding, metadata)`` rows into the project's namespace.

    The metadata repeats the story row's identifying fields so a vector hit
    can be rendered without a second document-store lookup.
    """
    rows: list[dict[str, Any]] = [
        {
            "namespace": namespace,
            "id": chunk.id,
            "content": chunk.content,
            "embedding": embedding,
            "metadata": chunk.metadata(),
        }
        for chunk, embedding in chunks_with_embeddings
    ]
    _upsert_batched(client, settings.vector_table, rows, "namespace,id")
