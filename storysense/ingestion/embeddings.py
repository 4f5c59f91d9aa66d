"""Embedding helpers using the OpenAI embeddings API."""

from __future__ import annotations

from openai import OpenAI

from storysense.config import settings
from storysense.ingestion.models import Chunk

# OpenAI accepts up to 2048 inputs per request; stay well below it
EMBED_BATCH_SIZE = 100


def embed_texts(texts: list[str], model: str | None = None) -> list[list[float]]:
    """Embed a list of texts using the OpenAI embeddings API.

    Args:
        texts: Strings to embed.
        model: OpenAI embedding model name (defaults to ``settings.embedding_model``).

    Returns:
        A list of embedding vectors (one per input text).
    """
    if not texts:
        return []
    client = OpenAI(api_key=settings.openai_api_key or None)
    model = model or settings.embedding_model

    vectors: list[list[float]] = []
    for i in range(0, len(texts), EMBED_BATCH_SIZE):
        response = client.embeddings.create(input=texts[i : i + EMBED_BATCH_SIZE], model=model)
        vectors.extend(item.embedding for item in response.data)
    return vectors


def embed_chunks(chunks: list[Chunk]) -> list[tuple[Chunk, list[float]]]:
    """Embed chunks and return ``(chunk, embedding)`` pairs.

    Args:
        chunks: Chunks whose ``content`` will be embedded.

    Returns:
        List of ``(Chunk, embedding_vector)`` tuples.
    """
    texts = [c.content for c in chunks]
    embeddings = embed_texts(texts)
    return list(zip(chunks, embeddings, strict=True))
