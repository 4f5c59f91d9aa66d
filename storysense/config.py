from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    openai_api_key: str = ""

    # Supabase (object storage, document store, search tables, pgvector)
    supabase_url: str = ""
    supabase_key: str = ""

    # Indexing
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 3072
    max_word_count: int = 100
    transcripts_index_name: str = "transcripts"
    speakers_index_name: str = "speakers"
    vector_table: str = "transcript_vectors"

    # External media search; an empty URL disables the provider
    media_search_url: str = ""
    media_search_timeout: float = 10.0

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
