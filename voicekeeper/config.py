from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    Optional providers are disabled by leaving their key empty.
    """

    # API Keys
    openai_api_key: str = ""  # Optional: semantic search; keyword search works without it
    anthropic_api_key: str = ""  # Optional: generated answers; excerpts are shown without it
    assemblyai_api_key: str = ""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 3072
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 500
    tokenizer_encoding: str = "cl100k_base"
    max_chunk_tokens: int = 400
    chunk_overlap_tokens: int = 50
    retrieval_top_k: int = 5
    keyword_relevance_score: float = 0.5

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def semantic_search_enabled(self) -> bool:
        """True when both the embedding provider and the vector index are configured."""
        return bool(self.openai_api_key and self.supabase_url and self.supabase_key)


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
