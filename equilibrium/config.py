"""Configuration settings for equilibrium."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``EQUILIBRIUM_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EQUILIBRIUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Engine
    default_timeout_ms: int = 2000
    max_suggestions: int = 3

    # Assistant: nothing leaves the process unless this is switched on
    send_to_model: bool = False
    model_provider: str = ""  # "anthropic", "ollama" or "" for auto-detect
    model_id: str | None = None
    model_timeout_s: float = 10.0
    ollama_base_url: str = "http://localhost:11434"

    # Retrieval
    retrieval_chunk_chars: int = 340
    retrieval_overlap_chars: int = 40
    retriever_cache_size: int = 64  # sessions whose retrieval index is kept in memory


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
