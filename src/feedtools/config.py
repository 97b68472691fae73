"""Application configuration handling."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the feed tools."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./tech_news.db"

    default_category: str = "Tech"
    feed_timeout_seconds: float = 10.0
    feed_user_agent: str = "Mozilla/5.0 (compatible; TechNewsRSS/1.0)"
    feed_check_delay_seconds: float = 1.0
    feed_load_delay_seconds: float = 1.0
    highlight_marker: Optional[str] = "AI Wire"

    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"
    embedding_batch_size: int = 10
    embedding_max_chars: int = 8000

    vector_table: str = "vector_store"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
