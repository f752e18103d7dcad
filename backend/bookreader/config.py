"""Application configuration settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKREADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    user_books_dir: str = "user_books"
    shared_books_dir: str = "Books"
    users_file: str = "users.json"

    # Uploads
    max_upload_bytes: int = 500 * 1024 * 1024
    max_files_per_upload: int = 10
    upload_conflict_policy: Literal["overwrite", "reject"] = "overwrite"
    pending_upload_ttl_seconds: float = 1800
    upload_sweep_interval_seconds: float = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8669
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()
