"""
Configuration and settings for the community backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Key-value backends; Redis wins over SQL when both are set.
    redis_url: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # One namespace per resource, mirroring separate KV bindings.
    forum_namespace: str = Field(default="forum_posts")
    announcement_namespace: str = Field(default="announcement")
    submissions_namespace: str = Field(default="submissions")

    default_author: str = Field(default="anonymous")
    default_announcement: str = Field(default="no announcement")

    # Malformed request bodies surface as 500 unless this is enabled.
    reject_malformed_json: bool = Field(default=False)

    # Optional directory served for paths outside the API.
    static_dir: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
