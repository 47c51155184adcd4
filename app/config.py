"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="MediaTrack", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=5000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_base_url: str = Field(
        default="https://image.tmdb.org/t/p/w500", alias="TMDB_IMAGE_BASE_URL"
    )
    tmdb_region: str = Field(default="US", alias="TMDB_REGION")
    tmdb_timeout_seconds: float = Field(
        default=15.0, alias="TMDB_TIMEOUT", gt=0, le=120
    )

    anilist_api_url: HttpUrl = Field(
        default="https://graphql.anilist.co", alias="ANILIST_API_URL"
    )
    anilist_timeout_seconds: float = Field(
        default=15.0, alias="ANILIST_TIMEOUT", gt=0, le=120
    )

    provider_retry_attempts: int = Field(
        default=3, alias="PROVIDER_RETRY_ATTEMPTS", ge=1, le=10
    )
    provider_retry_base_delay: float = Field(
        default=1.0, alias="PROVIDER_RETRY_BASE_DELAY", ge=0
    )

    discovery_cache_seconds: int = Field(
        default=300, alias="DISCOVERY_CACHE_TTL", ge=1
    )
    enrichment_concurrency: int = Field(
        default=8, alias="ENRICHMENT_CONCURRENCY", ge=1, le=64
    )
    self_note_max_length: int = Field(
        default=1_000, alias="SELF_NOTE_MAX_LENGTH", ge=1, le=100_000
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediatrack.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank_key(cls, value: object) -> object:
        """Treat blank API keys as missing."""

        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("tmdb_image_base_url")
    @classmethod
    def _trim_image_base(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def tmdb_enabled(self) -> bool:
        """Return whether TMDB requests can be made."""

        return bool(self.tmdb_api_key)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
