"""Configuration models for the ingestion service."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any, List

from pydantic import Field, PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_CAPTION_LANGUAGES = ["en", "en-US", "en-GB", "en-CA"]


class Settings(BaseSettings):
    """Environment settings for ingestion, processing and the web API."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="INGESTION_REDIS_URL",
        description="Celery broker/backend and in-flight claim store.",
    )
    postgres_dsn: str = Field(..., alias="POSTGRES_DSN", description="Database connection string.")
    youtube_base_url: str = Field(
        "https://www.youtube.com",
        alias="YOUTUBE_BASE_URL",
        description="Base URL for watch pages, the player endpoint and oEmbed.",
    )
    youtube_caption_languages: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CAPTION_LANGUAGES),
        alias="YOUTUBE_CAPTION_LANGUAGES",
        description="Caption languages tried in order (JSON array or comma separated).",
    )
    youtube_client_name: str = Field("ANDROID", alias="YOUTUBE_CLIENT_NAME")
    youtube_client_version: str = Field("20.10.38", alias="YOUTUBE_CLIENT_VERSION")
    youtube_user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        alias="YOUTUBE_USER_AGENT",
    )
    transcript_attempt_timeout_seconds: PositiveFloat = Field(
        12.0,
        alias="TRANSCRIPT_ATTEMPT_TIMEOUT_SECONDS",
        description="Upper bound for one cascade attempt (seconds).",
    )
    inflight_claim_ttl_seconds: PositiveInt = Field(
        900,
        alias="INFLIGHT_CLAIM_TTL_SECONDS",
        description="TTL of a processing claim on a content record.",
    )
    dashboard_timezone: str = Field("America/New_York", alias="DASHBOARD_TIMEZONE")
    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="Log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit logs as JSON lines.")
    celery_worker_concurrency: PositiveInt = Field(4, alias="CELERY_WORKER_CONCURRENCY")
    celery_task_soft_time_limit: PositiveInt = Field(
        300,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery task soft time limit (seconds).",
    )

    @field_validator("youtube_caption_languages", mode="before")
    @classmethod
    def _parse_languages(cls, value: Any) -> List[Any]:
        if value in (None, "", []):
            return list(DEFAULT_CAPTION_LANGUAGES)
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                try:
                    return json.loads(text)
                except json.JSONDecodeError as exc:
                    raise ValueError("YOUTUBE_CAPTION_LANGUAGES must be a JSON array.") from exc
            return [part for part in text.split(",")]
        if isinstance(value, (list, tuple)):
            return list(value)
        raise ValueError("YOUTUBE_CAPTION_LANGUAGES must be a list.")

    @field_validator("youtube_caption_languages")
    @classmethod
    def _clean_languages(cls, value: List[str]) -> List[str]:
        cleaned: List[str] = []
        for lang in value:
            code = str(lang).strip()
            if code and code not in cleaned:
                cleaned.append(code)
        if not cleaned:
            raise ValueError("At least one caption language is required.")
        return cleaned

    @field_validator("postgres_dsn")
    @classmethod
    def _validate_postgres_dsn(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("POSTGRES_DSN must be a valid DSN string.")
        return value

    @field_validator("youtube_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Return Settings built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings cache (tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
