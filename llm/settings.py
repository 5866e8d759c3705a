"""Settings for the extraction (OpenAI LLM) stage."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisSettings(BaseSettings):
    """Environment-driven configuration for the extraction stage."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY", description="OpenAI API key")
    analysis_model: str = Field("gpt-4o-mini", alias="ANALYSIS_MODEL", description="OpenAI model name")
    analysis_temperature: PositiveFloat = Field(0.2, alias="ANALYSIS_TEMPERATURE", description="Sampling temperature")
    extraction_max_tokens: PositiveInt = Field(1200, alias="EXTRACTION_MAX_TOKENS", description="Max tokens for mention extraction")
    analysis_max_tokens: PositiveInt = Field(2000, alias="ANALYSIS_MAX_TOKENS", description="Default max tokens for derived articles")
    analysis_cost_limit_usd: PositiveFloat = Field(0.05, alias="ANALYSIS_COST_LIMIT_USD", description="Per-request cost cap (USD)")
    analysis_request_timeout_seconds: PositiveInt = Field(
        60,
        alias="ANALYSIS_REQUEST_TIMEOUT_SECONDS",
        description="HTTP request timeout in seconds",
    )
    analysis_retry_max_attempts: PositiveInt = Field(2, alias="ANALYSIS_RETRY_MAX_ATTEMPTS", description="Max retry attempts")
    transcript_max_chars: PositiveInt = Field(
        60_000,
        alias="TRANSCRIPT_MAX_CHARS",
        description="Transcript characters sent to the model",
    )

    @field_validator("openai_api_key")
    @classmethod
    def _non_empty_api_key(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("OPENAI_API_KEY must not be blank.")
        return s


@lru_cache()
def get_analysis_settings() -> AnalysisSettings:
    try:
        return AnalysisSettings()
    except ValidationError as exc:
        raise RuntimeError(f"Analysis settings validation failed: {exc}") from exc


def reset_analysis_settings_cache() -> None:
    get_analysis_settings.cache_clear()  # type: ignore[attr-defined]
