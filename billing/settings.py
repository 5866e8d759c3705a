"""Settings for the payments collaborator."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, PositiveInt, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BillingSettings(BaseSettings):
    """Stripe configuration; every key is optional so the API boots without billing."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    stripe_secret_key: Optional[SecretStr] = Field(None, alias="STRIPE_SECRET_KEY")
    stripe_monthly_price_id: Optional[str] = Field(None, alias="STRIPE_MONTHLY_PRICE_ID")
    stripe_annual_price_id: Optional[str] = Field(None, alias="STRIPE_ANNUAL_PRICE_ID")
    stripe_webhook_secret: Optional[SecretStr] = Field(None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_api_base: str = Field("https://api.stripe.com/v1", alias="STRIPE_API_BASE")
    stripe_trial_days: PositiveInt = Field(7, alias="STRIPE_TRIAL_DAYS")
    stripe_timeout_seconds: PositiveInt = Field(10, alias="STRIPE_TIMEOUT_SECONDS")
    stripe_webhook_tolerance_seconds: PositiveInt = Field(300, alias="STRIPE_WEBHOOK_TOLERANCE_SECONDS")
    public_base_url: str = Field("http://localhost:3000", alias="PUBLIC_BASE_URL")

    @field_validator("stripe_api_base", "public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("stripe_monthly_price_id", "stripe_annual_price_id")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        s = v.strip()
        return s or None


@lru_cache()
def get_billing_settings() -> BillingSettings:
    try:
        return BillingSettings()
    except ValidationError as exc:
        raise RuntimeError(f"Billing settings validation failed: {exc}") from exc


def reset_billing_settings_cache() -> None:
    get_billing_settings.cache_clear()  # type: ignore[attr-defined]
