"""Application configuration via pydantic settings."""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration, read from LODGE_* environment variables."""

    app_name: str = "Lodge Back-Office Booking Core"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # Configuration (in production override via env vars)
    secret_key: str = "your-secret-key-keep-it-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Payment limits
    payment_min_amount: Decimal = Decimal("1")
    payment_max_amount: Decimal = Decimal("10000000")
    max_refund_percentage: Decimal = Field(Decimal("100"), gt=0, le=100)
    max_payments_per_reservation: int = 50
    max_payment_age_days: int = 365

    # Reconciliation
    reconciliation_tolerance: Decimal = Decimal("1")
    double_payment_tolerance: Decimal = Decimal("100")

    # Occupancy windows
    future_window_hours: int = 24
    max_stay_days: int = 30

    # Sequential numbering
    counter_max_attempts: int = Field(3, ge=1)
    counter_backoff_base_seconds: float = 0.05
    # Periods roll over on the lodge's wall clock, not UTC
    business_timezone: str = "Asia/Kolkata"

    model_config = SettingsConfigDict(
        env_prefix="LODGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
