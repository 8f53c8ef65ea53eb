"""Centralised storefront settings, loaded from the environment.

Every variable is prefixed with ``DUKA_`` (e.g. ``DUKA_API_BASE_URL``) and may
also come from a local ``.env`` file.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str | None = None
    LOG_DIR: Path | None = None

    # Storefront REST API
    API_BASE_URL: str = "http://localhost:5000/api"
    HTTP_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0)

    # Local cache directory; in-memory storage when unset
    STORAGE_DIR: Path | None = None

    # Pricing
    CURRENCY: str = "KES"
    FREE_SHIPPING_THRESHOLD: Decimal = Field(default=Decimal("100"), ge=0)
    STANDARD_SHIPPING_COST: Decimal = Field(default=Decimal("10"), ge=0)
    TAX_RATE: Decimal = Field(default=Decimal("0.10"), ge=0)

    # M-Pesa confirmation window: 30 polls x 10 s = 5 minutes
    MPESA_POLL_INTERVAL_MS: int = Field(default=10_000, ge=0)
    MPESA_MAX_ATTEMPTS: int = Field(default=30, ge=1)

    model_config = SettingsConfigDict(env_prefix="DUKA_", env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader so the environment is parsed once."""
    return Settings()
