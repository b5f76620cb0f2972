# backend/tutorhub/core/config.py
import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    brand_name: str = BRAND_NAME
    environment: str = Field(default="development", description="Deployment environment")
    is_testing: bool = Field(default_factory=is_running_tests)

    # Database
    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'tutorhub.db'}",
        description="SQLAlchemy database URL",
    )
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)
    db_pool_timeout: int = Field(
        default=10, ge=1, description="Seconds to wait for a pooled connection"
    )
    db_busy_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long SQLite waits on a locked database before failing",
    )

    # Logging
    log_level: str = Field(default="INFO")

    # CORS
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma separated list of allowed CORS origins",
    )

    # Coupon usage accounting
    coupon_release_on_cancel: bool = Field(
        default=False,
        description=(
            "When enabled, cancelling a paid booking gives back the coupon redemption "
            "(usageCount decremented, CouponUsage row removed)"
        ),
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}

    def get_database_url(self) -> str:
        return self.database_url


settings = Settings()
