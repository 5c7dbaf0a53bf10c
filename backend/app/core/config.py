# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_SQLITE_URL = f"sqlite:///{_BACKEND_ROOT / 'schedule.db'}"

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment name",
    )
    database_url_raw: str = Field(
        default=_DEFAULT_SQLITE_URL,
        alias="database_url",
        description="SQLAlchemy URL for the primary database",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Broker/result backend for Celery",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Schedule expansion
    schedule_timezone: str = Field(
        default="Europe/Rome",
        description="Wall-clock timezone used for rule times and 'today'",
    )
    schedule_expansion_weeks: int = Field(
        default=12,
        description="Rolling horizon (in weeks from today) materialized by each pass",
    )
    schedule_upsert_batch_size: int = Field(
        default=50,
        description="Number of candidate slots reconciled per flush",
    )
    schedule_expansion_cron_hour: int = Field(
        default=2,
        description="Hour of day (clinic timezone) for the nightly expansion",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("schedule_expansion_weeks", "schedule_upsert_batch_size")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("schedule_expansion_cron_hour")
    @classmethod
    def _validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("schedule_expansion_cron_hour must be between 0 and 23")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(normalized), int):
            logger.warning("Invalid LOG_LEVEL=%s; defaulting to INFO", value)
            return "INFO"
        return normalized

    @property
    def database_url(self) -> str:
        """Database URL for the running process."""
        return self.database_url_raw

    @property
    def is_sqlite(self) -> bool:
        return self.database_url_raw.startswith("sqlite")


settings = Settings()
