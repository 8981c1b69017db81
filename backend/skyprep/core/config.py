# backend/skyprep/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the session scheduling backend."""

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )
    database_url: str = Field(
        default="sqlite:///./skyprep.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Calendar policy
    operating_timezone: str = Field(
        default="UTC",
        alias="OPERATING_TIMEZONE",
        description="Single time zone all calendar rules are evaluated in",
    )
    default_session_duration_minutes: int = Field(
        default=75,
        alias="DEFAULT_SESSION_DURATION_MINUTES",
        gt=0,
        description="Slot length used when the caller does not ask for one",
    )
    booking_window_min_days: int = Field(default=1, alias="BOOKING_WINDOW_MIN_DAYS", ge=0)
    booking_window_max_days: int = Field(default=10, alias="BOOKING_WINDOW_MAX_DAYS", ge=0)

    # Daily caps
    teacher_max_sessions_per_day: int = Field(
        default=4, alias="TEACHER_MAX_SESSIONS_PER_DAY", gt=0
    )
    student_max_sessions_per_day: int = Field(
        default=3, alias="STUDENT_MAX_SESSIONS_PER_DAY", gt=0
    )
    student_max_sessions_per_subject_per_day: int = Field(
        default=1, alias="STUDENT_MAX_SESSIONS_PER_SUBJECT_PER_DAY", gt=0
    )

    # Conditional write retries on participant calendar contention
    booking_write_max_attempts: int = Field(
        default=3, alias="BOOKING_WRITE_MAX_ATTEMPTS", ge=1, le=10
    )

    # Meetings
    jitsi_domain: str = Field(default="meet.jit.si", alias="JITSI_DOMAIN")
    meeting_room_prefix: str = Field(default="skyprep", alias="MEETING_ROOM_PREFIX")

    # Email settings
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    resend_api_key: Optional[str] = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    from_email: str = Field(default=f"{BRAND_NAME} <sessions@skyprep.in>", alias="FROM_EMAIL")

    # Background jobs
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    session_status_sweep_seconds: int = Field(
        default=60, alias="SESSION_STATUS_SWEEP_SECONDS", gt=0
    )

    is_testing: bool = False  # Set to True when running tests

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("operating_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown operating timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _check_booking_window(self) -> "Settings":
        if self.booking_window_max_days < self.booking_window_min_days:
            raise ValueError("BOOKING_WINDOW_MAX_DAYS must be >= BOOKING_WINDOW_MIN_DAYS")
        return self

    def get_database_url(self) -> str:
        """Get the database URL for the current context."""
        return self.database_url


settings = Settings()
