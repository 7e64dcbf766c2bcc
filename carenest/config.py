"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    API_BASE_URL: Base URL of the CareNest REST API
    API_TIMEOUT: Request timeout in seconds (default: 30)
    DEFAULT_DAY_START / DEFAULT_DAY_END: Weekday working hours (09:00-17:00)
    ALLOWED_DURATIONS: Bookable session lengths in minutes (JSON list)
    CANCELLATION_WINDOW_HOURS: Patient cancellation cutoff (default: 24)
    JOIN_WINDOW_MINUTES: How early a session can be joined (default: 15)
    BLOCKING_MODE: "date" or "slot" double-booking prevention
    TIMEZONE: Zone used to interpret naive booking dates (default: UTC)
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from datetime import time
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote API
    api_base_url: str = "http://localhost:5000/api"
    """CareNest REST API base URL.

    All session, therapist and availability calls are made relative to it.
    """

    api_timeout: float = 30.0
    """Request timeout in seconds for the REST API."""

    # Working hours
    default_day_start: time = time(9, 0)
    """Start of the default working range for Monday-Friday.

    Applied only when a therapist has no explicit ranges for a weekday.
    """

    default_day_end: time = time(17, 0)
    """End (exclusive) of the default working range for Monday-Friday."""

    # Booking rules
    allowed_durations: list[int] = [30, 60, 90]
    """Session lengths in minutes a patient may book."""

    default_duration: int = 60
    """Duration used when the caller does not choose one."""

    booking_horizon_days: int = 30
    """How many days ahead the calendar offers dates."""

    blocking_mode: Literal["date", "slot"] = "date"
    """Double-booking prevention granularity.

    Options:
    - date: any open session with a therapist hides the whole day
    - slot: only overlapping time slots are hidden
    """

    timezone: str = "UTC"
    """IANA zone used to interpret naive dates and slots chosen by a patient.

    Stored timestamps are always normalized to UTC.
    """

    # Time windows
    cancellation_window_hours: int = 24
    """Patients may cancel only while more than this many hours remain."""

    join_window_minutes: int = 15
    """A confirmed session can be joined this many minutes before start."""

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment."""

    debug: bool = False
    """Enable debug logging."""

    app_name: str = "carenest-booking"
    """Application name."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("allowed_durations")
    @classmethod
    def validate_durations(cls, value: list[int]) -> list[int]:
        if not value or any(d <= 0 for d in value):
            raise ValueError("allowed_durations must be positive minutes")
        return sorted(set(value))

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone object for the configured booking timezone."""
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from carenest.config import get_settings
        >>> settings = get_settings()
        >>> settings.cancellation_window_hours
        24
    """
    return Settings()
