"""
Settings and configuration for the Booking Service.
"""

from typing import List, Optional

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    db_url_booking: str = Field(
        default=...,
        description="Database connection string for the booking service",
        validation_alias=AliasChoices("DB_URL_BOOKING"),
    )

    # Meeting provisioning
    google_calendar_access_token: Optional[str] = Field(
        default=None,
        description="OAuth access token used to create Google Meet events",
        validation_alias=AliasChoices("GOOGLE_CALENDAR_ACCESS_TOKEN"),
    )
    google_calendar_id: str = Field(
        default="primary",
        description="Calendar that hosts booking events",
        validation_alias=AliasChoices("GOOGLE_CALENDAR_ID"),
    )
    google_calendar_api_url: str = Field(
        default="https://www.googleapis.com/calendar/v3",
        description="Base URL of the Google Calendar API",
        validation_alias=AliasChoices("GOOGLE_CALENDAR_API_URL"),
    )

    # Notifications
    email_service_url: Optional[str] = Field(
        default=None,
        description="Base URL of the transactional email API",
        validation_alias=AliasChoices("EMAIL_SERVICE_URL"),
    )
    email_service_api_key: Optional[str] = Field(
        default=None,
        description="API key for the transactional email API",
        validation_alias=AliasChoices("EMAIL_SERVICE_API_KEY"),
    )
    email_from: str = Field(
        default="bookings@bookwell.app",
        description="Sender address for booking notifications",
        validation_alias=AliasChoices("EMAIL_FROM"),
    )

    reminder_offsets_minutes: List[int] = Field(
        default=[24 * 60, 60],
        description="Minutes before a booking at which reminders are sent",
        validation_alias=AliasChoices("REMINDER_OFFSETS_MINUTES"),
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for outbound provider calls",
        validation_alias=AliasChoices("HTTP_TIMEOUT_SECONDS"),
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias=AliasChoices("LOG_LEVEL"),
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
        validation_alias=AliasChoices("LOG_FORMAT"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
