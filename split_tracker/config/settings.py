"""
Configuration Management for Split Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SplitSettings(BaseSettings):
    """
    Settlement and notification behaviour.

    Every field has a default so the core runs without any environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPLIT_",
        extra="ignore"
    )

    share_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Allowed difference between the sum of shares and the total"
    )
    notification_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between two notification sends (downstream rate limit)"
    )
    notification_error_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Pause after a failed notification send"
    )
    email_status_clear_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="How long a notification status stays visible"
    )
    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Symbol used in notification text"
    )
    min_participants: int = Field(
        default=1,
        ge=1,
        description="Fewer participants than this is a validation error"
    )
    recommended_min_participants: int = Field(
        default=2,
        ge=1,
        description="Fewer participants than this is a validation warning"
    )
    max_total_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Maximum reasonable split total (for sanity checking)"
    )


class EmailJSSettings(BaseSettings):
    """EmailJS notification service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EMAILJS_",
        extra="ignore"
    )

    service_id: str = Field(
        ...,
        description="EmailJS service ID"
    )
    split_template_id: str = Field(
        ...,
        description="Template used for split notifications and reminders"
    )
    public_key: str = Field(
        ...,
        description="EmailJS public key (user_id)"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="EmailJS private key (accessToken) for server-side sends"
    )
    api_url: str = Field(
        default="https://api.emailjs.com/api/v1.0/email/send",
        description="EmailJS REST endpoint"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="HTTP timeout for a single send"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    worksheet_rows: int = Field(
        default=1000,
        ge=10,
        description="Initial row count for newly created collection sheets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which document store backs the application"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def split(self) -> SplitSettings:
        return SplitSettings()

    @property
    def emailjs(self) -> EmailJSSettings:
        return EmailJSSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("split", "emailjs", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
