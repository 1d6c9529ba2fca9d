"""
Configuration Management for Budget Strategist

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable number of the forecasting and gamification rules lives in a
settings group so tests and operators can override it without code changes.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForecastSettings(BaseSettings):
    """Monte Carlo forecast configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FORECAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    trial_count: int = Field(
        default=1000,
        ge=1,
        le=100000,
        description="Number of independent Monte Carlo trials"
    )
    variance_multiplier: float = Field(
        default=0.5,
        ge=0.0,
        description="Daily spend spread as a fraction of the average burn rate"
    )
    no_burn_survival_days: int = Field(
        default=999,
        ge=1,
        description="Survival days reported when nothing has been spent yet"
    )
    seed: Optional[int] = Field(
        default=None,
        description="Seed for the random generator (unset = fresh entropy)"
    )


class HealthSettings(BaseSettings):
    """Health tier thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    critical_probability: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Bankruptcy probability above which the tier is D"
    )
    warning_probability: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Bankruptcy probability above which the tier is C"
    )
    excellent_buffer_ratio: float = Field(
        default=1.0,
        ge=0.0,
        description="Projected balance above savings_goal * ratio is tier S"
    )
    comfortable_buffer_ratio: float = Field(
        default=0.5,
        ge=0.0,
        description="Projected balance above savings_goal * ratio is tier A"
    )


class GamificationSettings(BaseSettings):
    """Badge thresholds and experience rates."""

    model_config = SettingsConfigDict(
        env_prefix="GAMIFICATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    first_entry_count: int = Field(
        default=1,
        ge=1,
        description="Today's log count that unlocks the first-entry badge"
    )
    streak_badge_days: int = Field(
        default=3,
        ge=1,
        description="Streak length that unlocks the streak badge"
    )
    early_bird_before_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="Logging before this local hour unlocks the early badge"
    )
    night_owl_from_hour: int = Field(
        default=22,
        ge=0,
        le=23,
        description="Logging at or after this local hour unlocks the late badge"
    )
    late_badge_enabled: bool = Field(
        default=True,
        description="Whether the late-night badge rule is active"
    )
    xp_per_entry: int = Field(
        default=10,
        ge=0,
        description="Experience points granted per logged entry"
    )
    xp_per_level: int = Field(
        default=100,
        ge=1,
        description="Experience points needed per level"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # Sheet names within the spreadsheet
    profiles_sheet_name: str = Field(
        default="Profiles",
        description="Name of the sheet for user profiles"
    )
    entries_sheet_name: str = Field(
        default="Entries",
        description="Name of the sheet for log entries"
    )
    streaks_sheet_name: str = Field(
        default="Streaks",
        description="Name of the sheet for streak state"
    )
    badges_sheet_name: str = Field(
        default="Badges",
        description="Name of the sheet for badge grants"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Show raw reply payloads in the chat console"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Storage
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage backend to use"
    )

    # Chat behaviour
    timezone: str = Field(
        default="Asia/Tokyo",
        description="IANA timezone used for calendar days and time slots"
    )
    currency_symbol: str = Field(
        default="¥",
        description="Currency symbol shown in replies"
    )
    empty_label_placeholder: str = Field(
        default="(no label)",
        min_length=1,
        description="Label stored when a logged message only holds a price"
    )
    activity_retention_hours: Optional[int] = Field(
        default=None,
        ge=1,
        description="If set, entries expire from today's views after this many hours"
    )
    recent_entries_window: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many recent entries suppress repeated suggestions"
    )
    suggestion_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many suggestions to offer per request"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names at startup."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


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

    # Load all sub-settings
    # Note: These are loaded lazily to allow partial configuration

    @property
    def forecast(self) -> ForecastSettings:
        return ForecastSettings()

    @property
    def health(self) -> HealthSettings:
        return HealthSettings()

    @property
    def gamification(self) -> GamificationSettings:
        return GamificationSettings()

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

    for name in ("forecast", "health", "gamification", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
