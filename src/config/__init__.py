"""Configuration package."""

from src.config.settings import (
    AppSettings,
    ForecastSettings,
    GamificationSettings,
    GoogleSheetsSettings,
    HealthSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ForecastSettings",
    "GamificationSettings",
    "GoogleSheetsSettings",
    "HealthSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
