"""Configuration module for LiveTrack API."""

from livetrack.config.settings import (
    AnalyticsSettings,
    APISettings,
    AuthSettings,
    BrokerSettings,
    DatabaseSettings,
    SchedulerSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "APISettings",
    "AuthSettings",
    "BrokerSettings",
    "AnalyticsSettings",
    "DatabaseSettings",
    "SchedulerSettings",
]
