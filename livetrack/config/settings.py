from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration settings.

    Locations are stored in a single SQLite file accessed through aiosqlite.
    The journal runs in WAL mode so analytics reads never block the
    location stream writer.
    """

    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")

    path: Path = Field(default=Path("data/locations.db"), description="Path to the SQLite database file")
    echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    echo_pool: bool = Field(default=False, description="Enable SQLAlchemy pool logging")
    drop_on_startup: bool = Field(default=False, description="Drop all tables on startup (development only)")

    @property
    def url(self) -> str:
        """Construct the database URL from the file path."""
        return f"sqlite+aiosqlite:///{self.path}"

    @model_validator(mode="after")
    def validate_db_url(self) -> "DatabaseSettings":
        """Ensure the path points at a file, not the in-memory database."""
        if str(self.path) in ("", ":memory:"):
            raise ValueError(
                "Database path must be a file so location history survives restarts. "
                "Example: data/locations.db"
            )
        return self


class APISettings(BaseSettings):
    """API server configuration settings."""

    model_config = SettingsConfigDict(env_prefix="API_", env_file=".env", extra="ignore")

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=3000, description="API server port")
    workers: int = Field(default=1, description="Number of worker processes")
    reload: bool = Field(default=False, description="Enable auto-reload on code changes")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    allowed_origins: list[str] = Field(
        default=[],
        description="Origins allowed to open the live channel and call the API. Empty allows any origin.",
    )

    @model_validator(mode="after")
    def validate_single_worker(self) -> "APISettings":
        """Connection state lives in process memory, so only one worker may serve it."""
        if self.workers != 1:
            raise ValueError(
                f"API_WORKERS must be 1, got {self.workers}. "
                "Live connections and their latest locations are held in process memory."
            )
        return self


class AuthSettings(BaseSettings):
    """Shared-secret gate for the analytics API."""

    model_config = SettingsConfigDict(env_prefix="AUTH_", env_file=".env", extra="ignore")

    analytics_secret: str = Field(
        default="",
        description="Shared secret required by the analytics endpoints. Empty disables access.",
    )
    header_name: str = Field(
        default="X-Analytics-Secret",
        description="Request header carrying the shared secret",
    )


class BrokerSettings(BaseSettings):
    """Live location broker configuration settings."""

    model_config = SettingsConfigDict(env_prefix="BROKER_", env_file=".env", extra="ignore")

    rate_limit_max_events: int = Field(
        default=10,
        ge=1,
        description="Maximum location updates accepted per connection within one window",
    )
    rate_limit_window_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Length of the fixed rate-limit window in seconds",
    )
    persistence_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Max accepted locations waiting to be written before new ones are dropped",
    )


class AnalyticsSettings(BaseSettings):
    """Analytics and retention configuration settings."""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_", env_file=".env", extra="ignore")

    retention_days: int = Field(
        default=30,
        ge=1,
        description="Number of days to keep location records before cleanup",
    )
    history_limit: int = Field(
        default=100,
        description="Default number of records returned by the per-connection history endpoint",
    )
    all_history_limit: int = Field(
        default=1000,
        description="Default number of records returned by the global history endpoint",
    )
    top_connections_limit: int = Field(
        default=10,
        description="Number of most active connections reported by the analytics summary",
    )


class SchedulerSettings(BaseSettings):
    """APScheduler configuration for periodic background tasks."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", env_file=".env", extra="ignore")

    enabled: bool = Field(
        default=True,
        description="Enable scheduled background tasks",
    )
    cleanup_hour: int = Field(
        default=3,
        ge=0,
        le=23,
        description="Hour (UTC, 0-23) to run the retention cleanup",
    )
    cleanup_minute: int = Field(
        default=0,
        ge=0,
        le=59,
        description="Minute (0-59) to run the retention cleanup",
    )


class Settings(BaseSettings):
    """Main application settings.

    This class aggregates all configuration sections and provides
    a single point of access for application configuration.

    Configuration precedence (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values

    Example .env file:
        APP_ENVIRONMENT=production
        API_PORT=3000
        API_ALLOWED_ORIGINS=["https://tracker.example.com"]
        AUTH_ANALYTICS_SECRET=change-me
        DB_PATH=/var/lib/livetrack/locations.db
        ANALYTICS_RETENTION_DAYS=30
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    name: str = Field(default="LiveTrack API", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    description: str = Field(
        default="Real-time location sharing and location history analytics",
        description="Application description",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )

    # Sub-configurations
    api: APISettings = Field(default_factory=APISettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function is cached to ensure we only parse configuration once.
    Use this function throughout the application to access settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
