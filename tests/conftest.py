import os
from typing import Any

import pytest
import pytest_asyncio


@pytest.fixture(scope="session", autouse=True)
def baseline_settings_env():
    """Provide baseline env vars so tests are not affected by local .env.

    Pydantic-settings precedence: init args > env vars > .env > defaults.
    Setting these ensures stable defaults regardless of any .env present.
    """
    os.environ.update({
        # App
        "APP_NAME": "LiveTrack API",
        "APP_VERSION": "0.1.0",
        "APP_DEBUG": "false",
        "APP_ENVIRONMENT": "development",
        # API
        "API_HOST": "0.0.0.0",
        "API_PORT": "3000",
        "API_WORKERS": "1",
        "API_RELOAD": "false",
        "API_LOG_LEVEL": "INFO",
        "API_ALLOWED_ORIGINS": "[]",
        # Database
        "DB_PATH": "data/locations.db",
        "DB_ECHO": "false",
        "DB_DROP_ON_STARTUP": "false",
        # Auth
        "AUTH_ANALYTICS_SECRET": "",
        # Broker
        "BROKER_RATE_LIMIT_MAX_EVENTS": "10",
        "BROKER_RATE_LIMIT_WINDOW_SECONDS": "1.0",
        # Analytics
        "ANALYTICS_RETENTION_DAYS": "30",
    })


@pytest.fixture(autouse=True)
def refresh_settings_cache():
    """Clear settings cache so env changes take effect per test.

    Ensures tests using monkeypatch.setenv() get a fresh Settings instance.
    """
    from livetrack.config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    from livetrack.config.settings import DatabaseSettings, SchedulerSettings, Settings

    return Settings(
        database=DatabaseSettings(path=tmp_path / "locations.db"),
        scheduler=SchedulerSettings(enabled=False),
    )


@pytest_asyncio.fixture
async def store(db_settings):
    """LocationStore over a fresh database with the schema created."""
    from advanced_alchemy.extensions.litestar import base
    from sqlalchemy.ext.asyncio import async_sessionmaker

    import livetrack.domain  # noqa: F401
    from livetrack.server.plugins import create_engine
    from livetrack.services.store.service import LocationStore

    engine = create_engine(db_settings)
    async with engine.begin() as conn:
        await conn.run_sync(base.BigIntBase.metadata.create_all)

    yield LocationStore(async_sessionmaker(engine, expire_on_commit=False))

    await engine.dispose()


class FakeConnection:
    """Connection double that records every event sent to it."""

    def __init__(self, connection_id: str, ip_address: str | None = "203.0.113.7",
                 user_agent: str | None = "pytest") -> None:
        self.connection_id = connection_id
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.sent: list[tuple[str, Any]] = []
        self.broken = False

    async def send(self, event: str, data: Any) -> None:
        if self.broken:
            raise ConnectionResetError(f"{self.connection_id} is gone")
        self.sent.append((event, data))

    def events(self, name: str) -> list[Any]:
        return [data for event, data in self.sent if event == name]


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection
