"""Plugin and configuration factories.

This module builds, from Settings:
- The SQLite async engine (WAL journal)
- SQLAlchemy async configuration and its Litestar plugin
- Logging configuration
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar.logging import LoggingConfig
from litestar.serialization import decode_json, encode_json
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyInitPlugin,
    base,
)

if TYPE_CHECKING:
    from livetrack.config.settings import Settings


def _set_sqlite_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_engine(settings: "Settings") -> AsyncEngine:
    """Create the SQLite engine, making sure the database directory exists."""
    settings.database.path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        url=settings.database.url,
        echo=settings.database.echo,
        echo_pool=settings.database.echo_pool,
        json_serializer=encode_json,
        json_deserializer=decode_json,
        pool_pre_ping=True,
    )
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    return engine


def create_sqlalchemy_config(settings: "Settings") -> SQLAlchemyAsyncConfig:
    """SQLAlchemy configuration for Litestar."""
    return SQLAlchemyAsyncConfig(
        engine_instance=create_engine(settings),
        session_config=AsyncSessionConfig(expire_on_commit=False),
        create_all=False,
        metadata=base.BigIntBase.metadata,
    )


def create_sqlalchemy_plugin(config: SQLAlchemyAsyncConfig) -> SQLAlchemyInitPlugin:
    return SQLAlchemyInitPlugin(config=config)


def create_logging_config(settings: "Settings") -> LoggingConfig:
    """Logging configuration routed through the queue listener."""
    return LoggingConfig(
        root={"level": settings.api.log_level, "handlers": ["queue_listener"]},
        formatters={
            "standard": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"}
        },
        log_exceptions="always",
    )
