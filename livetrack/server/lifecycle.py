"""Application lifecycle hooks for startup and shutdown."""

from __future__ import annotations

import logging
import asyncio
from typing import TYPE_CHECKING, Callable

from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig, base
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from livetrack.config.settings import Settings, get_settings
from livetrack.domain import LocationRecord, SessionSummary  # noqa: F401  registers tables
from livetrack.services.broker.rate_limiter import RateLimiter
from livetrack.services.broker.registry import ConnectionRegistry
from livetrack.services.broker.service import LocationBroker
from livetrack.services.store.service import LocationStore
from livetrack.services.store.writer import LocationWriter
from livetrack.server.scheduler import create_scheduler

if TYPE_CHECKING:
    from litestar import Litestar

logger = logging.getLogger(__name__)


async def _db_available(sqlalchemy_config: SQLAlchemyAsyncConfig, timeout: float = 10.0) -> bool:
    """Return True if the database accepts connections; False otherwise."""
    try:
        async def _probe():
            async with sqlalchemy_config.get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))

        await asyncio.wait_for(_probe(), timeout=timeout)
        return True
    except Exception as e:
        logger.warning("Database unavailable at startup: %s", e)
        return False


async def on_startup(app: "Litestar") -> None:
    """Create the schema and start the broker, the writer and the scheduler.

    - If the database is unavailable, the live channel still starts; accepted
      locations are broadcast and their writes fail with a log line.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    sqlalchemy_config: SQLAlchemyAsyncConfig = app.state.sqlalchemy_config

    if await _db_available(sqlalchemy_config):
        async with sqlalchemy_config.get_engine().begin() as conn:
            if settings.database.drop_on_startup:
                logger.warning("Dropping all tables on startup as per configuration.")
                await conn.run_sync(base.BigIntBase.metadata.drop_all)
            await conn.run_sync(base.BigIntBase.metadata.create_all)
        logger.info("Location database ready at %s", settings.database.path)
    else:
        logger.warning("Starting without database: skipping schema creation.")

    if not settings.auth.analytics_secret:
        logger.warning("AUTH_ANALYTICS_SECRET is empty: analytics endpoints will refuse every request")

    session_maker: Callable[[], AsyncSession] = sqlalchemy_config.create_session_maker()
    store = LocationStore(
        session_maker,
        top_connections_limit=settings.analytics.top_connections_limit,
    )

    writer = LocationWriter(store, max_queue_size=settings.broker.persistence_queue_size)
    await writer.start()

    broker = LocationBroker(
        ConnectionRegistry(),
        RateLimiter(
            max_events=settings.broker.rate_limit_max_events,
            window_seconds=settings.broker.rate_limit_window_seconds,
        ),
        writer,
    )

    # Create and start scheduler
    scheduler: AsyncIOScheduler = create_scheduler(store, settings)
    scheduler.start()
    logger.info("Started APScheduler")

    # Store in app state for shutdown and API access
    app.state.store = store
    app.state.writer = writer
    app.state.broker = broker
    app.state.scheduler = scheduler


async def on_shutdown(app: "Litestar") -> None:
    """Gracefully stop background services."""
    # Stop the writer first so queued locations reach the database
    writer: LocationWriter | None = getattr(app.state, "writer", None)
    if writer:
        await writer.stop(timeout=5.0)

    scheduler: AsyncIOScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Stopped APScheduler")
