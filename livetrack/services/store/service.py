"""Location store - durable location log and analytics queries.

This service orchestrates:
- Appending accepted locations together with their session summary
- Per-connection and global location history
- Aggregate analytics over the location log
- Retention cleanup of old location records

All database operations go through repositories, each call in its own
session so the store can be shared by the writer task and API handlers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from advanced_alchemy.exceptions import AdvancedAlchemyError
from sqlalchemy.exc import SQLAlchemyError

from livetrack.domain.locations.dtos import (
    ActiveConnection,
    AnalyticsSummary,
    ConnectionLocationPoint,
    DatabaseTotals,
    LocationPoint,
    TimeRange,
)
from livetrack.domain.locations.models import LocationRecord
from livetrack.domain.locations.repositories import (
    LocationRecordRepository,
    SessionSummaryRepository,
)
from livetrack.exceptions import PersistenceError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)

_DB_ERRORS = (SQLAlchemyError, AdvancedAlchemyError)


@dataclass(frozen=True)
class NewLocation:
    """An accepted location waiting to be persisted."""

    connection_id: str
    latitude: float
    longitude: float
    timestamp: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class LocationStore:
    """Durable append-only location log with derived session summaries.

    Example:
        store = LocationStore(session_factory, top_connections_limit=10)
        await store.append(NewLocation(...))
        summary = await store.analytics()
        removed = await store.cleanup(30)
    """

    def __init__(
        self,
        session_factory: "Callable[[], AsyncSession]",
        *,
        top_connections_limit: int = 10,
    ) -> None:
        """Initialize the location store.

        Args:
            session_factory: SQLAlchemy async session factory.
            top_connections_limit: Number of connections in the analytics ranking.
        """
        self.session_factory = session_factory
        self.top_connections_limit = top_connections_limit

    async def append(self, location: NewLocation) -> bool:
        """Insert a location record and upsert its session summary.

        Both writes share one transaction. Failures are logged, never raised.

        Returns:
            True if the location was persisted, False otherwise.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    records = LocationRecordRepository(session=session)
                    summaries = SessionSummaryRepository(session=session)
                    await records.add(
                        LocationRecord(
                            connection_id=location.connection_id,
                            latitude=location.latitude,
                            longitude=location.longitude,
                            ip_address=location.ip_address,
                            user_agent=location.user_agent,
                            timestamp=location.timestamp,
                        ),
                        auto_commit=False,
                        auto_refresh=False,
                    )
                    await summaries.upsert_seen(
                        location.connection_id,
                        location.ip_address,
                        location.user_agent,
                        location.timestamp,
                    )
            return True
        except Exception as e:
            logger.exception("Failed to save location for %s: %s", location.connection_id, e)
            return False

    async def history(self, connection_id: str, limit: int = 100) -> list[LocationPoint]:
        """Return one connection's positions, newest first."""
        try:
            async with self.session_factory() as session:
                records = await LocationRecordRepository(session=session).get_history(connection_id, limit)
        except _DB_ERRORS as e:
            logger.exception("Failed to fetch location history for %s: %s", connection_id, e)
            raise PersistenceError("Failed to fetch location history") from e
        return [
            LocationPoint(latitude=r.latitude, longitude=r.longitude, timestamp=r.timestamp)
            for r in records
        ]

    async def all_history(
        self,
        limit: int = 1000,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[ConnectionLocationPoint]:
        """Return positions of all connections, newest first.

        Args:
            limit: Maximum number of points.
            start_date: Inclusive lower bound.
            end_date: Inclusive upper bound.
        """
        try:
            async with self.session_factory() as session:
                records = await LocationRecordRepository(session=session).get_all_history(
                    limit, start_date, end_date
                )
        except _DB_ERRORS as e:
            logger.exception("Failed to fetch all location history: %s", e)
            raise PersistenceError("Failed to fetch location history") from e
        return [
            ConnectionLocationPoint(
                connection_id=r.connection_id,
                latitude=r.latitude,
                longitude=r.longitude,
                timestamp=r.timestamp,
            )
            for r in records
        ]

    async def analytics(self, now: datetime | None = None) -> AnalyticsSummary:
        """Compute the analytics summary from the location log.

        Args:
            now: Reference time for the 24 hour and 1 hour windows.
        """
        now = now or datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session:
                repo = LocationRecordRepository(session=session)
                total_locations = await repo.count_since()
                total_users = await repo.count_connections()
                last_24_hours = await repo.count_since(now - timedelta(days=1))
                last_hour = await repo.count_since(now - timedelta(hours=1))
                most_active = await repo.get_most_active(self.top_connections_limit)
                earliest, latest = await repo.get_time_range()
        except _DB_ERRORS as e:
            logger.exception("Failed to fetch analytics: %s", e)
            raise PersistenceError("Failed to fetch analytics") from e

        return AnalyticsSummary(
            total_locations=total_locations,
            total_users=total_users,
            last_24_hours=last_24_hours,
            last_hour=last_hour,
            active_users=[
                ActiveConnection(
                    connection_id=a.connection_id,
                    location_count=a.location_count,
                    first_seen=a.first_seen,
                    last_seen=a.last_seen,
                    ip_address=a.ip_address,
                    user_agent=a.user_agent,
                )
                for a in most_active
            ],
            time_range=TimeRange(earliest=earliest, latest=latest),
        )

    async def totals(self) -> DatabaseTotals:
        """Return the total number of records and distinct connections."""
        try:
            async with self.session_factory() as session:
                repo = LocationRecordRepository(session=session)
                return DatabaseTotals(
                    total_locations=await repo.count_since(),
                    total_users=await repo.count_connections(),
                )
        except _DB_ERRORS as e:
            logger.exception("Failed to count locations: %s", e)
            raise PersistenceError("Failed to read database totals") from e

    async def cleanup(self, max_age_days: int = 30, now: datetime | None = None) -> int:
        """Delete location records older than ``max_age_days``.

        Session summaries are left untouched.

        Returns:
            Number of deleted records, 0 on failure.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    deleted = await LocationRecordRepository(session=session).delete_before(cutoff)
        except Exception as e:
            logger.exception("Failed to clean up location records older than %s: %s", cutoff, e)
            return 0
        logger.info("Cleaned up %d location records older than %s", deleted, cutoff.date())
        return deleted
