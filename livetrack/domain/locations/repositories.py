"""Repositories for the location log and session summaries."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert
from advanced_alchemy.repository import SQLAlchemyAsyncRepository

from livetrack.domain.locations.models import LocationRecord, SessionSummary


def _ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class ConnectionActivity:
    """Record count and activity window of one connection."""

    connection_id: str
    location_count: int
    first_seen: datetime
    last_seen: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class LocationRecordRepository(SQLAlchemyAsyncRepository[LocationRecord]):
    """Repository for the append-only LocationRecord log."""

    model_type = LocationRecord

    async def get_history(self, connection_id: str, limit: int) -> Sequence[LocationRecord]:
        """Return the newest records of one connection, newest first.

        Args:
            connection_id: Connection whose records to return.
            limit: Maximum number of records.
        """
        stmt = (
            select(LocationRecord)
            .where(LocationRecord.connection_id == connection_id)
            .order_by(LocationRecord.timestamp.desc(), LocationRecord.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_all_history(
        self,
        limit: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Sequence[LocationRecord]:
        """Return the newest records across all connections, newest first.

        Args:
            limit: Maximum number of records.
            start: Inclusive lower bound on the timestamp.
            end: Inclusive upper bound on the timestamp.
        """
        stmt = select(LocationRecord)
        if start is not None:
            stmt = stmt.where(LocationRecord.timestamp >= _ensure_utc(start))
        if end is not None:
            stmt = stmt.where(LocationRecord.timestamp <= _ensure_utc(end))
        stmt = stmt.order_by(LocationRecord.timestamp.desc(), LocationRecord.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_since(self, since: datetime | None = None) -> int:
        """Count records, optionally only those at or after ``since``."""
        stmt = select(func.count(LocationRecord.id))
        if since is not None:
            stmt = stmt.where(LocationRecord.timestamp >= _ensure_utc(since))
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def count_connections(self) -> int:
        """Count distinct connection ids present in the log."""
        stmt = select(func.count(func.distinct(LocationRecord.connection_id)))
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_time_range(self) -> tuple[datetime | None, datetime | None]:
        """Return the earliest and latest timestamps in the log."""
        stmt = select(func.min(LocationRecord.timestamp), func.max(LocationRecord.timestamp))
        result = await self.session.execute(stmt)
        earliest, latest = result.one()
        return earliest, latest

    async def get_most_active(self, limit: int) -> list[ConnectionActivity]:
        """Return the connections with the most records.

        Address and agent come from each connection's most recent record.

        Args:
            limit: Maximum number of connections.
        """
        location_count = func.count(LocationRecord.id).label("location_count")
        stmt = (
            select(
                LocationRecord.connection_id,
                location_count,
                func.min(LocationRecord.timestamp).label("first_seen"),
                func.max(LocationRecord.timestamp).label("last_seen"),
                func.max(LocationRecord.id).label("last_id"),
            )
            .group_by(LocationRecord.connection_id)
            .order_by(location_count.desc(), LocationRecord.connection_id)
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).all()
        if not rows:
            return []

        latest_stmt = select(
            LocationRecord.id, LocationRecord.ip_address, LocationRecord.user_agent
        ).where(LocationRecord.id.in_([row.last_id for row in rows]))
        latest = {
            row.id: (row.ip_address, row.user_agent)
            for row in (await self.session.execute(latest_stmt)).all()
        }

        activity: list[ConnectionActivity] = []
        for row in rows:
            ip_address, user_agent = latest.get(row.last_id, (None, None))
            activity.append(
                ConnectionActivity(
                    connection_id=row.connection_id,
                    location_count=row.location_count,
                    first_seen=_ensure_utc(row.first_seen),
                    last_seen=_ensure_utc(row.last_seen),
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            )
        return activity

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete records older than cutoff.

        Used for retention cleanup (default: 30 days).

        Args:
            cutoff: Delete records with a timestamp before this datetime.

        Returns:
            Number of deleted records.
        """
        stmt = delete(LocationRecord).where(LocationRecord.timestamp < _ensure_utc(cutoff))
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class SessionSummaryRepository(SQLAlchemyAsyncRepository[SessionSummary]):
    """Repository for SessionSummary model."""

    model_type = SessionSummary

    async def upsert_seen(
        self,
        connection_id: str,
        ip_address: str | None,
        user_agent: str | None,
        seen_at: datetime,
    ) -> None:
        """Record one more location for a connection.

        Inserts the summary with a count of 1, or increments the count and
        refreshes ``last_seen`` when the connection is already known. Uses
        SQLite INSERT ... ON CONFLICT DO UPDATE so the change is a single
        statement inside the caller's transaction.
        """
        seen_at = _ensure_utc(seen_at)
        stmt = insert(SessionSummary).values(
            connection_id=connection_id,
            ip_address=ip_address,
            user_agent=user_agent,
            first_seen=seen_at,
            last_seen=seen_at,
            location_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[SessionSummary.connection_id],
            set_={
                "last_seen": stmt.excluded.last_seen,
                "location_count": SessionSummary.location_count + 1,
            },
        )
        await self.session.execute(stmt)
