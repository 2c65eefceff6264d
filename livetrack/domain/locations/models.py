from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Float,
    Integer,
    String,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from advanced_alchemy.types import DateTimeUTC
from advanced_alchemy.extensions.litestar import base


class LocationRecord(base.BigIntBase):
    """Append-only log of accepted location updates.

    One row per update that passed rate limiting and validation. Rows are
    never changed; only the retention cleanup removes them.
    """

    __tablename__ = "locations"

    # Transport-assigned id of the live connection that sent the update
    connection_id: Mapped[str] = mapped_column(String(64), nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    # Attacker-controlled, only ever bound as a parameter
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Assigned by the broker when the update is accepted
    timestamp: Mapped[datetime] = mapped_column(
        DateTimeUTC(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_locations_connection_id", "connection_id"),
        Index("ix_locations_timestamp", "timestamp"),
        Index("ix_locations_connection_timestamp", "connection_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<LocationRecord(id={self.id}, connection={self.connection_id}, timestamp={self.timestamp})>"


class SessionSummary(base.BigIntBase):
    """Per-connection summary derived from the location log.

    Upserted with every persisted location. Retention cleanup leaves these
    rows in place, so the table is a ledger of every connection ever seen.
    """

    __tablename__ = "sessions"

    connection_id: Mapped[str] = mapped_column(String(64), nullable=False)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    first_seen: Mapped[datetime] = mapped_column(
        DateTimeUTC(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTimeUTC(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    location_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("connection_id", name="uq_sessions_connection_id"),
    )

    def __repr__(self) -> str:
        return f"<SessionSummary(id={self.id}, connection={self.connection_id}, count={self.location_count})>"
