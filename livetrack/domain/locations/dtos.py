"""DTOs for location history and analytics data transfer."""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime

from litestar.dto import DataclassDTO, DTOConfig
from advanced_alchemy.extensions.litestar import SQLAlchemyDTO, SQLAlchemyDTOConfig

from livetrack.domain.locations.models import SessionSummary


@dataclass
class LocationPoint:
    """One historical position of a single connection."""

    latitude: float
    longitude: float
    timestamp: datetime


@dataclass
class ConnectionLocationPoint:
    """One historical position tagged with its connection."""

    connection_id: str
    latitude: float
    longitude: float
    timestamp: datetime


@dataclass
class ActiveConnection:
    """A connection ranked by the number of locations it sent."""

    connection_id: str
    location_count: int
    first_seen: datetime
    last_seen: datetime
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class TimeRange:
    """Earliest and latest timestamps in the location log."""

    earliest: datetime | None = None
    latest: datetime | None = None


@dataclass
class AnalyticsSummary:
    """Aggregate view over the whole location log."""

    total_locations: int
    total_users: int
    last_24_hours: int
    last_hour: int
    active_users: list[ActiveConnection] = field(default_factory=list)
    time_range: TimeRange = field(default_factory=TimeRange)


@dataclass
class DatabaseTotals:
    """Row totals reported by the health endpoint."""

    total_locations: int = 0
    total_users: int = 0


@dataclass
class HealthResponse:
    """Liveness report with live connection counts and database totals."""

    status: str
    timestamp: datetime
    active_connections: int
    tracked_users: int
    database: DatabaseTotals = field(default_factory=DatabaseTotals)


@dataclass
class CleanupResult:
    """Outcome of a manual retention sweep."""

    deleted: int
    older_than_days: int


CAMEL_CASE = DTOConfig(rename_strategy="camel")


class LocationPointDTO(DataclassDTO[LocationPoint]):
    """Data transfer object for LocationPoint."""

    config = CAMEL_CASE


class ConnectionLocationPointDTO(DataclassDTO[ConnectionLocationPoint]):
    """Data transfer object for ConnectionLocationPoint."""

    config = CAMEL_CASE


class AnalyticsSummaryDTO(DataclassDTO[AnalyticsSummary]):
    """Data transfer object for AnalyticsSummary."""

    config = CAMEL_CASE


class HealthResponseDTO(DataclassDTO[HealthResponse]):
    """Data transfer object for HealthResponse."""

    config = CAMEL_CASE


class CleanupResultDTO(DataclassDTO[CleanupResult]):
    """Data transfer object for CleanupResult."""

    config = CAMEL_CASE


class SessionSummaryDTO(SQLAlchemyDTO[SessionSummary]):
    """Data transfer object for SessionSummary model."""

    config = SQLAlchemyDTOConfig(rename_strategy="camel")
