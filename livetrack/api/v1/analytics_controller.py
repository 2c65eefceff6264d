"""Analytics API endpoints over the location history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from litestar import Controller, delete, get
from litestar.di import Provide
from litestar.pagination import OffsetPagination
from litestar.params import Parameter
from litestar.openapi.spec import Example
from litestar.plugins.sqlalchemy import filters
from litestar.status_codes import HTTP_200_OK

from livetrack.config.settings import Settings
from livetrack.domain.locations.models import SessionSummary
from livetrack.domain.locations.repositories import SessionSummaryRepository
from livetrack.domain.locations.dtos import (
    AnalyticsSummary,
    AnalyticsSummaryDTO,
    CleanupResult,
    CleanupResultDTO,
    ConnectionLocationPoint,
    ConnectionLocationPointDTO,
    LocationPoint,
    LocationPointDTO,
    SessionSummaryDTO,
)
from livetrack.services.store.service import LocationStore
from livetrack.api.dependencies import (
    provide_session_summary_repo,
    provide_settings,
    requires_analytics_secret,
)


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive query datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class AnalyticsController(Controller):
    """Location history and analytics, gated by the shared analytics secret."""

    path = "/api"
    tags = ["Analytics"]
    guards = [requires_analytics_secret]

    dependencies = {
        "settings": Provide(provide_settings, sync_to_thread=False),
        "session_summary_repo": Provide(provide_session_summary_repo),
    }

    @get(
        "/analytics",
        return_dto=AnalyticsSummaryDTO,
        description="Totals, recent activity, most active connections and the covered time range.",
    )
    async def get_analytics(self, store: LocationStore) -> AnalyticsSummary:
        return await store.analytics()

    @get(
        "/history/{connection_id:str}",
        return_dto=LocationPointDTO,
        description="Positions reported by one connection, newest first.",
    )
    async def get_connection_history(
        self,
        store: LocationStore,
        settings: Settings,
        connection_id: str,
        limit: Annotated[
            int | None,
            Parameter(ge=1, description="Maximum number of points (default 100)"),
        ] = None,
    ) -> list[LocationPoint]:
        return await store.history(connection_id, limit or settings.analytics.history_limit)

    @get(
        "/history",
        return_dto=ConnectionLocationPointDTO,
        description="Positions of all connections, newest first, optionally within a date range.",
    )
    async def get_all_history(
        self,
        store: LocationStore,
        settings: Settings,
        limit: Annotated[
            int | None,
            Parameter(ge=1, description="Maximum number of points (default 1000)"),
        ] = None,
        start_date: Annotated[
            datetime | None,
            Parameter(
                query="startDate",
                description="Inclusive lower bound (ISO 8601, e.g., 2024-01-01T00:00:00Z)",
                examples=[Example(value="2024-01-01T00:00:00Z")],
            ),
        ] = None,
        end_date: Annotated[
            datetime | None,
            Parameter(
                query="endDate",
                description="Inclusive upper bound (ISO 8601, e.g., 2024-12-31T23:59:59Z)",
                examples=[Example(value="2024-12-31T23:59:59Z")],
            ),
        ] = None,
    ) -> list[ConnectionLocationPoint]:
        return await store.all_history(
            limit or settings.analytics.all_history_limit,
            _as_utc(start_date),
            _as_utc(end_date),
        )

    @delete(
        "/history",
        status_code=HTTP_200_OK,
        return_dto=CleanupResultDTO,
        description="Delete location records older than the given number of days.",
    )
    async def cleanup_history(
        self,
        store: LocationStore,
        settings: Settings,
        older_than_days: Annotated[
            int | None,
            Parameter(query="olderThanDays", ge=1, description="Defaults to the retention period"),
        ] = None,
    ) -> CleanupResult:
        days = older_than_days or settings.analytics.retention_days
        deleted = await store.cleanup(days)
        return CleanupResult(deleted=deleted, older_than_days=days)

    @get("/sessions", return_dto=SessionSummaryDTO)
    async def list_sessions(
        self,
        session_summary_repo: SessionSummaryRepository,
        limit_offset: filters.LimitOffset,
    ) -> OffsetPagination[SessionSummary]:
        """List every connection ever seen, with pagination."""
        results, total = await session_summary_repo.list_and_count(limit_offset)
        return OffsetPagination[SessionSummary](
            items=results,
            total=total,
            limit=limit_offset.limit,
            offset=limit_offset.offset
        )
