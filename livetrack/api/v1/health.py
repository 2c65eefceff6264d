"""Health endpoint with live connection counts and database totals."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from litestar import get

from livetrack.domain.locations.dtos import DatabaseTotals, HealthResponse, HealthResponseDTO
from livetrack.exceptions import PersistenceError
from livetrack.services.broker.service import LocationBroker
from livetrack.services.store.service import LocationStore

logger = logging.getLogger(__name__)


@get("/health", return_dto=HealthResponseDTO, tags=["Health"])
async def health(broker: LocationBroker, store: LocationStore) -> HealthResponse:
    """Report liveness.

    Status is "degraded" when the database totals cannot be read; the live
    channel keeps working in that case.
    """
    status = "ok"
    try:
        totals = await store.totals()
    except PersistenceError as e:
        logger.warning("Health check could not read the database: %s", e.detail)
        status = "degraded"
        totals = DatabaseTotals()

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        active_connections=broker.active_connections,
        tracked_users=broker.tracked_users,
        database=totals,
    )
