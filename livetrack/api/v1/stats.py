"""Stats API endpoint for broker and persistence statistics."""
from __future__ import annotations

from typing import Any

from litestar import get
from litestar.di import Provide

from livetrack.services.broker.service import LocationBroker
from livetrack.services.store.writer import LocationWriter
from livetrack.api.dependencies import provide_writer as pw


@get("/stats", dependencies={"writer": Provide(pw, sync_to_thread=False)})
async def stats(broker: LocationBroker, writer: LocationWriter | None) -> dict[str, Any]:
    """Get live channel and persistence statistics.

    Returns:
        Dictionary with broker counters and writer counters.
        Writer counters are zero if the writer is not available.
    """
    result: dict[str, Any] = {
        "active_connections": broker.active_connections,
        "tracked_users": broker.tracked_users,
        "total_connections": broker.total_connections,
        "total_accepted": broker.total_accepted,
        "total_rate_limited": broker.total_rate_limited,
        "total_invalid": broker.total_invalid,
        "total_errors": broker.total_errors,
    }

    if writer is None:
        result.update({
            "total_persisted": 0,
            "total_failed": 0,
            "total_dropped": 0,
            "pending_records": 0,
            "is_running": False,
        })
        return result

    result.update({
        "total_persisted": writer.total_persisted,
        "total_failed": writer.total_failed,
        "total_dropped": writer.total_dropped,
        "pending_records": writer.pending,
        "is_running": writer.is_running,
    })
    return result
