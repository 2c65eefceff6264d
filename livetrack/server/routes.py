"""Central route registration."""
from litestar.types import ControllerRouterHandler

from livetrack.api.v1.analytics_controller import AnalyticsController
from livetrack.api.v1.health import health
from livetrack.api.v1.live_socket import live_socket
from livetrack.api.v1.stats import stats

def get_route_handlers() -> list[ControllerRouterHandler]:
    """Get all route handlers for the application."""
    return [
        AnalyticsController,
        live_socket,
        health,
        stats,
    ]
