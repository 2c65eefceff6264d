"""Application factory for creating Litestar app instance."""

from __future__ import annotations

import logging

from litestar import Litestar, Request, Response
from litestar.config.cors import CORSConfig
from litestar.datastructures import State
from litestar.di import Provide
from litestar.openapi import OpenAPIConfig
from litestar.config.compression import CompressionConfig
from litestar.middleware.logging import LoggingMiddlewareConfig
from litestar.status_codes import HTTP_500_INTERNAL_SERVER_ERROR

from livetrack.config.settings import Settings, get_settings
from livetrack.exceptions import PersistenceError
from livetrack.server import plugins
from livetrack.server.lifecycle import on_startup, on_shutdown
from livetrack.server.routes import get_route_handlers
from livetrack.api.dependencies import (
    provide_broker,
    provide_store,
    provide_limit_offset_pagination
)

logger = logging.getLogger(__name__)


def persistence_error_handler(request: Request, exc: PersistenceError) -> Response:
    """Turn a failed store read into a generic 500 response."""
    logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.detail)
    return Response(
        content={"error": exc.detail},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_app(settings: Settings | None = None) -> Litestar:
    """Create and configure the Litestar application.

    This factory function loads configuration and initializes the app
    with proper settings for CORS, OpenAPI, dependency injection, etc.

    Args:
        settings: Settings to use instead of the cached environment settings.

    Returns:
        Litestar: Configured application instance
    """
    # Load settings once at app creation
    settings = settings or get_settings()

    sqlalchemy_config = plugins.create_sqlalchemy_config(settings)

    # Configure OpenAPI
    openapi_config = OpenAPIConfig(
        title=settings.name,
        version=settings.version,
        description=settings.description,
        create_examples=True,
    )

    compression_config = CompressionConfig(
        backend="brotli",
        minimum_size=1000,  # Only compress responses >= 1KB
        brotli_quality=4,
        exclude=[
            r"^/ws",  # Exclude the live channel
        ],
    )

    cors_config = CORSConfig(allow_origins=settings.api.allowed_origins or ["*"])

    logging_middleware_config = LoggingMiddlewareConfig()

    # Create app with configuration
    app = Litestar(
        debug=settings.debug,
        route_handlers=get_route_handlers(),
        on_startup=[on_startup],
        on_shutdown=[on_shutdown],
        plugins=[
            plugins.create_sqlalchemy_plugin(sqlalchemy_config),
        ],
        dependencies={
            "limit_offset": Provide(provide_limit_offset_pagination, sync_to_thread=False),
            "store": Provide(provide_store, sync_to_thread=False),
            "broker": Provide(provide_broker, sync_to_thread=False),
        },
        exception_handlers={PersistenceError: persistence_error_handler},
        state=State({"settings": settings, "sqlalchemy_config": sqlalchemy_config}),
        logging_config=plugins.create_logging_config(settings),
        openapi_config=openapi_config,
        compression_config=compression_config,
        cors_config=cors_config,
        middleware=[logging_middleware_config.middleware],
    )

    return app
