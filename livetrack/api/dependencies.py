"""Shared dependency providers and guards for API layer."""
from __future__ import annotations

import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from litestar.connection import ASGIConnection
from litestar.datastructures import State
from litestar.exceptions import NotAuthorizedException
from litestar.handlers.base import BaseRouteHandler
from litestar.params import Parameter
from litestar.plugins.sqlalchemy import filters

from livetrack.config.settings import Settings, get_settings
from livetrack.domain.locations.repositories import SessionSummaryRepository
from livetrack.services.broker.service import LocationBroker
from livetrack.services.store.service import LocationStore
from livetrack.services.store.writer import LocationWriter


def provide_settings(state: State) -> Settings:
    """Provide the Settings the app was created with."""
    return getattr(state, "settings", None) or get_settings()


def provide_store(state: State) -> LocationStore:
    """Provide the LocationStore from app state."""
    return state.store


def provide_broker(state: State) -> LocationBroker:
    """Provide the LocationBroker from app state."""
    return state.broker


def provide_writer(state: State) -> LocationWriter | None:
    """Provide the LocationWriter from app state.

    Returns None if the writer was never started.
    """
    return getattr(state, "writer", None)


async def provide_session_summary_repo(
    db_session: AsyncSession,
) -> SessionSummaryRepository:
    """Provide SessionSummaryRepository."""
    return SessionSummaryRepository(session=db_session)


def _presented_secret(connection: ASGIConnection, header_name: str) -> str | None:
    secret = connection.headers.get(header_name)
    if secret:
        return secret
    scheme, _, token = connection.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


def requires_analytics_secret(connection: ASGIConnection, _: BaseRouteHandler) -> None:
    """Guard for the analytics API.

    Accepts the shared secret in the configured header or as a bearer token.
    An empty configured secret refuses every request.
    """
    settings = provide_settings(connection.app.state)
    expected = settings.auth.analytics_secret
    presented = _presented_secret(connection, settings.auth.header_name)
    if not expected or presented is None or not secrets.compare_digest(
        presented.encode(), expected.encode()
    ):
        raise NotAuthorizedException(detail="Unauthorized")


def provide_limit_offset_pagination(
    current_page: int = Parameter(ge=1, query="currentPage", default=1, required=False),
    page_size: int = Parameter(
        query="pageSize",
        ge=1,
        default=10,
        required=False,
    ),
) -> filters.LimitOffset:
    """Add offset/limit pagination.

    Return type consumed by `Repository.list_and_count()`.

    Parameters
    ----------
    current_page : int
        Page number (1-indexed).
    page_size : int
        Number of items per page.
    """
    return filters.LimitOffset(page_size, page_size * (current_page - 1))
