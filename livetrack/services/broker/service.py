"""Live location broker - fan-out of location updates between connections.

For every inbound event the broker runs, in order:
rate limit -> validation -> registry update -> persistence hand-off -> fan-out.

The broker is transport agnostic: anything implementing ``Connection`` can be
attached, which is how the websocket endpoint and the tests drive it.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Protocol

from livetrack.exceptions import (
    InvalidLocationError,
    RateLimitExceededError,
)
from livetrack.services.broker.rate_limiter import RateLimiter
from livetrack.services.broker.registry import ConnectionRegistry
from livetrack.services.broker.validation import LocationUpdate, parse_location
from livetrack.services.store.service import NewLocation

if TYPE_CHECKING:
    from livetrack.services.store.writer import LocationWriter


logger = logging.getLogger(__name__)

# Client -> server
SEND_LOCATION = "send-location"
# Server -> client
RECEIVE_LOCATION = "receive-location"
USER_DISCONNECTED = "user-disconnected"
ERROR = "error"

SERVER_ERROR_MESSAGE = "Server error processing location"


class Connection(Protocol):
    """A live client channel the broker can push events to."""

    connection_id: str
    ip_address: str | None
    user_agent: str | None

    async def send(self, event: str, data: Any) -> None:
        """Deliver one event to the client."""
        ...


class LocationBroker:
    """Tracks live connections and broadcasts their accepted locations.

    Example:
        broker = LocationBroker(ConnectionRegistry(), RateLimiter(), writer)
        await broker.connect(connection)
        await broker.dispatch(connection.connection_id, message)
        await broker.disconnect(connection.connection_id)
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rate_limiter: RateLimiter,
        writer: "LocationWriter",
        *,
        monotonic: Callable[[], float] = time.monotonic,
        utcnow: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """Initialize the broker.

        Args:
            registry: Registry of live connection state.
            rate_limiter: Per-connection fixed-window limiter.
            writer: Background writer receiving accepted locations.
            monotonic: Clock for rate-limit windows, in seconds.
            utcnow: Clock for persisted timestamps.
        """
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.writer = writer
        self._monotonic = monotonic
        self._utcnow = utcnow

        self._connections: dict[str, Connection] = {}

        # Statistics
        self.total_connections: int = 0
        self.total_accepted: int = 0
        self.total_rate_limited: int = 0
        self.total_invalid: int = 0
        self.total_errors: int = 0

    @property
    def active_connections(self) -> int:
        """Number of live connections."""
        return len(self._connections)

    @property
    def tracked_users(self) -> int:
        """Number of live connections with a known location."""
        return self.registry.tracked_count()

    async def connect(self, connection: Connection) -> None:
        """Attach a new connection and seed it with everyone else's location."""
        connection_id = connection.connection_id
        self.registry.register(connection_id, connection.ip_address, connection.user_agent)
        self._connections[connection_id] = connection
        self.total_connections += 1
        logger.info("Connection %s joined from %s", connection_id, connection.ip_address)

        for other_id, _ in self.registry.snapshot_excluding(connection_id):
            # Re-read so a newer broadcast is never followed by a stale seed
            state = self.registry.get(other_id)
            if state is None or state.latest_location is None:
                continue
            await self._send(connection, RECEIVE_LOCATION, _location_payload(other_id, state.latest_location))

    async def dispatch(self, connection_id: str, message: Any) -> None:
        """Route one inbound ``{"event": ..., "data": ...}`` envelope."""
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.warning("Ignoring malformed message from %s", connection_id)
            return

        event = message["event"]
        if event == SEND_LOCATION:
            await self.handle_location(connection_id, message.get("data"))
        else:
            logger.debug("Ignoring unknown event %r from %s", event, connection_id)

    async def handle_location(self, connection_id: str, data: Any) -> bool:
        """Process a ``send-location`` event.

        Rejections are reported to the sender only and change no state.

        Returns:
            True if the location was accepted and broadcast.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug("Ignoring location from departed connection %s", connection_id)
            return False

        try:
            location = self._accept(connection_id, data)
        except RateLimitExceededError as e:
            self.total_rate_limited += 1
            logger.warning("Rate limit exceeded for %s", connection_id)
            await self._send(connection, ERROR, {"message": e.client_message})
            return False
        except InvalidLocationError as e:
            self.total_invalid += 1
            logger.warning("Invalid location data from %s: %r", connection_id, data)
            await self._send(connection, ERROR, {"message": e.client_message})
            return False
        except Exception as e:
            self.total_errors += 1
            logger.exception("Error processing location from %s: %s", connection_id, e)
            await self._send(connection, ERROR, {"message": SERVER_ERROR_MESSAGE})
            return False

        self.total_accepted += 1
        await self.broadcast(RECEIVE_LOCATION, _location_payload(connection_id, location))
        return True

    def _accept(self, connection_id: str, data: Any) -> LocationUpdate:
        """Check, record and queue a location; raise if it is rejected."""
        if not self.rate_limiter.admit(connection_id, self._monotonic()):
            raise RateLimitExceededError(connection_id)

        location = parse_location(data)
        if location is None:
            raise InvalidLocationError(connection_id)

        # An in-memory update is kept even if the later write fails
        state = self.registry.set(connection_id, location)
        self.writer.enqueue(
            NewLocation(
                connection_id=connection_id,
                latitude=location.latitude,
                longitude=location.longitude,
                timestamp=self._utcnow(),
                ip_address=state.ip_address,
                user_agent=state.user_agent,
            )
        )
        return location

    async def disconnect(self, connection_id: str) -> None:
        """Detach a connection and tell the others it left.

        Safe to call more than once; the departure is broadcast once.
        """
        connection = self._connections.pop(connection_id, None)
        self.registry.remove(connection_id)
        self.rate_limiter.discard(connection_id)
        if connection is None:
            return

        logger.info("Connection %s disconnected", connection_id)
        await self.broadcast(USER_DISCONNECTED, {"id": connection_id})

    def handle_transport_error(self, connection_id: str, error: BaseException) -> None:
        """Log a transport failure; the connection stays attached."""
        logger.warning("Transport error on connection %s: %s", connection_id, error)

    async def broadcast(self, event: str, data: Any) -> int:
        """Send an event to every live connection concurrently.

        Returns:
            Number of connections the event was delivered to.
        """
        connections = list(self._connections.values())
        if not connections:
            return 0
        results = await asyncio.gather(
            *(self._send(connection, event, data) for connection in connections)
        )
        return sum(results)

    async def _send(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
        except Exception as e:
            self.handle_transport_error(connection.connection_id, e)
            return False
        return True


def _location_payload(connection_id: str, location: LocationUpdate) -> dict[str, Any]:
    return {
        "id": connection_id,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }
