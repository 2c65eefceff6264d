"""In-memory registry of live connections and their latest location."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from livetrack.services.broker.validation import LocationUpdate


@dataclass
class ConnectionState:
    """What the broker knows about one live connection."""

    connection_id: str
    ip_address: str | None = None
    user_agent: str | None = None
    latest_location: LocationUpdate | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        """True once the connection has had an update accepted."""
        return self.latest_location is not None


class ConnectionRegistry:
    """Mapping of connection id to ConnectionState.

    Owned by a single broker; entries exist from connect to disconnect.
    Mutations contain no awaits, so they are atomic on the event loop.
    """

    def __init__(self) -> None:
        self._states: dict[str, ConnectionState] = {}

    def register(
        self,
        connection_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ConnectionState:
        """Create the state for a new connection, replacing any stale entry."""
        state = ConnectionState(
            connection_id=connection_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._states[connection_id] = state
        return state

    def set(self, connection_id: str, location: LocationUpdate) -> ConnectionState:
        """Store the connection's latest location.

        Raises:
            KeyError: If the connection is not registered.
        """
        state = self._states[connection_id]
        state.latest_location = location
        return state

    def get(self, connection_id: str) -> ConnectionState | None:
        """Return the connection's state, or None if it is not live."""
        return self._states.get(connection_id)

    def remove(self, connection_id: str) -> ConnectionState | None:
        """Drop the connection's state and return it."""
        return self._states.pop(connection_id, None)

    def snapshot_excluding(self, connection_id: str) -> list[tuple[str, LocationUpdate]]:
        """Latest locations of every other connection that has one."""
        return [
            (other_id, state.latest_location)
            for other_id, state in self._states.items()
            if other_id != connection_id and state.latest_location is not None
        ]

    def tracked_count(self) -> int:
        """Number of connections with a known location."""
        return sum(1 for state in self._states.values() if state.latest_location is not None)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._states

    def __len__(self) -> int:
        return len(self._states)
