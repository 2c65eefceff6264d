"""Exceptions raised by the broker and the location store."""
from __future__ import annotations


class LiveTrackError(Exception):
    """Base class for LiveTrack errors."""


class LocationRejectedError(LiveTrackError):
    """A location update was refused and the sender should be told why.

    ``client_message`` is the text sent back in the ``error`` event; it never
    contains internal details.
    """

    client_message: str = "Server error processing location"

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        super().__init__(self.client_message)


class RateLimitExceededError(LocationRejectedError):
    """The connection sent more updates than the current window allows."""

    client_message = "Rate limit exceeded. Please slow down."


class InvalidLocationError(LocationRejectedError):
    """The payload is not a finite, in-range latitude/longitude pair."""

    client_message = "Invalid location data"


class PersistenceError(LiveTrackError):
    """The location store could not complete a read or maintenance operation.

    ``detail`` is safe to return to API clients.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
