"""Fixed-window rate limiting per live connection."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RateWindow:
    """Counter for one connection's current window."""

    count: int = 0
    reset_at: float = 0.0


class RateLimiter:
    """Admit at most ``max_events`` updates per connection per window.

    ``now`` is a monotonic clock reading in seconds. Windows are created on a
    connection's first update and must be discarded when it disconnects.

    Example:
        limiter = RateLimiter(max_events=10, window_seconds=1.0)
        if not limiter.admit(connection_id, time.monotonic()):
            ...
        limiter.discard(connection_id)
    """

    def __init__(self, max_events: int = 10, window_seconds: float = 1.0) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._windows: dict[str, RateWindow] = {}

    def admit(self, connection_id: str, now: float) -> bool:
        """Count one update for the connection and decide whether it passes."""
        window = self._windows.get(connection_id)
        if window is None:
            window = RateWindow(count=0, reset_at=now + self.window_seconds)
            self._windows[connection_id] = window
        elif now > window.reset_at:
            window.count = 0
            window.reset_at = now + self.window_seconds

        # Rejections do not count against the window
        if window.count >= self.max_events:
            return False
        window.count += 1
        return True

    def discard(self, connection_id: str) -> None:
        """Forget the connection's window."""
        self._windows.pop(connection_id, None)

    def window(self, connection_id: str) -> RateWindow | None:
        """Return the connection's current window, if any."""
        return self._windows.get(connection_id)

    def __len__(self) -> int:
        return len(self._windows)
