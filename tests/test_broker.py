"""Tests for the live location broker."""

import pytest
import pytest_asyncio

from livetrack.services.broker.rate_limiter import RateLimiter
from livetrack.services.broker.registry import ConnectionRegistry
from livetrack.services.broker.service import (
    ERROR,
    RECEIVE_LOCATION,
    USER_DISCONNECTED,
    LocationBroker,
)
from livetrack.services.store.writer import LocationWriter


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStore:
    """Store double whose writes always fail."""

    def __init__(self) -> None:
        self.attempts = 0

    async def append(self, location) -> bool:
        self.attempts += 1
        return False


def _send(lat, lon):
    return {"event": "send-location", "data": {"latitude": lat, "longitude": lon}}


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def writer(store):
    writer = LocationWriter(store)
    await writer.start()
    yield writer
    await writer.stop()


@pytest.fixture
def broker(writer, clock):
    return LocationBroker(ConnectionRegistry(), RateLimiter(max_events=10, window_seconds=1.0), writer, monotonic=clock)


@pytest.mark.asyncio
async def test_valid_update_reaches_everyone_including_sender(broker, writer, store, make_connection):
    a, b = make_connection("A"), make_connection("B")
    await broker.connect(a)
    await broker.connect(b)

    await broker.dispatch("A", _send(40.0, -74.0))

    expected = {"id": "A", "latitude": 40.0, "longitude": -74.0}
    assert a.events(RECEIVE_LOCATION) == [expected]
    assert b.events(RECEIVE_LOCATION) == [expected]

    await writer.flush()
    history = await store.history("A")
    assert [(p.latitude, p.longitude) for p in history] == [(40.0, -74.0)]


@pytest.mark.asyncio
async def test_invalid_update_is_reported_to_sender_only(broker, writer, store, make_connection):
    a, b = make_connection("A"), make_connection("B")
    await broker.connect(a)
    await broker.connect(b)

    accepted = await broker.handle_location("B", {"latitude": 95.0, "longitude": 0})

    assert accepted is False
    assert b.sent == [(ERROR, {"message": "Invalid location data"})]
    assert a.sent == []
    assert broker.registry.get("B").latest_location is None
    await writer.flush()
    assert await store.history("B") == []
    assert broker.total_invalid == 1


@pytest.mark.asyncio
async def test_eleventh_update_is_rate_limited(broker, writer, store, clock, make_connection):
    c, d = make_connection("C"), make_connection("D")
    await broker.connect(c)
    await broker.connect(d)

    for i in range(11):
        await broker.dispatch("C", _send(10.0 + i, 20.0))
        clock.advance(0.08)

    assert c.events(ERROR) == [{"message": "Rate limit exceeded. Please slow down."}]
    assert d.events(ERROR) == []
    assert len(d.events(RECEIVE_LOCATION)) == 10
    # The rejected update did not replace the latest location
    assert broker.registry.get("C").latest_location.latitude == 19.0

    await writer.flush()
    assert len(await store.history("C", limit=100)) == 10
    assert broker.total_rate_limited == 1


@pytest.mark.asyncio
async def test_rate_limit_window_resets(broker, clock, make_connection):
    c = make_connection("C")
    await broker.connect(c)
    for _ in range(10):
        await broker.handle_location("C", {"latitude": 1, "longitude": 1})
    assert await broker.handle_location("C", {"latitude": 1, "longitude": 1}) is False

    clock.advance(1.5)

    assert await broker.handle_location("C", {"latitude": 2, "longitude": 2}) is True


@pytest.mark.asyncio
async def test_rate_limit_precedes_validation(broker, make_connection):
    c = make_connection("C")
    await broker.connect(c)
    for _ in range(10):
        await broker.handle_location("C", {"latitude": 1, "longitude": 1})

    await broker.handle_location("C", {"latitude": 500, "longitude": 1})

    assert c.events(ERROR)[-1] == {"message": "Rate limit exceeded. Please slow down."}


@pytest.mark.asyncio
async def test_connect_seeds_snapshot_of_others(broker, make_connection):
    a, b, c = make_connection("A"), make_connection("B"), make_connection("C")
    await broker.connect(a)
    await broker.connect(b)
    await broker.handle_location("A", {"latitude": 1.5, "longitude": 2.5})

    await broker.connect(c)

    assert c.sent == [(RECEIVE_LOCATION, {"id": "A", "latitude": 1.5, "longitude": 2.5})]
    assert broker.active_connections == 3
    assert broker.tracked_users == 1


@pytest.mark.asyncio
async def test_disconnect_broadcasts_once(broker, make_connection):
    a, b = make_connection("A"), make_connection("B")
    await broker.connect(a)
    await broker.connect(b)
    await broker.handle_location("B", {"latitude": 3, "longitude": 4})

    await broker.disconnect("B")
    await broker.disconnect("B")

    assert a.events(USER_DISCONNECTED) == [{"id": "B"}]
    assert "B" not in broker.registry
    assert broker.rate_limiter.window("B") is None
    assert broker.active_connections == 1


@pytest.mark.asyncio
async def test_departed_connection_is_ignored(broker, make_connection):
    a = make_connection("A")
    await broker.connect(a)

    assert await broker.handle_location("ghost", {"latitude": 1, "longitude": 1}) is False
    assert a.sent == []


@pytest.mark.asyncio
async def test_broken_connection_does_not_affect_others(broker, make_connection):
    a, b, c = make_connection("A"), make_connection("B"), make_connection("C")
    for conn in (a, b, c):
        await broker.connect(conn)
    b.broken = True

    delivered = await broker.broadcast(RECEIVE_LOCATION, {"id": "A", "latitude": 0.0, "longitude": 0.0})

    assert delivered == 2
    assert len(a.sent) == 1
    assert len(c.sent) == 1
    assert "B" in broker.registry


@pytest.mark.asyncio
async def test_persistence_failure_does_not_block_broadcast(clock, make_connection):
    failing = FailingStore()
    writer = LocationWriter(failing)
    await writer.start()
    broker = LocationBroker(ConnectionRegistry(), RateLimiter(), writer, monotonic=clock)
    a, b = make_connection("A"), make_connection("B")
    await broker.connect(a)
    await broker.connect(b)

    assert await broker.handle_location("A", {"latitude": 5, "longitude": 6}) is True
    await writer.flush()

    assert b.events(RECEIVE_LOCATION) == [{"id": "A", "latitude": 5.0, "longitude": 6.0}]
    assert broker.registry.get("A").latest_location.latitude == 5.0
    assert failing.attempts == 1
    assert writer.total_failed == 1
    await writer.stop()


@pytest.mark.asyncio
async def test_unknown_and_malformed_messages_are_ignored(broker, make_connection):
    a = make_connection("A")
    await broker.connect(a)

    await broker.dispatch("A", {"event": "chat-message", "data": "hi"})
    await broker.dispatch("A", ["send-location"])
    await broker.dispatch("A", {"data": {}})

    assert a.sent == []


@pytest.mark.asyncio
async def test_unexpected_error_sends_server_error(broker, make_connection, monkeypatch):
    a = make_connection("A")
    await broker.connect(a)

    def explode(location):
        raise RuntimeError("queue exploded")

    monkeypatch.setattr(broker.writer, "enqueue", explode)

    assert await broker.handle_location("A", {"latitude": 1, "longitude": 1}) is False
    assert a.sent == [(ERROR, {"message": "Server error processing location"})]
    assert broker.total_errors == 1


@pytest.mark.asyncio
async def test_huge_integer_coordinate_is_invalid_data(broker, make_connection):
    a = make_connection("A")
    await broker.connect(a)

    assert await broker.handle_location("A", {"latitude": 10**400, "longitude": 0}) is False

    assert a.sent == [(ERROR, {"message": "Invalid location data"})]
    assert broker.total_invalid == 1
    assert broker.total_errors == 0


@pytest.mark.asyncio
async def test_seed_never_overrides_newer_broadcast(broker, make_connection):
    a, b = make_connection("A"), make_connection("B")
    await broker.connect(a)
    await broker.connect(b)
    await broker.handle_location("A", {"latitude": 1, "longitude": 1})
    await broker.handle_location("B", {"latitude": 2, "longitude": 2})

    class MovingDuringSeed(type(a)):
        """Triggers an update from B while the first seed event is in flight."""

        moved = False

        async def send(self, event, data):
            await super().send(event, data)
            if not self.moved:
                self.moved = True
                await broker.handle_location("B", {"latitude": 3, "longitude": 3})

    c = MovingDuringSeed("C")
    await broker.connect(c)

    b_positions = [d["latitude"] for d in c.events(RECEIVE_LOCATION) if d["id"] == "B"]
    assert b_positions[-1] == 3.0


def test_rejection_errors_carry_client_message():
    from livetrack.exceptions import InvalidLocationError, RateLimitExceededError

    error = RateLimitExceededError("A")

    assert error.connection_id == "A"
    assert str(error) == "Rate limit exceeded. Please slow down."
    assert str(InvalidLocationError("B")) == "Invalid location data"
