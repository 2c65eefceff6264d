"""Tests for the connection registry."""

import pytest

from livetrack.services.broker.registry import ConnectionRegistry
from livetrack.services.broker.validation import LocationUpdate


def test_register_and_get():
    registry = ConnectionRegistry()
    state = registry.register("a", "198.51.100.1", "Firefox")

    assert registry.get("a") is state
    assert state.ip_address == "198.51.100.1"
    assert state.latest_location is None
    assert state.is_active is False
    assert "a" in registry
    assert len(registry) == 1


def test_set_updates_latest_location():
    registry = ConnectionRegistry()
    registry.register("a")

    registry.set("a", LocationUpdate(1.0, 2.0))
    state = registry.set("a", LocationUpdate(3.0, 4.0))

    assert state.latest_location == LocationUpdate(3.0, 4.0)
    assert state.is_active is True


def test_set_unknown_connection_raises():
    registry = ConnectionRegistry()

    with pytest.raises(KeyError):
        registry.set("ghost", LocationUpdate(0.0, 0.0))


def test_snapshot_excludes_caller_and_untracked():
    registry = ConnectionRegistry()
    registry.register("a")
    registry.register("b")
    registry.register("c")
    registry.set("a", LocationUpdate(10.0, 20.0))
    registry.set("b", LocationUpdate(30.0, 40.0))

    snapshot = registry.snapshot_excluding("a")

    assert snapshot == [("b", LocationUpdate(30.0, 40.0))]
    assert registry.tracked_count() == 2


def test_remove():
    registry = ConnectionRegistry()
    registry.register("a")

    assert registry.remove("a").connection_id == "a"
    assert registry.remove("a") is None
    assert "a" not in registry
    assert registry.snapshot_excluding("b") == []
