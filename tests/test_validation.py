"""Tests for location payload validation."""

import math

import pytest

from livetrack.services.broker.validation import LocationUpdate, is_valid_location, parse_location


@pytest.mark.parametrize(
    "payload",
    [
        {"latitude": 40.0, "longitude": -74.0},
        {"latitude": 90, "longitude": 180},
        {"latitude": -90, "longitude": -180},
        {"latitude": 0, "longitude": 0, "accuracy": 12},
    ],
)
def test_valid_locations(payload):
    assert is_valid_location(payload) is True


@pytest.mark.parametrize(
    "payload",
    [
        {"latitude": 90.0001, "longitude": 0},
        {"latitude": -91, "longitude": 0},
        {"latitude": 0, "longitude": 180.5},
        {"latitude": 0, "longitude": -181},
        {"latitude": math.nan, "longitude": 0},
        {"latitude": 0, "longitude": math.inf},
        {"latitude": -math.inf, "longitude": 0},
        {"latitude": 10**400, "longitude": 0},
        {"latitude": 0, "longitude": -(10**400)},
        {"latitude": math.nextafter(90, math.inf), "longitude": 0},
        {"latitude": math.nextafter(-90, -math.inf), "longitude": 0},
        {"latitude": 0, "longitude": math.nextafter(180, math.inf)},
        {"latitude": 0, "longitude": math.nextafter(-180, -math.inf)},
        {"latitude": "40.0", "longitude": "-74.0"},
        {"latitude": True, "longitude": 0},
        {"latitude": None, "longitude": 0},
        {"longitude": 0},
        {},
        None,
        [40.0, -74.0],
        "40,-74",
    ],
)
def test_invalid_locations(payload):
    assert is_valid_location(payload) is False
    assert parse_location(payload) is None


def test_parse_location_returns_floats():
    location = parse_location({"latitude": 40, "longitude": -74})

    assert location == LocationUpdate(latitude=40.0, longitude=-74.0)
    assert isinstance(location.latitude, float)


def test_huge_json_integer_is_invalid_not_an_error():
    from litestar.serialization import decode_json

    payload = decode_json('{"latitude": ' + "1" * 400 + ', "longitude": 0}')

    assert isinstance(payload["latitude"], int)
    assert is_valid_location(payload) is False
