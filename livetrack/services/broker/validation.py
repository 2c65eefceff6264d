"""Structural and range validation of inbound location payloads."""
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from numbers import Real
from typing import Any

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


@dataclass(frozen=True, slots=True)
class LocationUpdate:
    """A validated WGS84 position."""

    latitude: float
    longitude: float


def _is_coordinate(value: Any, bounds: tuple[float, float]) -> bool:
    # bool is an int subclass; True is not a latitude
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    # Range first: isfinite() overflows on huge JSON integers
    low, high = bounds
    if not low <= value <= high:
        return False
    return math.isfinite(value)


def is_valid_location(payload: Any) -> bool:
    """Return True if payload is a mapping with finite, in-range coordinates.

    Bounds are inclusive: latitude in [-90, 90], longitude in [-180, 180].
    """
    if not isinstance(payload, Mapping):
        return False
    return _is_coordinate(payload.get("latitude"), LATITUDE_RANGE) and _is_coordinate(
        payload.get("longitude"), LONGITUDE_RANGE
    )


def parse_location(payload: Any) -> LocationUpdate | None:
    """Build a LocationUpdate from a raw payload, or None if it is invalid."""
    if not is_valid_location(payload):
        return None
    return LocationUpdate(
        latitude=float(payload["latitude"]),
        longitude=float(payload["longitude"]),
    )
