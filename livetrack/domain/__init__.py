from .locations.models import LocationRecord
from .locations.models import SessionSummary

__all__ = [
    "LocationRecord",
    "SessionSummary",
]
