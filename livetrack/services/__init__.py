"""Services layer - live location broker and persistence."""
from .broker.service import LocationBroker
from .store.service import LocationStore
from .store.writer import LocationWriter

__all__ = ["LocationBroker", "LocationStore", "LocationWriter"]
