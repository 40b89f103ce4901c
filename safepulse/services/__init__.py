"""SafePulse service layer -- registry, proximity search and push delivery."""

from __future__ import annotations

from safepulse.services.broadcast import BroadcastOrchestrator
from safepulse.services.geo import distance_meters
from safepulse.services.location_store import (
    InMemoryLocationStore,
    LocationStore,
    RedisLocationStore,
)
from safepulse.services.proximity import ProximityQueryEngine
from safepulse.services.push_dispatcher import PushDispatcher
from safepulse.services.rate_limiter import SlidingWindowLimiter
from safepulse.services.registry import DeviceLocationRegistry
from safepulse.services.spatial_index import GridIndex

__all__ = [
    "BroadcastOrchestrator",
    "DeviceLocationRegistry",
    "GridIndex",
    "InMemoryLocationStore",
    "LocationStore",
    "ProximityQueryEngine",
    "PushDispatcher",
    "RedisLocationStore",
    "SlidingWindowLimiter",
    "distance_meters",
]
