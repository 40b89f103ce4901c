"""Proximity query engine: which registered devices are near a point."""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from safepulse.errors import InvalidArgumentError
from safepulse.models.device import DeviceLocation
from safepulse.services.geo import distance_meters
from safepulse.services.registry import DeviceLocationRegistry, validate_coordinates

logger = structlog.get_logger(__name__)


class ProximityQueryEngine:
    """Finds identities within a radius of a center point.

    Candidates come from the registry's grid index and are then filtered
    by exact haversine distance, so the result is identical to a full
    linear scan.  Devices exactly on the boundary are included.

    Parameters
    ----------
    registry:
        The device registry to query.
    max_age:
        Default freshness window.  Entries whose last location report is
        older than ``now - max_age`` are skipped.  ``None`` disables the
        filter.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    __slots__ = ("_clock", "_max_age", "_registry")

    def __init__(
        self,
        registry: DeviceLocationRegistry,
        *,
        max_age: timedelta | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._registry = registry
        self._max_age = max_age
        self._clock = clock

    async def find_within(
        self,
        latitude: float,
        longitude: float,
        radius_m: float,
        *,
        max_age: timedelta | None = None,
    ) -> set[str]:
        """Return identities at most *radius_m* metres from the center.

        *max_age* overrides the engine-wide freshness window for this
        query only.
        """
        lat, lng = validate_coordinates(latitude, longitude)
        if isinstance(radius_m, bool) or not isinstance(radius_m, (int, float)) or not (
            math.isfinite(radius_m) and radius_m > 0
        ):
            raise InvalidArgumentError("radius must be a positive number")

        window = max_age if max_age is not None else self._max_age
        cutoff = self._clock() - window if window is not None else None

        candidates = await self._registry.candidates_near(lat, lng, radius_m)
        matched = {
            record.identity
            for record in candidates
            if _is_fresh(record, cutoff)
            and distance_meters(lat, lng, record.latitude, record.longitude) <= radius_m
        }

        logger.info(
            "proximity.query",
            radius_m=radius_m,
            candidates=len(candidates),
            matched=len(matched),
        )
        return matched


def _is_fresh(record: DeviceLocation, cutoff: datetime | None) -> bool:
    if cutoff is None:
        return True
    return record.updated_at is not None and record.updated_at >= cutoff
