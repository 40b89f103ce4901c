"""Device location registry.

Maps opaque push tokens to their last reported position.  All
operations are upserts; there is no deletion.  Writes for the same
identity are serialised through a per-identity lock so the final state
is the last applied update, while writes for different identities never
wait on each other.  Reads return copies, so a broadcast works on a
point-in-time snapshot and never sees a half-applied update.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog

from safepulse.errors import InvalidArgumentError
from safepulse.models.device import DeviceLocation
from safepulse.services.geo import bounding_box
from safepulse.services.location_store import InMemoryLocationStore, LocationStore
from safepulse.services.spatial_index import GridIndex

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_identity(identity: object) -> str:
    if not isinstance(identity, str) or not identity:
        raise InvalidArgumentError("identity must be a non-empty string")
    return identity


def validate_coordinates(latitude: object, longitude: object) -> tuple[float, float]:
    """Check that *latitude*/*longitude* are finite numbers in range."""
    if not _is_number(latitude) or not -90.0 <= latitude <= 90.0:
        raise InvalidArgumentError("latitude must be a number in [-90, 90]")
    if not _is_number(longitude) or not -180.0 <= longitude <= 180.0:
        raise InvalidArgumentError("longitude must be a number in [-180, 180]")
    return float(latitude), float(longitude)


class DeviceLocationRegistry:
    """Keyed store of identity -> last known position.

    Parameters
    ----------
    store:
        Backing :class:`LocationStore`; defaults to an in-memory store.
    cell_degrees:
        Grid cell size of the spatial index, in degrees.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    __slots__ = ("_clock", "_index", "_locks", "_store")

    def __init__(
        self,
        store: LocationStore | None = None,
        *,
        cell_degrees: float = 0.01,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store: LocationStore = store if store is not None else InMemoryLocationStore()
        self._index = GridIndex(cell_degrees)
        self._clock = clock
        # identity -> (lock, number of writers holding or awaiting it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def store(self) -> LocationStore:
        return self._store

    @asynccontextmanager
    async def _locked(self, identity: str) -> AsyncIterator[None]:
        """Hold the write lock of *identity*; idle locks are dropped."""
        lock, users = self._locks.get(identity, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[identity] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[identity]
            if users == 1:
                del self._locks[identity]
            else:
                self._locks[identity] = (lock, users - 1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Rebuild the spatial index from the store.  Returns entry count."""
        records = await self._store.scan()
        self._index.clear()
        for record in records:
            if record.has_location:
                self._index.upsert(record.identity, record.latitude, record.longitude)
        logger.info("registry.loaded", entries=len(records), located=len(self._index))
        return len(records)

    async def close(self) -> None:
        await self._store.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def register(
        self,
        identity: str,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> DeviceLocation:
        """Create an entry for *identity* if it does not exist yet.

        Idempotent: an existing entry keeps its coordinates.  When both
        *latitude* and *longitude* are given the location is applied as
        well, exactly like :meth:`update_location`.
        """
        validate_identity(identity)
        if latitude is not None or longitude is not None:
            return await self.update_location(identity, latitude, longitude)

        async with self._locked(identity):
            existing = await self._store.get(identity)
            if existing is not None:
                return existing
            record = DeviceLocation(identity=identity, registered_at=self._clock())
            await self._store.put(record)

        logger.info("registry.registered", identity=_short(identity))
        return record

    async def update_location(
        self, identity: str, latitude: float, longitude: float
    ) -> DeviceLocation:
        """Set the coordinates of *identity*, creating the entry if needed."""
        validate_identity(identity)
        lat, lng = validate_coordinates(latitude, longitude)
        now = self._clock()

        async with self._locked(identity):
            existing = await self._store.get(identity)
            if existing is None:
                record = DeviceLocation(
                    identity=identity,
                    latitude=lat,
                    longitude=lng,
                    updated_at=now,
                    registered_at=now,
                )
            else:
                record = existing.model_copy(
                    update={"latitude": lat, "longitude": lng, "updated_at": now}
                )
            await self._store.put(record)
            self._index.upsert(identity, lat, lng)

        logger.debug("registry.location_updated", identity=_short(identity), created=existing is None)
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, identity: str) -> DeviceLocation | None:
        return await self._store.get(identity)

    async def all_with_location(self) -> list[DeviceLocation]:
        """Snapshot of every entry that has coordinates (unordered)."""
        return [r for r in await self._store.scan() if r.has_location]

    async def candidates_near(
        self, latitude: float, longitude: float, radius_m: float
    ) -> list[DeviceLocation]:
        """Located entries whose grid cell overlaps the query circle.

        This is a superset of the entries within *radius_m*; callers
        must still apply the exact distance check.
        """
        identities = self._index.candidates(bounding_box(latitude, longitude, radius_m))
        records: list[DeviceLocation] = []
        for identity in identities:
            record = await self._store.get(identity)
            if record is not None and record.has_location:
                records.append(record)
        return records

    async def count(self) -> int:
        return await self._store.count()


def _short(identity: str) -> str:
    """Log-safe prefix of a push token."""
    return identity if len(identity) <= 12 else f"{identity[:12]}..."
