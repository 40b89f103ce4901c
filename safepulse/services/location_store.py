"""Storage backends for device location records.

The registry talks to a :class:`LocationStore` (``get``/``put``/``scan``)
so lifetime and durability of the records are explicit.  Two backends:

* :class:`InMemoryLocationStore` -- process-local dict, the default.
* :class:`RedisLocationStore` -- records serialised with *orjson* under
  a key namespace, with the set of known identities kept in a Redis set
  so ``scan`` does not need ``KEYS``.

Locking is the registry's job; stores only guarantee that a single
``put`` is applied atomically.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import orjson
import structlog

from safepulse.models.device import DeviceLocation

logger = structlog.get_logger(__name__)

_SCAN_CHUNK = 500


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class LocationStore(Protocol):
    """Async keyed store of :class:`DeviceLocation` records."""

    async def get(self, identity: str) -> DeviceLocation | None: ...

    async def put(self, record: DeviceLocation) -> None: ...

    async def scan(self) -> list[DeviceLocation]: ...

    async def count(self) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryLocationStore:
    """Dict-backed store.  Records are copied on the way in and out."""

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[str, DeviceLocation] = {}

    async def get(self, identity: str) -> DeviceLocation | None:
        record = self._data.get(identity)
        return record.model_copy() if record is not None else None

    async def put(self, record: DeviceLocation) -> None:
        self._data[record.identity] = record.model_copy()

    async def scan(self) -> list[DeviceLocation]:
        return [r.model_copy() for r in self._data.values()]

    async def count(self) -> int:
        return len(self._data)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisLocationStore:
    """Redis-backed store using ``redis.asyncio`` with connection pooling.

    Parameters
    ----------
    url:
        Redis connection string.
    namespace:
        Prefix for every key written by this store.
    client:
        Pre-built ``redis.asyncio.Redis`` compatible client; when given,
        *url* is ignored and the caller owns the connection pool.
    """

    __slots__ = ("_namespace", "_pool", "_redis")

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        namespace: str = "safepulse:",
        max_connections: int = 20,
        client: object | None = None,
    ) -> None:
        self._namespace = namespace
        self._pool = None
        if client is not None:
            self._redis = client
            return

        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    # -- Key helpers -----------------------------------------------------------

    @property
    def _index_key(self) -> str:
        return f"{self._namespace}devices"

    def _record_key(self, identity: str) -> str:
        return f"{self._namespace}device:{identity}"

    @staticmethod
    def _decode(raw: bytes | None) -> DeviceLocation | None:
        if raw is None:
            return None
        try:
            return DeviceLocation.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValueError):
            logger.warning("location_store.corrupt_record")
            return None

    # -- LocationStore interface -----------------------------------------------

    async def get(self, identity: str) -> DeviceLocation | None:
        return self._decode(await self._redis.get(self._record_key(identity)))

    async def put(self, record: DeviceLocation) -> None:
        raw = orjson.dumps(record.model_dump(mode="json"))
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._record_key(record.identity), raw)
            pipe.sadd(self._index_key, record.identity)
            await pipe.execute()

    async def scan(self) -> list[DeviceLocation]:
        members = await self._redis.smembers(self._index_key)
        identities = sorted(m.decode() if isinstance(m, bytes) else m for m in members)

        records: list[DeviceLocation] = []
        for start in range(0, len(identities), _SCAN_CHUNK):
            chunk = identities[start : start + _SCAN_CHUNK]
            raws = await self._redis.mget([self._record_key(i) for i in chunk])
            for raw in raws:
                record = self._decode(raw)
                if record is not None:
                    records.append(record)
        return records

    async def count(self) -> int:
        return int(await self._redis.scard(self._index_key))

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._redis.aclose()
        await self._pool.aclose()
