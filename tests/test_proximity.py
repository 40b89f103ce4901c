"""Tests for the proximity query engine."""

from __future__ import annotations

import math
import random
from datetime import UTC, datetime, timedelta

import pytest

from safepulse.errors import InvalidArgumentError
from safepulse.services.geo import EARTH_RADIUS_M, distance_meters
from safepulse.services.proximity import ProximityQueryEngine
from safepulse.services.registry import DeviceLocationRegistry

CENTER = (30.8780, 76.8740)


def _north_of(lat: float, lng: float, meters: float) -> tuple[float, float]:
    return lat + math.degrees(meters / EARTH_RADIUS_M), lng


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def registry(clock: _Clock) -> DeviceLocationRegistry:
    return DeviceLocationRegistry(clock=clock)


@pytest.fixture
def engine(registry: DeviceLocationRegistry, clock: _Clock) -> ProximityQueryEngine:
    return ProximityQueryEngine(registry, clock=clock)


class TestFindWithin:
    async def test_empty_registry(self, engine: ProximityQueryEngine) -> None:
        assert await engine.find_within(0.0, 0.0, 500) == set()

    async def test_near_included_far_excluded(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        await registry.update_location("near", *_north_of(*CENTER, 100))
        await registry.update_location("far", *_north_of(*CENTER, 600))
        assert await engine.find_within(*CENTER, 500) == {"near"}

    async def test_boundary_is_inclusive(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        lat, lng = 30.88, 76.8765
        await registry.update_location("edge", lat, lng)
        exact = distance_meters(*CENTER, lat, lng)

        assert await engine.find_within(*CENTER, exact) == {"edge"}
        assert await engine.find_within(*CENTER, math.nextafter(exact, 0.0)) == set()

    async def test_unlocated_devices_never_returned(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        await registry.register("bare")
        assert await engine.find_within(*CENTER, 500) == set()
        assert await engine.find_within(0.0, 0.0, 20_000_000) == set()

    async def test_device_at_null_island(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        await registry.update_location("zero", 0.0, 0.0)
        assert await engine.find_within(0.0, 0.0, 500) == {"zero"}

    async def test_across_antimeridian(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        await registry.update_location("west", 0.0, -179.9999)
        assert await engine.find_within(0.0, 179.9999, 100) == {"west"}

    async def test_matches_linear_scan(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine
    ) -> None:
        rng = random.Random(42)
        for i in range(300):
            await registry.update_location(
                f"dev-{i}",
                CENTER[0] + rng.uniform(-0.05, 0.05),
                CENTER[1] + rng.uniform(-0.05, 0.05),
            )

        for radius in (50, 500, 2_500, 10_000):
            expected = {
                r.identity
                for r in await registry.all_with_location()
                if distance_meters(*CENTER, r.latitude, r.longitude) <= radius
            }
            assert await engine.find_within(*CENTER, radius) == expected, f"radius={radius}"

    @pytest.mark.parametrize("radius", [0, -1, float("nan"), float("inf"), "500", True])
    async def test_rejects_bad_radius(self, engine: ProximityQueryEngine, radius: object) -> None:
        with pytest.raises(InvalidArgumentError):
            await engine.find_within(*CENTER, radius)  # type: ignore[arg-type]

    async def test_rejects_bad_center(self, engine: ProximityQueryEngine) -> None:
        with pytest.raises(InvalidArgumentError):
            await engine.find_within(95.0, 0.0, 500)


class TestFreshness:
    async def test_stale_entries_excluded_when_window_given(
        self, registry: DeviceLocationRegistry, engine: ProximityQueryEngine, clock: _Clock
    ) -> None:
        await registry.update_location("old", *CENTER)
        clock.now += timedelta(hours=1)
        await registry.update_location("fresh", *CENTER)

        assert await engine.find_within(*CENTER, 500) == {"old", "fresh"}
        assert await engine.find_within(*CENTER, 500, max_age=timedelta(minutes=10)) == {"fresh"}

    async def test_engine_default_window(
        self, registry: DeviceLocationRegistry, clock: _Clock
    ) -> None:
        engine = ProximityQueryEngine(registry, max_age=timedelta(minutes=30), clock=clock)
        await registry.update_location("A", *CENTER)

        clock.now += timedelta(minutes=29)
        assert await engine.find_within(*CENTER, 500) == {"A"}

        clock.now += timedelta(minutes=2)
        assert await engine.find_within(*CENTER, 500) == set()

    async def test_per_query_window_overrides_default(
        self, registry: DeviceLocationRegistry, clock: _Clock
    ) -> None:
        engine = ProximityQueryEngine(registry, max_age=timedelta(minutes=1), clock=clock)
        await registry.update_location("A", *CENTER)
        clock.now += timedelta(minutes=5)

        assert await engine.find_within(*CENTER, 500) == set()
        assert await engine.find_within(*CENTER, 500, max_age=timedelta(hours=1)) == {"A"}
