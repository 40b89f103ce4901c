"""Tests for the great-circle helpers."""

from __future__ import annotations

import math

import pytest

from safepulse.services.geo import EARTH_RADIUS_M, bounding_box, distance_meters

_POINTS = [
    (30.8780, 76.8740),
    (30.8781, 76.8741),
    (-33.8688, 151.2093),
    (51.5074, -0.1278),
    (0.0, 0.0),
    (89.9, 45.0),
    (-45.0, -179.9),
]


class TestDistanceMeters:
    @pytest.mark.parametrize("a", _POINTS)
    @pytest.mark.parametrize("b", _POINTS)
    def test_symmetric(self, a: tuple[float, float], b: tuple[float, float]) -> None:
        assert distance_meters(*a, *b) == pytest.approx(distance_meters(*b, *a), abs=1e-6)

    @pytest.mark.parametrize("a", _POINTS)
    def test_identical_points_are_zero(self, a: tuple[float, float]) -> None:
        assert distance_meters(*a, *a) == 0.0

    def test_one_degree_of_latitude(self) -> None:
        expected = EARTH_RADIUS_M * math.pi / 180
        assert distance_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected)
        assert distance_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, abs=1)

    def test_antipodal_points(self) -> None:
        assert distance_meters(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_never_negative(self) -> None:
        for a in _POINTS:
            for b in _POINTS:
                assert distance_meters(*a, *b) >= 0.0

    def test_short_distance_between_nearby_points(self) -> None:
        d = distance_meters(30.8780, 76.8740, 30.8781, 76.8741)
        assert 10 < d < 20, "points 0.0001 deg apart should be roughly 14 m apart"


class TestBoundingBox:
    def test_contains_circle_points(self) -> None:
        lat, lon, radius = 30.0, 76.0, 5_000.0
        box = bounding_box(lat, lon, radius)
        assert not box.wraps
        # Due north and due south on the circle.
        dlat = math.degrees(radius / EARTH_RADIUS_M)
        assert box.min_lat <= lat - dlat
        assert box.max_lat >= lat + dlat
        # Widest longitude extent is at least the equatorial-equivalent shift.
        assert box.max_lon - lon >= math.degrees(radius / EARTH_RADIUS_M)

    def test_wraps_across_antimeridian(self) -> None:
        box = bounding_box(0.0, 179.999, 1_000.0)
        assert box.wraps
        assert box.min_lon > 179.0
        assert box.max_lon < -179.0

    def test_wraps_on_western_side(self) -> None:
        box = bounding_box(0.0, -179.999, 1_000.0)
        assert box.wraps
        assert box.min_lon > 179.0

    def test_near_pole_covers_all_longitudes(self) -> None:
        box = bounding_box(89.9999, 10.0, 1_000.0)
        assert box.min_lon == -180.0
        assert box.max_lon == 180.0
        assert box.max_lat == 90.0

    def test_huge_radius_covers_globe(self) -> None:
        box = bounding_box(10.0, 10.0, 20_000_000.0)
        assert (box.min_lat, box.max_lat) == (-90.0, 90.0)
        assert (box.min_lon, box.max_lon) == (-180.0, 180.0)
