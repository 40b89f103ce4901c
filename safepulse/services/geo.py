"""Great-circle geometry helpers.

Spherical-earth approximation (radius 6,371 km).  Callers are
responsible for passing coordinates in valid ranges.
"""

from __future__ import annotations

import math
from typing import Final, NamedTuple

EARTH_RADIUS_M: Final[float] = 6_371_000.0


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    wraps: bool = False  # True when the box crosses the antimeridian


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula.  Returns distance in metres.

    Parameters
    ----------
    lat1, lon1:
        Latitude and longitude of point 1 in decimal degrees.
    lat2, lon2:
        Latitude and longitude of point 2 in decimal degrees.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    # Rounding can push ``a`` a hair outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def bounding_box(lat: float, lon: float, radius_m: float) -> BoundingBox:
    """Return a lat/lon box that fully contains the circle around a point.

    The box is slightly padded so that points exactly on the circle
    boundary are never cut off by floating-point error.  If the circle
    reaches a pole, the full longitude range is returned.
    """
    angular = (radius_m / EARTH_RADIUS_M) * 1.000001
    dlat = math.degrees(angular)

    min_lat = lat - dlat
    max_lat = lat + dlat
    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0)

    # Widest longitude span of the circle, reached at latitude asin(sin(lat)/cos(d)).
    sin_ratio = math.sin(angular) / math.cos(math.radians(lat))
    if sin_ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    dlon = math.degrees(math.asin(sin_ratio))

    min_lon = lon - dlon
    max_lon = lon + dlon
    if min_lon <= -180.0:
        return BoundingBox(min_lat, max_lat, min_lon + 360.0, max_lon, wraps=True)
    if max_lon >= 180.0:
        return BoundingBox(min_lat, max_lat, min_lon, max_lon - 360.0, wraps=True)
    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
