"""Geographic helpers: great-circle distance, bearing and linear interpolation.

Coordinates are ``(lat, lon)`` tuples in decimal degrees throughout.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Sequence

from amtrak_sunlight.models import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(coord1: Coordinate, coord2: Coordinate) -> float:
    """Great-circle distance between two coordinates, in kilometres."""
    lat1, lon1, lat2, lon2 = map(math.radians, (*coord1, *coord2))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def initial_bearing(coord1: Coordinate, coord2: Coordinate) -> float:
    """Initial great-circle bearing from ``coord1`` to ``coord2``.

    Returns:
        Degrees in ``[0, 360)``; 0 is north, 90 east.
    """
    lat1, lon1 = map(math.radians, coord1)
    lat2, lon2 = map(math.radians, coord2)
    dlon = lon2 - lon1

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def validate_coordinates(lat: float, lon: float) -> bool:
    """True when both values are finite and inside the valid ranges."""
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def interpolate_coordinate(
    coord1: Coordinate, coord2: Coordinate, fraction: float
) -> Coordinate:
    """Point ``fraction`` of the way from ``coord1`` to ``coord2`` (planar)."""
    lat1, lon1 = coord1
    lat2, lon2 = coord2
    return (lat1 + (lat2 - lat1) * fraction, lon1 + (lon2 - lon1) * fraction)


def interpolate_instant(start: dt.datetime, end: dt.datetime, fraction: float) -> dt.datetime:
    """Instant ``fraction`` of the way from ``start`` to ``end``."""
    return start + (end - start) * fraction


def cumulative_distances(coordinates: Sequence[Coordinate]) -> list[float]:
    """Running great-circle distance (km) from the first coordinate.

    The result has one entry per coordinate and starts at 0. An empty input
    gives an empty list.
    """
    if not coordinates:
        return []
    distances = [0.0]
    for prev, cur in zip(coordinates, coordinates[1:]):
        distances.append(distances[-1] + haversine_km(prev, cur))
    return distances
