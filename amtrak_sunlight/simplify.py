"""Douglas-Peucker reduction of dense shape geometry.

Distances are planar in degree units, which is adequate for thinning a rail
shape for display but not for measuring it.
"""

from __future__ import annotations

from collections.abc import Sequence

from shapely.geometry import LineString

from amtrak_sunlight.config import SHAPE_SIMPLIFY_TOLERANCE
from amtrak_sunlight.models import Coordinate


def simplify_shape(
    coordinates: Sequence[Coordinate], tolerance: float = SHAPE_SIMPLIFY_TOLERANCE
) -> list[Coordinate]:
    """Drop points that deviate from the chord by no more than ``tolerance``.

    Args:
        coordinates: Ordered path.
        tolerance: Maximum perpendicular deviation, in degrees. A point is
            kept only when its deviation is strictly greater; ties between
            equally distant points split at the lowest index.

    Returns:
        The kept points in their original order. Paths of two or fewer
        points come back unchanged.
    """
    points = list(coordinates)
    if len(points) <= 2:
        return points

    line = LineString(points).simplify(tolerance, preserve_topology=False)
    return [tuple(coord) for coord in line.coords]
