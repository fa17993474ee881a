"""Hash-keyed lookups over the flat row lists of one feed.

Every index is a plain ``dict`` built once per load cycle and passed down the
pipeline. A key with no rows is simply absent; callers use ``dict.get`` and
treat ``None`` as a normal outcome.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from amtrak_sunlight.models import (
    GtfsCalendar,
    GtfsFeed,
    GtfsRoute,
    GtfsShapePoint,
    GtfsStop,
    GtfsStopTime,
    GtfsTrip,
    RouteShape,
)

LOGGER = logging.getLogger(__name__)


def build_stop_index(stops: Iterable[GtfsStop]) -> dict[str, GtfsStop]:
    """Stops by stop_id; a repeated id keeps the last row."""
    return {stop.stop_id: stop for stop in stops}


def build_route_index(routes: Iterable[GtfsRoute]) -> dict[str, GtfsRoute]:
    """Routes by route_id."""
    return {route.route_id: route for route in routes}


def build_shape_index(shapes: Iterable[GtfsShapePoint]) -> dict[str, RouteShape]:
    """Group shape points by shape_id and order each group by sequence.

    Args:
        shapes: Rows of shapes.txt in any order.

    Returns:
        ``RouteShape`` per shape id with ``(lat, lon)`` coordinates in
        ascending ``shape_pt_sequence`` order. Rows with equal sequence keep
        their file order.
    """
    groups: dict[str, list[GtfsShapePoint]] = defaultdict(list)
    for point in shapes:
        groups[point.shape_id].append(point)

    index: dict[str, RouteShape] = {}
    for shape_id, points in groups.items():
        points.sort(key=lambda p: p.shape_pt_sequence)
        index[shape_id] = RouteShape(
            shape_id=shape_id,
            coordinates=[(p.shape_pt_lat, p.shape_pt_lon) for p in points],
        )
    return index


def build_stop_time_index(
    stop_times: Iterable[GtfsStopTime],
) -> dict[str, list[GtfsStopTime]]:
    """Stop times grouped by trip_id, each group sorted by stop_sequence."""
    index: dict[str, list[GtfsStopTime]] = defaultdict(list)
    for stop_time in stop_times:
        index[stop_time.trip_id].append(stop_time)
    for group in index.values():
        group.sort(key=lambda st: st.stop_sequence)
    return dict(index)


def build_calendar_index(calendar: Iterable[GtfsCalendar]) -> dict[str, GtfsCalendar]:
    """Calendar entries by service_id."""
    return {entry.service_id: entry for entry in calendar}


def build_trips_by_route(trips: Iterable[GtfsTrip]) -> dict[str, list[GtfsTrip]]:
    """Trips grouped by route_id, in file order."""
    index: dict[str, list[GtfsTrip]] = defaultdict(list)
    for trip in trips:
        index[trip.route_id].append(trip)
    return dict(index)


@dataclass
class FeedIndex:
    """All lookups the processor needs, built from one :class:`GtfsFeed`."""

    stops: dict[str, GtfsStop] = field(default_factory=dict)
    routes: dict[str, GtfsRoute] = field(default_factory=dict)
    shapes: dict[str, RouteShape] = field(default_factory=dict)
    stop_times: dict[str, list[GtfsStopTime]] = field(default_factory=dict)
    calendar: dict[str, GtfsCalendar] = field(default_factory=dict)
    trips_by_route: dict[str, list[GtfsTrip]] = field(default_factory=dict)


def build_feed_index(feed: GtfsFeed) -> FeedIndex:
    """Build every index of ``feed``."""
    index = FeedIndex(
        stops=build_stop_index(feed.stops),
        routes=build_route_index(feed.routes),
        shapes=build_shape_index(feed.shapes),
        stop_times=build_stop_time_index(feed.stop_times),
        calendar=build_calendar_index(feed.calendar),
        trips_by_route=build_trips_by_route(feed.trips),
    )
    LOGGER.info(
        "Indexed %d stops, %d routes, %d shapes, %d trips with stop times.",
        len(index.stops),
        len(index.routes),
        len(index.shapes),
        len(index.stop_times),
    )
    return index
