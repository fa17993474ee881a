"""Read-only lookups over a loaded :class:`~amtrak_sunlight.models.GtfsCatalog`."""

from __future__ import annotations

import datetime as dt
import logging

from amtrak_sunlight.models import (
    Direction,
    DirectionAxis,
    GtfsCatalog,
    GtfsStop,
    ProcessedRoute,
    ProcessedTrip,
)

LOGGER = logging.getLogger(__name__)

MIN_STOP_QUERY_LENGTH = 2


def find_route(catalog: GtfsCatalog, route_id: str) -> ProcessedRoute | None:
    """Route by id."""
    return next((route for route in catalog.routes if route.route_id == route_id), None)


def filter_routes(
    catalog: GtfsCatalog,
    axis: DirectionAxis | None = None,
    name_query: str = "",
) -> list[ProcessedRoute]:
    """Routes on ``axis`` whose name contains ``name_query`` (case-insensitive)."""
    query = name_query.strip().lower()
    return [
        route
        for route in catalog.routes
        if (axis is None or route.direction_axis is axis)
        and (not query or query in route.route_name.lower())
    ]


def route_schedules(catalog: GtfsCatalog, route_id: str) -> list[ProcessedTrip]:
    """Trips of a route; empty for an unknown id."""
    return catalog.schedules.get(route_id, [])


def _moves(trip: ProcessedTrip, direction: Direction) -> bool:
    if len(trip.stops) < 2:
        return False
    first, last = trip.stops[0].coordinates, trip.stops[-1].coordinates
    lat_diff = last[0] - first[0]
    lon_diff = last[1] - first[1]
    return {
        Direction.NORTHBOUND: lat_diff > 0,
        Direction.SOUTHBOUND: lat_diff < 0,
        Direction.EASTBOUND: lon_diff > 0,
        Direction.WESTBOUND: lon_diff < 0,
    }[direction]


def find_trip_for_direction(
    catalog: GtfsCatalog, route_id: str, direction: str | Direction, trip_index: int = 0
) -> ProcessedTrip | None:
    """The ``trip_index``-th trip of a route heading a given way.

    ``direction`` is matched as a case-insensitive substring of the trip
    headsigns first (``"Chicago"`` finds the trips to Chicago). When no
    headsign matches, a generic direction (``"westbound"`` and so on) is
    compared with the raw movement from each trip's first stop to its last.

    Returns:
        The matching trip, or None when fewer than ``trip_index + 1`` match.
    """
    trips = route_schedules(catalog, route_id)
    text = direction.value if isinstance(direction, Direction) else str(direction)
    needle = text.strip().lower()

    matching = [trip for trip in trips if needle in trip.headsign.lower()]
    if not matching:
        try:
            wanted = Direction(needle)
        except ValueError:
            wanted = None
        if wanted is not None:
            matching = [trip for trip in trips if _moves(trip, wanted)]

    if trip_index < len(matching):
        return matching[trip_index]
    LOGGER.debug("No trip %d on route %s heading '%s'.", trip_index, route_id, text)
    return None


def route_train_numbers(catalog: GtfsCatalog, route_id: str) -> list[str]:
    """Train numbers of a route, or ``[]``."""
    route = find_route(catalog, route_id)
    return list(route.route_numbers) if route is not None else []


def trips_for_date(catalog: GtfsCatalog, route_id: str, day: dt.date) -> list[ProcessedTrip]:
    """Trips of a route that run on ``day``."""
    return [trip for trip in route_schedules(catalog, route_id) if trip.operates_on(day)]


def find_stop(catalog: GtfsCatalog, stop_id: str) -> GtfsStop | None:
    """Station by code."""
    return catalog.stops.get(stop_id)


def route_stops(catalog: GtfsCatalog, route_id: str) -> list[GtfsStop]:
    """Stations a route calls at, in first-visit order over its trips."""
    seen: dict[str, GtfsStop] = {}
    for trip in route_schedules(catalog, route_id):
        for stop in trip.stops:
            station = catalog.stops.get(stop.stop_id)
            if station is not None and stop.stop_id not in seen:
                seen[stop.stop_id] = station
    return list(seen.values())


def search_stops(catalog: GtfsCatalog, query: str) -> list[GtfsStop]:
    """Stations whose name or code contains ``query`` (case-insensitive).

    Queries shorter than two characters return nothing.
    """
    needle = query.strip().lower()
    if len(needle) < MIN_STOP_QUERY_LENGTH:
        return []
    return [
        stop
        for stop in catalog.stops.values()
        if needle in stop.stop_name.lower() or needle in stop.stop_id.lower()
    ]


def catalog_stats(catalog: GtfsCatalog) -> dict[str, int]:
    """Counts of routes, trips, stops and loaded shapes."""
    return {
        "routes": len(catalog.routes),
        "trips": sum(len(trips) for trips in catalog.schedules.values()),
        "stops": len(catalog.stops),
        "shapes": len(catalog.shapes),
        "warnings": catalog.warnings,
    }
