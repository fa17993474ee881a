"""Join routes, trips, stops and shapes into processed routes and trip schedules.

Direction in the Amtrak feed cannot be read off ``direction_id``: the flag
means different things on different routes. Travel direction is therefore
inferred from geometry. A route (or trip) first gets an *axis* from the
spread of its coordinates and the bearing between its end points; the
direction along that axis then follows from where the path ends relative to
where it starts.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence

from amtrak_sunlight.config import AXIS_SPAN_RATIO
from amtrak_sunlight.feed_parser import parse_gtfs_time
from amtrak_sunlight.geo import initial_bearing, validate_coordinates
from amtrak_sunlight.indexer import FeedIndex
from amtrak_sunlight.models import (
    Coordinate,
    Direction,
    DirectionAxis,
    GtfsRoute,
    GtfsStop,
    GtfsStopTime,
    GtfsTrip,
    OperatingDays,
    ProcessedRoute,
    ProcessedStop,
    ProcessedTrip,
    RouteCategory,
    RouteShape,
)

LOGGER = logging.getLogger(__name__)

GENERATED_SHAPE_ID = "generated"

# =============================================================================
# AXIS AND DIRECTION INFERENCE
# =============================================================================


def is_north_south_bearing(bearing: float) -> bool:
    """True for bearings in [315, 360) or [0, 45) or [135, 225)."""
    return bearing >= 315 or bearing < 45 or 135 <= bearing < 225


def determine_direction_axis(coordinates: Sequence[Coordinate]) -> DirectionAxis:
    """Infer whether a path runs mainly east-west or north-south.

    The bearing from the first to the last point proposes an axis, and the
    latitude and longitude spans must agree with it: the span along the
    proposed axis has to reach ``AXIS_SPAN_RATIO`` of the other span. When
    they disagree (loops, zig-zags) the larger span decides.

    Args:
        coordinates: Ordered ``(lat, lon)`` points.

    Returns:
        The travel axis; ``EAST_WEST`` (with a warning) for fewer than two
        points.
    """
    if len(coordinates) < 2:
        LOGGER.warning(
            "Not enough coordinates (%d) to determine direction axis; using east-west.",
            len(coordinates),
        )
        return DirectionAxis.EAST_WEST

    lats = [c[0] for c in coordinates]
    lons = [c[1] for c in coordinates]
    lat_span = max(lats) - min(lats)
    lon_span = max(lons) - min(lons)

    bearing = initial_bearing(coordinates[0], coordinates[-1])
    if is_north_south_bearing(bearing):
        if lat_span >= lon_span * AXIS_SPAN_RATIO:
            return DirectionAxis.NORTH_SOUTH
    elif lon_span >= lat_span * AXIS_SPAN_RATIO:
        return DirectionAxis.EAST_WEST

    return DirectionAxis.EAST_WEST if lon_span > lat_span else DirectionAxis.NORTH_SOUTH


def generic_direction(axis: DirectionAxis) -> Direction:
    """Label used for an axis when nothing tells the two directions apart."""
    return Direction.WESTBOUND if axis is DirectionAxis.EAST_WEST else Direction.NORTHBOUND


def direction_along_axis(start: Coordinate, end: Coordinate, axis: DirectionAxis) -> Direction:
    """Direction of travel from ``start`` to ``end`` on ``axis``.

    No movement along the axis gives the axis' generic label.
    """
    if axis is DirectionAxis.EAST_WEST:
        if end[1] > start[1]:
            return Direction.EASTBOUND
        return Direction.WESTBOUND
    if end[0] < start[0]:
        return Direction.SOUTHBOUND
    return Direction.NORTHBOUND


def resolve_path_direction(coordinates: Sequence[Coordinate]) -> Direction:
    """Axis and then direction of an ordered path."""
    axis = determine_direction_axis(coordinates)
    if len(coordinates) < 2:
        return generic_direction(axis)
    return direction_along_axis(coordinates[0], coordinates[-1], axis)


def get_direction_labels(route: ProcessedRoute) -> tuple[str, str]:
    """Generic display labels for the two directions of a route."""
    if route.direction_axis is DirectionAxis.EAST_WEST:
        return ("Westbound", "Eastbound")
    return ("Northbound", "Southbound")


def get_specific_direction_labels(trips: Iterable[ProcessedTrip]) -> tuple[str, str] | None:
    """``"To <headsign>"`` labels for a route, or None without headsigns.

    A route with a single headsign repeats it for both labels; with more than
    two, the first two seen are used.
    """
    headsigns = list(dict.fromkeys(trip.headsign for trip in trips if trip.headsign))
    if not headsigns:
        return None
    if len(headsigns) == 1:
        return (f"To {headsigns[0]}", f"To {headsigns[0]}")
    return (f"To {headsigns[0]}", f"To {headsigns[1]}")


# =============================================================================
# SHAPES
# =============================================================================


def stop_coordinates(
    stop_times: Iterable[GtfsStopTime], stops: Mapping[str, GtfsStop]
) -> list[Coordinate]:
    """Coordinates of the known stops of a stop-time sequence, in order."""
    coords = []
    for stop_time in stop_times:
        stop = stops.get(stop_time.stop_id)
        if stop is not None:
            coords.append(stop.coordinates)
    return coords


def build_shape_from_stops(
    stop_times: Iterable[GtfsStopTime], stops: Mapping[str, GtfsStop]
) -> RouteShape | None:
    """Straight-segment shape through a trip's stations, for feeds without shapes.txt.

    Returns:
        A shape with id ``"generated"``, or None when fewer than two stops
        resolve.
    """
    coords = stop_coordinates(stop_times, stops)
    if len(coords) < 2:
        return None
    return RouteShape(shape_id=GENERATED_SHAPE_ID, coordinates=coords)


# =============================================================================
# ROUTES
# =============================================================================


def _route_axis(
    route_trips: list[GtfsTrip], shape_ids: list[str], index: FeedIndex
) -> DirectionAxis:
    for shape_id in shape_ids:
        shape = index.shapes.get(shape_id)
        if shape is not None:
            return determine_direction_axis(shape.coordinates)
    first_trip = route_trips[0]
    coords = stop_coordinates(index.stop_times.get(first_trip.trip_id, []), index.stops)
    return determine_direction_axis(coords)


def _direction_options(
    route_trips: list[GtfsTrip], axis: DirectionAxis, index: FeedIndex
) -> list[Direction]:
    first_with_headsign: dict[str, GtfsTrip] = {}
    for trip in route_trips:
        if trip.trip_headsign and trip.trip_headsign not in first_with_headsign:
            first_with_headsign[trip.trip_headsign] = trip

    options: list[Direction] = []
    for trip in first_with_headsign.values():
        coords = stop_coordinates(index.stop_times.get(trip.trip_id, []), index.stops)
        if len(coords) < 2:
            continue
        direction = direction_along_axis(coords[0], coords[-1], axis)
        if direction not in options:
            options.append(direction)

    return options or [generic_direction(axis)]


def process_route(
    route: GtfsRoute,
    route_trips: list[GtfsTrip],
    index: FeedIndex,
    categories: Mapping[str, RouteCategory] | None = None,
) -> ProcessedRoute:
    """Build one :class:`ProcessedRoute` from a route and its (non-empty) trips."""
    route_numbers = list(dict.fromkeys(t.trip_short_name for t in route_trips if t.trip_short_name))
    shape_ids = list(dict.fromkeys(t.shape_id for t in route_trips if t.shape_id))
    axis = _route_axis(route_trips, shape_ids, index)

    return ProcessedRoute(
        route_id=route.route_id,
        route_name=route.route_long_name or route.route_short_name,
        route_numbers=route_numbers,
        direction_axis=axis,
        direction_options=_direction_options(route_trips, axis, index),
        shape_ids=shape_ids,
        color=route.route_color,
        url=route.route_url,
        category=(categories or {}).get(route.route_id),
    )


def process_routes(
    routes: Iterable[GtfsRoute],
    index: FeedIndex,
    categories: Mapping[str, RouteCategory] | None = None,
) -> list[ProcessedRoute]:
    """Process every route that has at least one trip.

    Args:
        routes: Routes to process, usually already filtered to Amtrak rail.
        index: Lookups of the same feed.
        categories: Optional route id to category table.

    Returns:
        Processed routes in input order. A route without trips is dropped
        with a warning.
    """
    processed: list[ProcessedRoute] = []
    for route in routes:
        route_trips = index.trips_by_route.get(route.route_id, [])
        if not route_trips:
            LOGGER.warning(
                "Route %s (%s) has no trips; dropped.",
                route.route_id,
                route.route_long_name or route.route_short_name,
            )
            continue
        processed.append(process_route(route, route_trips, index, categories))

    LOGGER.info("Processed %d routes.", len(processed))
    return processed


# =============================================================================
# TRIPS
# =============================================================================


def _process_stops(
    trip: GtfsTrip, stop_times: list[GtfsStopTime], index: FeedIndex
) -> list[ProcessedStop] | None:
    processed: list[ProcessedStop] = []
    for stop_time in stop_times:
        stop = index.stops.get(stop_time.stop_id)
        if stop is None:
            LOGGER.warning(
                "Trip %s references unknown stop %s; dropped.", trip.trip_id, stop_time.stop_id
            )
            return None

        arrival = stop_time.arrival_time or stop_time.departure_time
        departure = stop_time.departure_time or stop_time.arrival_time
        try:
            day_offset = parse_gtfs_time(arrival).day_offset
            parse_gtfs_time(departure)
        except ValueError as exc:
            LOGGER.warning(
                "Trip %s has an unreadable time at stop %s (%s); dropped.",
                trip.trip_id,
                stop_time.stop_id,
                exc,
            )
            return None

        processed.append(
            ProcessedStop(
                stop_id=stop.stop_id,
                stop_name=stop.stop_name,
                stop_sequence=stop_time.stop_sequence,
                coordinates=stop.coordinates,
                timezone=stop.stop_timezone,
                arrival_time=arrival,
                departure_time=departure,
                day_offset=day_offset,
            )
        )
    return processed


def process_trip(trip: GtfsTrip, index: FeedIndex) -> ProcessedTrip | None:
    """Build the schedule of one trip, or None (logged) when it must be dropped."""
    stop_times = index.stop_times.get(trip.trip_id)
    if not stop_times:
        LOGGER.warning("Trip %s has no stop times; dropped.", trip.trip_id)
        return None

    calendar = index.calendar.get(trip.service_id)
    if calendar is None:
        LOGGER.warning(
            "Trip %s has unknown service_id %s; dropped.", trip.trip_id, trip.service_id
        )
        return None

    stops = _process_stops(trip, stop_times, index)
    if stops is None:
        return None

    return ProcessedTrip(
        trip_id=trip.trip_id,
        route_id=trip.route_id,
        train_number=trip.trip_short_name,
        headsign=trip.trip_headsign,
        direction=resolve_path_direction([stop.coordinates for stop in stops]),
        shape_id=trip.shape_id,
        stops=stops,
        operating_days=OperatingDays.from_calendar(calendar),
        start_date=calendar.start_date,
        end_date=calendar.end_date,
    )


def process_trips(trips: Iterable[GtfsTrip], index: FeedIndex) -> dict[str, list[ProcessedTrip]]:
    """Process trips into schedules keyed by route id.

    Trips without stop times, without a calendar entry, with an unknown stop
    or with an unreadable time are dropped, each with one warning.
    """
    schedules: dict[str, list[ProcessedTrip]] = defaultdict(list)
    total = 0
    for trip in trips:
        processed = process_trip(trip, index)
        if processed is None:
            continue
        schedules[trip.route_id].append(processed)
        total += 1

    LOGGER.info("Processed %d trips across %d routes.", total, len(schedules))
    return dict(schedules)


# =============================================================================
# VALIDATION
# =============================================================================


def validate_processed_routes(routes: Iterable[ProcessedRoute]) -> int:
    """Log a warning for each gap in the processed routes.

    Returns:
        Number of warnings logged.
    """
    warnings = 0
    for route in routes:
        if not route.route_name:
            LOGGER.warning("Route %s is missing a name.", route.route_id)
            warnings += 1
        if not route.route_numbers:
            LOGGER.warning("Route %s has no train numbers.", route.route_id)
            warnings += 1
        if not route.shape_ids:
            LOGGER.warning("Route %s has no shapes.", route.route_id)
            warnings += 1
        if not route.direction_options:
            LOGGER.warning("Route %s has no direction options.", route.route_id)
            warnings += 1

    if warnings:
        LOGGER.warning("Found %d warnings during route validation.", warnings)
    else:
        LOGGER.info("All routes validated successfully.")
    return warnings


def validate_processed_trips(schedules: Mapping[str, Iterable[ProcessedTrip]]) -> int:
    """Log a warning for each suspicious trip schedule.

    Checks for fewer than two stops, stops with invalid coordinates and day
    offsets that go backwards along the sequence. Offending trips are kept.

    Returns:
        Number of warnings logged.
    """
    warnings = 0
    total = 0
    for route_id, trips in schedules.items():
        for trip in trips:
            total += 1
            if len(trip.stops) < 2:
                LOGGER.warning(
                    "Trip %s on route %s has fewer than 2 stops.", trip.trip_id, route_id
                )
                warnings += 1

            for stop in trip.stops:
                if not validate_coordinates(*stop.coordinates):
                    LOGGER.warning(
                        "Stop %s in trip %s has invalid coordinates %s.",
                        stop.stop_id,
                        trip.trip_id,
                        stop.coordinates,
                    )
                    warnings += 1

            last_offset = 0
            for stop in trip.stops:
                if stop.day_offset < last_offset:
                    LOGGER.warning(
                        "Trip %s has non-increasing day offsets at stop %s.",
                        trip.trip_id,
                        stop.stop_id,
                    )
                    warnings += 1
                last_offset = stop.day_offset

    if warnings:
        LOGGER.warning("Found %d warnings during schedule validation.", warnings)
    else:
        LOGGER.info("All %d schedules validated successfully.", total)
    return warnings


def find_shared_stop_coordinates(stops: Iterable[GtfsStop]) -> dict[Coordinate, list[str]]:
    """Station codes that share identical coordinates.

    The data is reported, never corrected: each shared location is logged
    once as a warning.

    Returns:
        Coordinate to the sorted stop ids found there, for locations with more
        than one stop.
    """
    by_coord: dict[Coordinate, list[str]] = defaultdict(list)
    for stop in stops:
        if validate_coordinates(stop.stop_lat, stop.stop_lon):
            by_coord[stop.coordinates].append(stop.stop_id)

    shared = {coord: sorted(ids) for coord, ids in by_coord.items() if len(ids) > 1}
    for coord, ids in shared.items():
        LOGGER.warning("Stops %s share coordinates %s.", ", ".join(ids), coord)
    return shared
