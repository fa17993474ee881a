from __future__ import annotations

import pytest

from amtrak_sunlight.indexer import build_feed_index
from amtrak_sunlight.models import (
    Direction,
    DirectionAxis,
    GtfsCalendar,
    GtfsFeed,
    GtfsRoute,
    GtfsShapePoint,
    GtfsStop,
    GtfsStopTime,
    GtfsTrip,
    RouteCategory,
)
from amtrak_sunlight.processor import (
    GENERATED_SHAPE_ID,
    build_shape_from_stops,
    determine_direction_axis,
    direction_along_axis,
    find_shared_stop_coordinates,
    get_direction_labels,
    get_specific_direction_labels,
    is_north_south_bearing,
    process_routes,
    process_trip,
    process_trips,
    resolve_path_direction,
    validate_processed_routes,
    validate_processed_trips,
)
from conftest import make_stop, make_trip

STATIONS = [
    GtfsStop("CHI", "Chicago", stop_timezone="America/Chicago", stop_lat=41.88, stop_lon=-87.64),
    GtfsStop("GBB", "Galesburg", stop_timezone="America/Chicago", stop_lat=40.95, stop_lon=-90.37),
    GtfsStop("QCY", "Quincy", stop_timezone="America/Chicago", stop_lat=39.96, stop_lon=-91.37),
    GtfsStop("CDL", "Carbondale", stop_timezone="America/Chicago", stop_lat=37.72, stop_lon=-89.22),
]
DAILY = GtfsCalendar("DAILY", *[1] * 7, "20260101", "20271231")


def _stop_times(trip_id: str, *stop_ids: str) -> list[GtfsStopTime]:
    return [
        GtfsStopTime(trip_id, sid, f"{8 + i:02d}:00:00", f"{8 + i:02d}:05:00", i + 1)
        for i, sid in enumerate(stop_ids)
    ]


def _feed(**overrides) -> GtfsFeed:
    """Two-route feed: 42957 runs Chicago-Quincy both ways, 56 Chicago-Carbondale."""
    feed = GtfsFeed(
        routes=[
            GtfsRoute("42957", "51", route_long_name="Illinois Zephyr", route_type=2),
            GtfsRoute("56", "51", route_short_name="Illini", route_type=2),
            GtfsRoute("77", "51", route_long_name="Hoosier State", route_type=2),
        ],
        stops=list(STATIONS),
        trips=[
            GtfsTrip("T380", "42957", "DAILY", "380", 0, "IZ", "Quincy"),
            GtfsTrip("T383", "42957", "DAILY", "383", 1, "IZ", "Chicago"),
            GtfsTrip("T391", "56", "DAILY", "391", 0, "", ""),
        ],
        stop_times=(
            _stop_times("T380", "CHI", "GBB", "QCY")
            + _stop_times("T383", "QCY", "GBB", "CHI")
            + _stop_times("T391", "CHI", "CDL")
        ),
        shapes=[
            GtfsShapePoint("IZ", 41.88, -87.64, 1),
            GtfsShapePoint("IZ", 40.95, -90.37, 2),
            GtfsShapePoint("IZ", 39.96, -91.37, 3),
        ],
        calendar=[DAILY],
    )
    for name, value in overrides.items():
        setattr(feed, name, value)
    return feed


# -----------------------------------------------------------------------------
# AXIS AND DIRECTION
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "bearing, expected",
    [(0, True), (44.9, True), (45, False), (134.9, False), (135, True), (224.9, True),
     (225, False), (314.9, False), (315, True), (359.9, True)],
)
def test_north_south_bearing_boundaries(bearing, expected) -> None:
    assert is_north_south_bearing(bearing) is expected


def test_axis_for_straight_north_path() -> None:
    path = [(40.0, -100.0), (41.0, -100.0), (42.0, -100.0), (43.0, -100.0)]
    assert determine_direction_axis(path) is DirectionAxis.NORTH_SOUTH


def test_axis_for_east_trending_path() -> None:
    path = [(40.0, -100.0), (40.2, -99.0), (40.1, -98.0), (40.4, -96.0)]
    assert determine_direction_axis(path) is DirectionAxis.EAST_WEST


def test_axis_falls_back_to_larger_span() -> None:
    # End points due north of each other, but the path swings far east
    path = [(40.0, -100.0), (40.5, -90.0), (41.0, -100.0)]
    assert determine_direction_axis(path) is DirectionAxis.EAST_WEST


def test_axis_needs_two_points(caplog) -> None:
    caplog.set_level("WARNING")
    assert determine_direction_axis([(40.0, -100.0)]) is DirectionAxis.EAST_WEST
    assert determine_direction_axis([]) is DirectionAxis.EAST_WEST
    assert "Not enough coordinates" in caplog.text


def test_direction_along_axis() -> None:
    ew, ns = DirectionAxis.EAST_WEST, DirectionAxis.NORTH_SOUTH
    assert direction_along_axis((40, -90), (40, -89), ew) is Direction.EASTBOUND
    assert direction_along_axis((40, -90), (40, -91), ew) is Direction.WESTBOUND
    assert direction_along_axis((40, -90), (39, -90), ns) is Direction.SOUTHBOUND
    assert direction_along_axis((40, -90), (41, -90), ns) is Direction.NORTHBOUND
    # No movement along the axis gives the generic label
    assert direction_along_axis((40, -90), (41, -90), ew) is Direction.WESTBOUND
    assert direction_along_axis((40, -90), (40, -80), ns) is Direction.NORTHBOUND


def test_resolve_path_direction() -> None:
    assert resolve_path_direction([(41.88, -87.64), (39.75, -105.0)]) is Direction.WESTBOUND
    assert resolve_path_direction([(41.88, -87.64), (29.95, -90.08)]) is Direction.SOUTHBOUND
    assert resolve_path_direction([(41.88, -87.64)]) is Direction.WESTBOUND


# -----------------------------------------------------------------------------
# ROUTES
# -----------------------------------------------------------------------------


def test_process_routes_builds_route_entries(caplog) -> None:
    caplog.set_level("WARNING")
    feed = _feed()
    index = build_feed_index(feed)

    routes = process_routes(
        feed.routes, index, {"42957": RouteCategory.STATE_SUPPORTED}
    )

    assert [r.route_id for r in routes] == ["42957", "56"]
    iz, illini = routes
    assert iz.route_name == "Illinois Zephyr"
    assert iz.route_numbers == ["380", "383"]
    assert iz.shape_ids == ["IZ"]
    assert iz.direction_axis is DirectionAxis.EAST_WEST
    assert iz.direction_options == [Direction.WESTBOUND, Direction.EASTBOUND]
    assert iz.category is RouteCategory.STATE_SUPPORTED

    # Short name stands in for a missing long name; axis comes from stops
    assert illini.route_name == "Illini"
    assert illini.shape_ids == []
    assert illini.direction_axis is DirectionAxis.NORTH_SOUTH
    assert illini.direction_options == [Direction.NORTHBOUND]
    assert illini.category is None

    assert "Route 77 (Hoosier State) has no trips; dropped." in caplog.text


def test_direction_labels() -> None:
    feed = _feed()
    routes = process_routes(feed.routes, build_feed_index(feed))
    assert get_direction_labels(routes[0]) == ("Westbound", "Eastbound")
    assert get_direction_labels(routes[1]) == ("Northbound", "Southbound")


def test_specific_direction_labels() -> None:
    stops = [make_stop("A", (40.0, -90.0), "10:00:00"), make_stop("B", (40.0, -91.0), "11:00:00")]
    assert get_specific_direction_labels(
        [make_trip("1", stops, headsign="Quincy"), make_trip("2", stops, headsign="Chicago")]
    ) == ("To Quincy", "To Chicago")
    assert get_specific_direction_labels([make_trip("1", stops, headsign="Quincy")]) == (
        "To Quincy",
        "To Quincy",
    )
    assert get_specific_direction_labels([make_trip("1", stops)]) is None


def test_build_shape_from_stops() -> None:
    stops = {s.stop_id: s for s in STATIONS}
    shape = build_shape_from_stops(_stop_times("T", "CHI", "NOPE", "QCY"), stops)
    assert shape.shape_id == GENERATED_SHAPE_ID
    assert shape.coordinates == [(41.88, -87.64), (39.96, -91.37)]
    assert build_shape_from_stops(_stop_times("T", "CHI"), stops) is None


# -----------------------------------------------------------------------------
# TRIPS
# -----------------------------------------------------------------------------


def test_process_trips_keyed_by_route() -> None:
    index = build_feed_index(_feed())
    schedules = process_trips(_feed().trips, index)

    assert set(schedules) == {"42957", "56"}
    t380, t383 = schedules["42957"]
    assert t380.train_number == "380"
    assert t380.direction is Direction.WESTBOUND
    assert t383.direction is Direction.EASTBOUND
    assert [s.stop_id for s in t380.stops] == ["CHI", "GBB", "QCY"]
    assert t380.stops[0].timezone == "America/Chicago"
    assert t380.stops[1].arrival_time == "09:00:00"
    assert t380.stops[1].departure_time == "09:05:00"
    assert t380.operating_days.sunday
    assert (t380.start_date, t380.end_date) == ("20260101", "20271231")


def test_process_trip_fills_missing_times_and_day_offset() -> None:
    stop_times = [
        GtfsStopTime("T1", "CHI", "", "23:30:00", 1),
        GtfsStopTime("T1", "QCY", "25:10:00", "", 2),
    ]
    index = build_feed_index(_feed(stop_times=stop_times, trips=[GtfsTrip("T1", "56", "DAILY")]))
    trip = process_trip(GtfsTrip("T1", "56", "DAILY"), index)

    assert trip.stops[0].arrival_time == "23:30:00"
    assert trip.stops[1].departure_time == "25:10:00"
    assert [s.day_offset for s in trip.stops] == [0, 1]


@pytest.mark.parametrize(
    "stop_times, service_id, message",
    [
        ([], "DAILY", "has no stop times"),
        (_stop_times("T1", "CHI", "GBB"), "NOPE", "unknown service_id NOPE"),
        (_stop_times("T1", "CHI", "XXX"), "DAILY", "unknown stop XXX"),
        ([GtfsStopTime("T1", "CHI", "8am", "8am", 1)], "DAILY", "unreadable time"),
    ],
)
def test_process_trip_drops_with_one_warning(caplog, stop_times, service_id, message) -> None:
    caplog.set_level("WARNING")
    trip = GtfsTrip("T1", "56", service_id)
    index = build_feed_index(_feed(stop_times=stop_times, trips=[trip]))

    assert process_trip(trip, index) is None
    assert message in caplog.text
    assert len(caplog.records) == 1


# -----------------------------------------------------------------------------
# VALIDATION
# -----------------------------------------------------------------------------


def test_validate_processed_routes_counts_gaps() -> None:
    feed = _feed()
    routes = process_routes(feed.routes, build_feed_index(feed))
    # 56 has no shapes
    assert validate_processed_routes(routes) == 1
    assert validate_processed_routes([]) == 0


def test_validate_processed_trips() -> None:
    good = make_trip(
        "OK",
        [make_stop("A", (40.0, -90.0), "23:00:00"), make_stop("B", (40.0, -91.0), "25:00:00")],
    )
    lonely = make_trip("ONE", [make_stop("A", (40.0, -90.0), "10:00:00")])
    broken = make_trip(
        "BAD",
        [
            make_stop("A", (40.0, -90.0), "25:00:00"),
            make_stop("B", (95.0, -91.0), "26:00:00", day_offset=0),
        ],
    )

    assert validate_processed_trips({"R1": [good]}) == 0
    # lonely: too few stops; broken: bad latitude and a backwards day offset
    assert validate_processed_trips({"R1": [good, lonely], "R2": [broken]}) == 3


def test_find_shared_stop_coordinates(caplog) -> None:
    caplog.set_level("WARNING")
    stops = [
        GtfsStop("NYP", stop_lat=40.75, stop_lon=-73.99),
        GtfsStop("NYPX", stop_lat=40.75, stop_lon=-73.99),
        GtfsStop("CHI", stop_lat=41.88, stop_lon=-87.64),
        GtfsStop("NAN1"),
        GtfsStop("NAN2"),
    ]
    shared = find_shared_stop_coordinates(stops)
    assert shared == {(40.75, -73.99): ["NYP", "NYPX"]}
    assert caplog.text.count("share coordinates") == 1
