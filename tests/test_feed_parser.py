from __future__ import annotations

import datetime as dt
import math
from zoneinfo import ZoneInfo

import pytest

from amtrak_sunlight.feed_parser import (
    gtfs_time_to_datetime,
    parse_calendar,
    parse_gtfs_time,
    parse_route_categories,
    parse_routes,
    parse_shapes,
    parse_stop_times,
    parse_stops,
    parse_trips,
    read_gtfs_table,
    resolve_timezone,
)
from amtrak_sunlight.models import RouteCategory


def test_parse_gtfs_time_past_midnight() -> None:
    """25:30:00 is 01:30 on the next day."""
    parsed = parse_gtfs_time("25:30:00")
    assert parsed.hours == 1
    assert parsed.minutes == 30
    assert parsed.seconds == 0
    assert parsed.day_offset == 1
    assert parsed.total_minutes == 1530


def test_parse_gtfs_time_without_seconds_and_padding() -> None:
    parsed = parse_gtfs_time(" 7:05 ")
    assert (parsed.hours, parsed.minutes, parsed.seconds, parsed.day_offset) == (7, 5, 0, 0)
    assert parsed.total_seconds == 7 * 3600 + 5 * 60


@pytest.mark.parametrize("bad", ["", "abc", "12-30-00", "12:3", None])
def test_parse_gtfs_time_rejects_garbage(bad) -> None:
    with pytest.raises(ValueError, match="Invalid GTFS time format"):
        parse_gtfs_time(bad)


def test_gtfs_time_to_datetime_applies_day_offset() -> None:
    result = gtfs_time_to_datetime(dt.date(2026, 3, 31), "49:15:00", "America/Denver")
    assert result == dt.datetime(2026, 4, 2, 1, 15, tzinfo=ZoneInfo("America/Denver"))


def test_resolve_timezone_falls_back_to_utc(caplog) -> None:
    caplog.set_level("WARNING")
    assert resolve_timezone("Not/AZone") == ZoneInfo("UTC")
    assert resolve_timezone("") == ZoneInfo("UTC")
    assert "Not/AZone" in caplog.text


def test_empty_and_header_only_files_yield_no_rows() -> None:
    assert parse_routes("") == []
    assert parse_routes("route_id,route_long_name\n") == []
    assert parse_routes("\n\n  \n") == []


def test_quoted_field_keeps_delimiter() -> None:
    stops = parse_stops(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        'CHI,"Chicago, IL - Union Station",41.8786,-87.6403\n'
    )
    assert len(stops) == 1
    assert stops[0].stop_name == "Chicago, IL - Union Station"
    assert stops[0].coordinates == (41.8786, -87.6403)


def test_bom_blank_lines_and_whitespace_are_cleaned() -> None:
    text = "\ufeffroute_id , route_long_name ,route_type\n\n 96 , California Zephyr , 2 \n\n"
    routes = parse_routes(text)
    assert len(routes) == 1
    assert routes[0].route_id == "96"
    assert routes[0].route_long_name == "California Zephyr"
    assert routes[0].route_type == 2


def test_missing_columns_default() -> None:
    """Unknown columns are ignored; absent ones take the field default."""
    trips = parse_trips("trip_id,route_id,extra\nT1,96,whatever\n")
    assert trips[0].trip_id == "T1"
    assert trips[0].route_id == "96"
    assert trips[0].trip_headsign == ""
    assert trips[0].direction_id == 0

    stop_times = parse_stop_times("trip_id,stop_id,stop_sequence\nT1,CHI,1\n")
    assert stop_times[0].timepoint == 1
    assert stop_times[0].pickup_type == 0


def test_bad_numbers_are_tolerated() -> None:
    """Unparseable numbers give NaN for floats and the default for integers."""
    stops = parse_stops("stop_id,stop_lat,stop_lon\nXXX,north,-87.6\n")
    assert math.isnan(stops[0].stop_lat)
    assert stops[0].stop_lon == pytest.approx(-87.6)

    shapes = parse_shapes("shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence\nS,1,2,first\n")
    assert shapes[0].shape_pt_sequence == 0


def test_short_rows_pad_and_long_rows_truncate(caplog) -> None:
    caplog.set_level("WARNING")
    calendar = parse_calendar(
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "DAILY,1,1,1,1,1,1,1,20260101,20271231,surplus\n"
        "SHORT,1,0\n"
    )
    assert [c.service_id for c in calendar] == ["DAILY", "SHORT"]
    assert calendar[0].end_date == "20271231"
    assert calendar[1].monday == 1
    assert calendar[1].sunday == 0
    assert calendar[1].start_date == ""
    assert "extra fields dropped" in caplog.text


def test_leading_zeros_survive() -> None:
    df = read_gtfs_table("stop_id,stop_name\n001,Main\n", "stops.txt")
    assert df.loc[0, "stop_id"] == "001"


def test_unterminated_quote_drops_only_that_row(caplog) -> None:
    caplog.set_level("WARNING")
    stops = parse_stops(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "CHI,Chicago,41.8786,-87.6403\n"
        "XYZ,Foo \"Bar,40.0,-90.0\n"
        "GBB,Galesburg,40.9447,-90.3640\n"
    )
    assert [s.stop_id for s in stops] == ["CHI", "GBB"]
    assert stops[1].stop_name == "Galesburg"
    assert "stops.txt line 3: unterminated quote; row dropped." in caplog.text


def test_unterminated_quote_in_header_is_removed(caplog) -> None:
    caplog.set_level("WARNING")
    df = read_gtfs_table('stop_id,"stop_name\nCHI,Chicago\n', "stops.txt")
    assert list(df.columns) == ["stop_id", "stop_name"]
    assert df.loc[0, "stop_name"] == "Chicago"
    assert "unterminated quote in header" in caplog.text


def test_only_bad_rows_gives_empty_frame() -> None:
    assert read_gtfs_table('route_id,service_id,trip_id\n10,"WKD,10A\n', "trips.txt").empty


CATEGORY_TABLE = """route_id,route_long_name,agency,first,last,category
96,California Zephyr,51,CHI,EMY,Long-Distance
56, Illini ,51,CHI,CDL, State-Supported

94,Northeast Regional,51,BOS,NPN,Northeast Corridor
12,Too short,51
77,Hoosier State,51,CHI,IND,Commuter
,No id,51,A,B,Long-Distance
"""


def test_parse_route_categories(caplog) -> None:
    caplog.set_level("WARNING")
    categories = parse_route_categories(CATEGORY_TABLE)

    assert categories == {
        "96": RouteCategory.LONG_DISTANCE,
        "56": RouteCategory.STATE_SUPPORTED,
        "94": RouteCategory.NORTHEAST_CORRIDOR,
    }
    assert "Unknown route category 'Commuter' for route 77" in caplog.text


def test_parse_route_categories_reads_columns_by_position() -> None:
    table = "id,a,b,c,d,family\n96,x,y,z,w,Long-Distance\n"
    assert parse_route_categories(table) == {"96": RouteCategory.LONG_DISTANCE}


def test_parse_route_categories_empty() -> None:
    assert parse_route_categories("") == {}
    assert parse_route_categories("route_id,a,b,c,d,category\n") == {}
    assert parse_route_categories("route_id,category\n96,Long-Distance\n") == {}
