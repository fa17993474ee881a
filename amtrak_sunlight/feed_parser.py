"""Parse GTFS text files into typed rows.

Each file is tokenized with :func:`pandas.read_csv` from in-memory text, with
every column read as ``str`` so station codes and train numbers keep their
exact spelling. Numeric columns are converted afterwards and permissively:
text that is not a number becomes ``NaN`` (floats) or the column default
(integers) instead of failing the row.

Also holds the GTFS clock-time helpers, since stop_times.txt is the only
place those strings come from.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
import re
import warnings
from collections.abc import Callable
from functools import lru_cache
from typing import Any, NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np
import pandas as pd

from amtrak_sunlight.config import FALLBACK_TIMEZONE
from amtrak_sunlight.models import (
    GtfsAgency,
    GtfsCalendar,
    GtfsRoute,
    GtfsShapePoint,
    GtfsStop,
    GtfsStopTime,
    GtfsTrip,
    RouteCategory,
)

LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# CONSTANTS
# -----------------------------------------------------------------------------

_TIME_RE: re.Pattern[str] = re.compile(r"^(?P<h>\d+):(?P<m>\d{2})(?::(?P<s>\d{2}))?$")

# Column kinds: "str", "float", or an int default
Schema = dict[str, Any]

ROUTE_SCHEMA: Schema = {
    "route_id": "str",
    "agency_id": "str",
    "route_short_name": "str",
    "route_long_name": "str",
    "route_type": 0,
    "route_url": "str",
    "route_color": "str",
    "route_text_color": "str",
}
STOP_SCHEMA: Schema = {
    "stop_id": "str",
    "stop_name": "str",
    "stop_url": "str",
    "stop_timezone": "str",
    "stop_lat": "float",
    "stop_lon": "float",
}
TRIP_SCHEMA: Schema = {
    "trip_id": "str",
    "route_id": "str",
    "service_id": "str",
    "trip_short_name": "str",
    "direction_id": 0,
    "shape_id": "str",
    "trip_headsign": "str",
}
STOP_TIME_SCHEMA: Schema = {
    "trip_id": "str",
    "stop_id": "str",
    "arrival_time": "str",
    "departure_time": "str",
    "stop_sequence": 0,
    "pickup_type": 0,
    "drop_off_type": 0,
    "timepoint": 1,
}
SHAPE_SCHEMA: Schema = {
    "shape_id": "str",
    "shape_pt_lat": "float",
    "shape_pt_lon": "float",
    "shape_pt_sequence": 0,
}
CALENDAR_SCHEMA: Schema = {
    "service_id": "str",
    "monday": 0,
    "tuesday": 0,
    "wednesday": 0,
    "thursday": 0,
    "friday": 0,
    "saturday": 0,
    "sunday": 0,
    "start_date": "str",
    "end_date": "str",
}
AGENCY_SCHEMA: Schema = {
    "agency_id": "str",
    "agency_name": "str",
    "agency_url": "str",
    "agency_timezone": "str",
    "agency_lang": "str",
}

# =============================================================================
# TABLE PARSING
# =============================================================================


def read_gtfs_table(text: str, file_name: str = "<memory>") -> pd.DataFrame:
    """Tokenize one GTFS file into an all-string DataFrame.

    Blank lines are skipped, a UTF-8 byte-order mark is dropped, and header
    names and values are stripped of surrounding whitespace. Quoted fields may
    contain commas. Rows with more fields than the header are truncated to the
    header width (logged); rows with fewer are padded with ``""``. A row with
    an unterminated quote is dropped with one warning naming its line; an
    unterminated quote in the header is removed instead.

    Args:
        text: File contents.
        file_name: Name used in log and error messages.

    Returns:
        DataFrame with one ``str`` column per header field. Empty or
        header-only input gives an empty frame.

    Raises:
        ValueError: The remaining text still cannot be tokenized.
    """
    numbered = [
        (number, line)
        for number, line in enumerate(text.lstrip("\ufeff").splitlines(), start=1)
        if line.strip()
    ]
    if len(numbered) < 2:
        return pd.DataFrame()

    header_number, header = numbered[0]
    if header.count('"') % 2:
        LOGGER.warning(
            "%s line %d: unterminated quote in header; quotes removed.", file_name, header_number
        )
        header = header.replace('"', "")
    # The python engine would fold everything after an open quote into one field
    lines = [header]
    for number, line in numbered[1:]:
        if line.count('"') % 2:
            LOGGER.warning("%s line %d: unterminated quote; row dropped.", file_name, number)
            continue
        lines.append(line)
    if len(lines) < 2:
        return pd.DataFrame()

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", pd.errors.ParserWarning)
            # index_col=False keeps a wide first row from becoming an index;
            # pandas then cuts every wide row to the header width
            df = pd.read_csv(
                io.StringIO("\n".join(lines)),
                dtype=str,
                keep_default_na=False,
                index_col=False,
                skipinitialspace=True,
                engine="python",
            )
    except pd.errors.ParserError as exc:
        raise ValueError(f"Parser error in '{file_name}': {exc}") from exc

    for caught_warning in caught:
        if issubclass(caught_warning.category, pd.errors.ParserWarning):
            LOGGER.warning("%s: rows wider than the header; extra fields dropped.", file_name)
        else:
            warnings.warn(caught_warning.message, caught_warning.category, stacklevel=2)

    df.columns = [str(col).strip() for col in df.columns]
    return df.fillna("").astype(str).apply(lambda col: col.str.strip())


def _coerce_frame(df: pd.DataFrame, schema: Schema) -> pd.DataFrame:
    """Select and convert the schema's columns; absent columns get defaults."""
    out: dict[str, pd.Series] = {}
    for column, kind in schema.items():
        raw = df[column] if column in df.columns else pd.Series("", index=df.index, dtype=str)
        if kind == "str":
            out[column] = raw
        elif kind == "float":
            out[column] = pd.to_numeric(raw, errors="coerce").astype(float)
        else:
            numeric = pd.to_numeric(raw, errors="coerce").replace([np.inf, -np.inf], np.nan)
            out[column] = numeric.fillna(kind).astype("int64")
    return pd.DataFrame(out, index=df.index)


def _map_rows(text: str, file_name: str, schema: Schema, row_type: type) -> list:
    df = read_gtfs_table(text, file_name)
    if df.empty:
        return []
    frame = _coerce_frame(df, schema)
    return [row_type(**record) for record in frame.to_dict("records")]


def parse_routes(text: str) -> list[GtfsRoute]:
    """Rows of routes.txt."""
    return _map_rows(text, "routes.txt", ROUTE_SCHEMA, GtfsRoute)


def parse_stops(text: str) -> list[GtfsStop]:
    """Rows of stops.txt."""
    return _map_rows(text, "stops.txt", STOP_SCHEMA, GtfsStop)


def parse_trips(text: str) -> list[GtfsTrip]:
    """Rows of trips.txt."""
    return _map_rows(text, "trips.txt", TRIP_SCHEMA, GtfsTrip)


def parse_stop_times(text: str) -> list[GtfsStopTime]:
    """Rows of stop_times.txt."""
    return _map_rows(text, "stop_times.txt", STOP_TIME_SCHEMA, GtfsStopTime)


def parse_shapes(text: str) -> list[GtfsShapePoint]:
    """Rows of shapes.txt."""
    return _map_rows(text, "shapes.txt", SHAPE_SCHEMA, GtfsShapePoint)


def parse_calendar(text: str) -> list[GtfsCalendar]:
    """Rows of calendar.txt."""
    return _map_rows(text, "calendar.txt", CALENDAR_SCHEMA, GtfsCalendar)


def parse_agencies(text: str) -> list[GtfsAgency]:
    """Rows of agency.txt."""
    return _map_rows(text, "agency.txt", AGENCY_SCHEMA, GtfsAgency)


PARSERS: dict[str, Callable[[str], list]] = {
    "routes.txt": parse_routes,
    "stops.txt": parse_stops,
    "trips.txt": parse_trips,
    "stop_times.txt": parse_stop_times,
    "shapes.txt": parse_shapes,
    "calendar.txt": parse_calendar,
    "agency.txt": parse_agencies,
}


def parse_route_categories(
    text: str, file_name: str = "route_categories.txt"
) -> dict[str, RouteCategory]:
    """Parse a route-category table.

    The route id is the first column and the category label the sixth,
    whatever the header calls them. Rows with fewer columns, an empty id or
    an empty label are skipped; an unknown label is skipped with a warning.

    Args:
        text: Raw table contents.
        file_name: Name used in log messages.

    Returns:
        Mapping of route id to category.
    """
    df = read_gtfs_table(text, file_name)
    if df.empty or df.shape[1] < 6:
        return {}

    categories: dict[str, RouteCategory] = {}
    for route_id, label in zip(df.iloc[:, 0], df.iloc[:, 5]):
        if not route_id or not label:
            continue
        try:
            categories[route_id] = RouteCategory(label)
        except ValueError:
            LOGGER.warning("Unknown route category '%s' for route %s", label, route_id)
    return categories


# =============================================================================
# GTFS TIMES
# =============================================================================


class ParsedGtfsTime(NamedTuple):
    """A GTFS clock time split into wall-clock parts and a day offset.

    ``"25:30:00"`` is 01:30 on the day after the service day.
    """

    hours: int  # 0-23
    minutes: int
    seconds: int
    day_offset: int
    total_minutes: int  # minutes since midnight of the service day

    @property
    def total_seconds(self) -> int:
        return self.total_minutes * 60 + self.seconds


def parse_gtfs_time(time_str: str) -> ParsedGtfsTime:
    """Parse an ``H:MM[:SS]`` time whose hours may exceed 23.

    Args:
        time_str: Time such as ``"14:30:00"`` or ``"25:30:00"``.

    Returns:
        The parsed time.

    Raises:
        ValueError: ``time_str`` is not a GTFS time.
    """
    match = _TIME_RE.match(time_str.strip()) if isinstance(time_str, str) else None
    if match is None:
        raise ValueError(f"Invalid GTFS time format: {time_str!r}")

    total_hours = int(match.group("h"))
    minutes = int(match.group("m"))
    seconds = int(match.group("s") or 0)
    day_offset, hours = divmod(total_hours, 24)
    return ParsedGtfsTime(
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        day_offset=day_offset,
        total_minutes=total_hours * 60 + minutes,
    )


@lru_cache(maxsize=None)
def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for an IANA name, or the fallback zone when blank or unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            LOGGER.warning("Unknown timezone '%s'; using %s.", name, FALLBACK_TIMEZONE)
    return ZoneInfo(FALLBACK_TIMEZONE)


def gtfs_time_to_datetime(
    base_date: dt.date, time_str: str, timezone: str | dt.tzinfo | None = None
) -> dt.datetime:
    """Anchor a GTFS time on a service date.

    The result is ``base_date`` plus the time's day offset, at the time's
    wall-clock hour, in ``timezone``.

    Args:
        base_date: Service day the trip starts on.
        time_str: GTFS time string.
        timezone: IANA name or tzinfo; blank means the fallback zone.

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: ``time_str`` is not a GTFS time.
    """
    parsed = parse_gtfs_time(time_str)
    tzinfo = timezone if isinstance(timezone, dt.tzinfo) else resolve_timezone(timezone)
    day = base_date + dt.timedelta(days=parsed.day_offset)
    return dt.datetime(
        day.year, day.month, day.day, parsed.hours, parsed.minutes, parsed.seconds, tzinfo=tzinfo
    )
