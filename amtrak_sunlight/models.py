"""Data model for the Amtrak GTFS feed and everything derived from it.

Raw rows mirror the GTFS text files field for field. Processed entities are
what a load cycle hands to callers: routes, per-route trip schedules, and the
sunlight segments computed on demand for a trip and a travel date.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum

# (latitude, longitude) in decimal degrees
Coordinate = tuple[float, float]

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


# =============================================================================
# ENUMS
# =============================================================================


class DirectionAxis(str, Enum):
    """Primary axis of travel for a route or trip."""

    EAST_WEST = "east-west"
    NORTH_SOUTH = "north-south"


class Direction(str, Enum):
    """Direction of travel along an axis."""

    EASTBOUND = "eastbound"
    WESTBOUND = "westbound"
    NORTHBOUND = "northbound"
    SOUTHBOUND = "southbound"

    @property
    def axis(self) -> DirectionAxis:
        """Axis this direction lies on."""
        if self in (Direction.EASTBOUND, Direction.WESTBOUND):
            return DirectionAxis.EAST_WEST
        return DirectionAxis.NORTH_SOUTH


class SunlightPhase(str, Enum):
    """Sun phase at a place and instant."""

    DAY = "day"
    NIGHT = "night"
    DAWN = "dawn"
    DUSK = "dusk"


class RouteCategory(str, Enum):
    """Amtrak service family, used to group routes for display."""

    LONG_DISTANCE = "Long-Distance"
    STATE_SUPPORTED = "State-Supported"
    NORTHEAST_CORRIDOR = "Northeast Corridor"


# =============================================================================
# RAW GTFS ROWS
# =============================================================================


@dataclass(frozen=True)
class GtfsRoute:
    """Row of routes.txt."""

    route_id: str
    agency_id: str = ""
    route_short_name: str = ""
    route_long_name: str = ""
    route_type: int = 0
    route_url: str = ""
    route_color: str = ""
    route_text_color: str = ""


@dataclass(frozen=True)
class GtfsStop:
    """Row of stops.txt; stop_id is Amtrak's three-letter station code."""

    stop_id: str
    stop_name: str = ""
    stop_url: str = ""
    stop_timezone: str = ""
    stop_lat: float = float("nan")
    stop_lon: float = float("nan")

    @property
    def coordinates(self) -> Coordinate:
        return (self.stop_lat, self.stop_lon)


@dataclass(frozen=True)
class GtfsTrip:
    """Row of trips.txt.

    ``direction_id`` is carried for completeness only; its meaning differs
    from route to route in the Amtrak feed.
    """

    trip_id: str
    route_id: str = ""
    service_id: str = ""
    trip_short_name: str = ""
    direction_id: int = 0
    shape_id: str = ""
    trip_headsign: str = ""


@dataclass(frozen=True)
class GtfsStopTime:
    """Row of stop_times.txt. Times may run past 24:00:00."""

    trip_id: str
    stop_id: str = ""
    arrival_time: str = ""
    departure_time: str = ""
    stop_sequence: int = 0
    pickup_type: int = 0
    drop_off_type: int = 0
    timepoint: int = 1


@dataclass(frozen=True)
class GtfsShapePoint:
    """Row of shapes.txt."""

    shape_id: str
    shape_pt_lat: float = float("nan")
    shape_pt_lon: float = float("nan")
    shape_pt_sequence: int = 0


@dataclass(frozen=True)
class GtfsCalendar:
    """Row of calendar.txt; dates are inclusive YYYYMMDD strings."""

    service_id: str
    monday: int = 0
    tuesday: int = 0
    wednesday: int = 0
    thursday: int = 0
    friday: int = 0
    saturday: int = 0
    sunday: int = 0
    start_date: str = ""
    end_date: str = ""


@dataclass(frozen=True)
class GtfsAgency:
    """Row of agency.txt."""

    agency_id: str
    agency_name: str = ""
    agency_url: str = ""
    agency_timezone: str = ""
    agency_lang: str = ""


@dataclass
class GtfsFeed:
    """Every parsed file of one feed."""

    routes: list[GtfsRoute] = field(default_factory=list)
    stops: list[GtfsStop] = field(default_factory=list)
    trips: list[GtfsTrip] = field(default_factory=list)
    stop_times: list[GtfsStopTime] = field(default_factory=list)
    shapes: list[GtfsShapePoint] = field(default_factory=list)
    calendar: list[GtfsCalendar] = field(default_factory=list)
    agencies: list[GtfsAgency] = field(default_factory=list)


# =============================================================================
# PROCESSED ENTITIES
# =============================================================================


@dataclass(frozen=True)
class RouteShape:
    """Ordered path of one shape_id."""

    shape_id: str
    coordinates: list[Coordinate]


@dataclass(frozen=True)
class ProcessedStop:
    """One scheduled call of a trip, joined with its station."""

    stop_id: str
    stop_name: str
    stop_sequence: int
    coordinates: Coordinate
    timezone: str
    arrival_time: str
    departure_time: str
    day_offset: int  # days past the trip's first service day, from arrival_time


@dataclass(frozen=True)
class OperatingDays:
    """Weekday flags from calendar.txt."""

    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False

    @classmethod
    def from_calendar(cls, calendar: GtfsCalendar) -> OperatingDays:
        return cls(**{name: getattr(calendar, name) == 1 for name in WEEKDAY_NAMES})

    def runs_on(self, day: dt.date) -> bool:
        """Whether the service runs on the weekday of ``day``."""
        return bool(getattr(self, WEEKDAY_NAMES[day.weekday()]))


@dataclass(frozen=True)
class ProcessedTrip:
    """Complete schedule of one trip.

    Attributes:
        trip_id: From trips.txt.
        route_id: Owning route; rewritten when routes are merged.
        train_number: trip_short_name, e.g. ``"5"``.
        headsign: Rider-facing destination text.
        direction: Direction resolved from the trip's own path.
        shape_id: Shape of the trip, possibly empty.
        stops: Calls ordered by stop_sequence; never empty.
        operating_days: Weekday flags of the trip's service.
        start_date: First service day (YYYYMMDD).
        end_date: Last service day (YYYYMMDD).
    """

    trip_id: str
    route_id: str
    train_number: str
    headsign: str
    direction: Direction
    shape_id: str
    stops: list[ProcessedStop]
    operating_days: OperatingDays
    start_date: str
    end_date: str

    def operates_on(self, day: dt.date) -> bool:
        """Whether the trip runs on ``day`` (weekday flag and validity window)."""
        if not self.operating_days.runs_on(day):
            return False
        stamp = day.strftime("%Y%m%d")
        return self.start_date <= stamp <= self.end_date


@dataclass(frozen=True)
class ProcessedRoute:
    """Route as presented to callers, possibly the union of merged routes."""

    route_id: str
    route_name: str
    route_numbers: list[str]
    direction_axis: DirectionAxis
    direction_options: list[Direction]
    shape_ids: list[str]
    color: str
    url: str
    category: RouteCategory | None = None


@dataclass(frozen=True)
class TimePoint:
    """A path coordinate and the instant the train passes it."""

    coordinate: Coordinate
    instant: dt.datetime


@dataclass(frozen=True)
class SunlightSegment:
    """Stretch of path colored by the sun at its midpoint."""

    start_coord: Coordinate
    end_coord: Coordinate
    sunlight_phase: SunlightPhase
    sunlight_intensity: float  # 0 (dark) to 1 (sun at zenith)


@dataclass(frozen=True)
class SunTimes:
    """Solar events for one place and local solar day; None when they do not occur."""

    night_end: dt.datetime | None
    sunrise: dt.datetime | None
    solar_noon: dt.datetime
    sunset: dt.datetime | None
    night: dt.datetime | None


@dataclass(frozen=True)
class SunlightInfo:
    """Phase, intensity and solar events at a place and instant."""

    phase: SunlightPhase
    intensity: float
    elevation: float
    sun_times: SunTimes


@dataclass(frozen=True)
class TrainPosition:
    """Interpolated train location and the stations it lies between."""

    lat: float
    lon: float
    nearest_stops: tuple[str, str]


@dataclass
class GtfsCatalog:
    """Result of one load cycle.

    Attributes:
        routes: Processed (and merged) routes.
        schedules: Trips keyed by route id.
        stops: Stations keyed by stop id.
        shapes: Shapes keyed by shape id; empty when shapes were not loaded.
        warnings: Number of warnings raised while validating the catalog.
    """

    routes: list[ProcessedRoute]
    schedules: dict[str, list[ProcessedTrip]]
    stops: dict[str, GtfsStop]
    shapes: dict[str, RouteShape] = field(default_factory=dict)
    warnings: int = 0
