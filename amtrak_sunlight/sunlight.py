"""Color a trip's path by the sunlight the train sees along it.

The engine anchors a trip's clock times on a travel date, spreads those
instants over the path (dense shape geometry when available, otherwise the
straight line between stations), resamples the path at even distances and
evaluates the sun at the midpoint of every resampled segment.

Solar geometry comes from :mod:`astral`. Sun events are computed for the
local *mean solar* day of the instant (UTC offset of four minutes per degree
of longitude), which keeps the sunrise and sunset that bound an instant on
the same day as the instant regardless of the station's civil timezone.
"""

from __future__ import annotations

import datetime as dt
import logging
from bisect import bisect_left
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np
from astral import Observer
from astral.sun import dawn, dusk, elevation, noon, sunrise, sunset

from amtrak_sunlight.config import (
    ASTRONOMICAL_DEPRESSION,
    DEFAULT_SAMPLE_POINTS,
    POSITION_MATCH_SECONDS,
)
from amtrak_sunlight.feed_parser import gtfs_time_to_datetime, resolve_timezone
from amtrak_sunlight.geo import (
    EARTH_RADIUS_KM,
    cumulative_distances,
    interpolate_coordinate,
    interpolate_instant,
)
from amtrak_sunlight.models import (
    Coordinate,
    ProcessedTrip,
    SunlightInfo,
    SunlightPhase,
    SunlightSegment,
    SunTimes,
    TimePoint,
    TrainPosition,
)

LOGGER = logging.getLogger(__name__)

UTC = dt.timezone.utc

# =============================================================================
# TIME ANCHORING
# =============================================================================


class AnchoredStop(NamedTuple):
    """Absolute (UTC) arrival and departure of one stop on a travel date."""

    arrival: dt.datetime
    departure: dt.datetime


def trip_timezone(trip: ProcessedTrip) -> dt.tzinfo:
    """Timezone of the trip's first stop, or the fallback zone."""
    first = trip.stops[0].timezone if trip.stops else ""
    return resolve_timezone(first or None)


def anchor_stop_times(trip: ProcessedTrip, travel_date: dt.date) -> list[AnchoredStop]:
    """Turn each stop's clock times into absolute instants.

    Each time is placed on ``travel_date`` plus its own day offset, at its
    wall-clock hour, in the stop's timezone (the first stop's zone when the
    stop has none), and converted to UTC.
    """
    default_zone = trip.stops[0].timezone if trip.stops else ""
    anchored = []
    for stop in trip.stops:
        zone = resolve_timezone(stop.timezone or default_zone or None)
        arrival = gtfs_time_to_datetime(travel_date, stop.arrival_time, zone)
        departure = gtfs_time_to_datetime(travel_date, stop.departure_time, zone)
        anchored.append(AnchoredStop(arrival.astimezone(UTC), departure.astimezone(UTC)))
    return anchored


def _as_aware(instant: dt.datetime, zone: dt.tzinfo = UTC) -> dt.datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=zone)
    return instant


# =============================================================================
# PATH TIMING
# =============================================================================


def _nearest_path_index(path: np.ndarray, coord: Coordinate) -> int:
    """Index of the path point closest to ``coord`` (first one on ties)."""
    lat1, lon1 = np.radians(coord[0]), np.radians(coord[1])
    lat2 = np.radians(path[:, 0])
    lon2 = np.radians(path[:, 1])
    a = (
        np.sin((lat2 - lat1) / 2) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    )
    distances = EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return int(np.argmin(distances))


def map_shape_to_schedule(
    shape_coords: Sequence[Coordinate], trip: ProcessedTrip, travel_date: dt.date
) -> list[TimePoint]:
    """Assign an instant to every point of a dense path.

    Every stop is pinned to its nearest path point. A path point between two
    consecutive pinned stops gets a time interpolated by distance along the
    path from the earlier stop's departure to the later stop's arrival; the
    path may run in either direction relative to the trip.
    Points that fall outside every stop pair are interpolated over the whole
    trip and clamped to its first departure and last arrival.

    Returns:
        One :class:`TimePoint` per path point, or ``[]`` when the path is
        empty or the trip has fewer than two stops.
    """
    if not shape_coords or len(trip.stops) < 2:
        return []

    anchored = anchor_stop_times(trip, travel_date)
    path = np.asarray(shape_coords, dtype=float)
    path_distances = cumulative_distances(shape_coords)
    stop_distances = [
        path_distances[_nearest_path_index(path, stop.coordinates)] for stop in trip.stops
    ]

    last = len(trip.stops) - 1
    time_points = []
    for coord, distance in zip(shape_coords, path_distances):
        before, after = 0, last
        for i in range(last):
            low, high = sorted((stop_distances[i], stop_distances[i + 1]))
            if low <= distance <= high:
                before, after = i, i + 1
                break

        # Negative spans come from shapes drawn against the direction of travel
        span = stop_distances[after] - stop_distances[before]
        fraction = (distance - stop_distances[before]) / span if span != 0 else 0.0
        fraction = min(max(fraction, 0.0), 1.0)
        instant = interpolate_instant(
            anchored[before].departure, anchored[after].arrival, fraction
        )
        time_points.append(TimePoint(coordinate=tuple(coord), instant=instant))
    return time_points


def stop_time_points(trip: ProcessedTrip, travel_date: dt.date) -> list[TimePoint]:
    """Stations as the path: departure instants, arrival at the last stop."""
    anchored = anchor_stop_times(trip, travel_date)
    last = len(trip.stops) - 1
    return [
        TimePoint(
            coordinate=stop.coordinates,
            instant=times.arrival if i == last else times.departure,
        )
        for i, (stop, times) in enumerate(zip(trip.stops, anchored))
    ]


def resample_path(time_points: Sequence[TimePoint], sample_points: int) -> list[TimePoint]:
    """Pick evenly spaced points (by great-circle distance) along a timed path.

    ``min(sample_points, len(time_points))`` points are returned, never fewer
    than two; coordinate and instant are both interpolated linearly between
    the bracketing path points. A path of zero length repeats its first
    point.
    """
    if len(time_points) < 2:
        return list(time_points)

    coords = [tp.coordinate for tp in time_points]
    distances = cumulative_distances(coords)
    total = distances[-1]
    count = max(2, min(sample_points, len(coords)))

    sampled = []
    for i in range(count):
        target = i / (count - 1) * total
        after = min(max(bisect_left(distances, target), 1), len(coords) - 1)
        before = after - 1
        segment = distances[after] - distances[before]
        fraction = (target - distances[before]) / segment if segment > 0 else 0.0
        sampled.append(
            TimePoint(
                coordinate=interpolate_coordinate(coords[before], coords[after], fraction),
                instant=interpolate_instant(
                    time_points[before].instant, time_points[after].instant, fraction
                ),
            )
        )
    return sampled


# =============================================================================
# SUN POSITION
# =============================================================================


def _solar_date(coord: Coordinate, instant: dt.datetime) -> tuple[dt.date, dt.tzinfo]:
    """Local mean-solar date of ``instant`` and the matching fixed-offset zone."""
    zone = dt.timezone(dt.timedelta(minutes=round(coord[1] * 4)))
    return instant.astimezone(zone).date(), zone


def _event(func, observer: Observer, day: dt.date, zone: dt.tzinfo, **kwargs):
    """Sun event, or None when the sun never reaches it that day."""
    try:
        return func(observer, date=day, tzinfo=zone, **kwargs)
    except ValueError:
        return None


def get_sun_times(coord: Coordinate, instant: dt.datetime) -> SunTimes:
    """Sun events of the local solar day containing ``instant``.

    Naive instants are taken as UTC.
    """
    instant = _as_aware(instant)
    observer = Observer(latitude=coord[0], longitude=coord[1])
    day, zone = _solar_date(coord, instant)
    return SunTimes(
        night_end=_event(dawn, observer, day, zone, depression=ASTRONOMICAL_DEPRESSION),
        sunrise=_event(sunrise, observer, day, zone),
        solar_noon=noon(observer, date=day, tzinfo=zone),
        sunset=_event(sunset, observer, day, zone),
        night=_event(dusk, observer, day, zone, depression=ASTRONOMICAL_DEPRESSION),
    )


def solar_elevation(coord: Coordinate, instant: dt.datetime) -> float:
    """Geometric altitude of the sun in degrees (no refraction)."""
    observer = Observer(latitude=coord[0], longitude=coord[1])
    return elevation(observer, _as_aware(instant), with_refraction=False)


def classify_sunlight_phase(
    instant: dt.datetime, sun_times: SunTimes, elevation_deg: float
) -> SunlightPhase:
    """Phase of ``instant`` given the day's sun events.

    ``[night_end, sunrise)`` is dawn, ``[sunrise, sunset)`` day and
    ``[sunset, night)`` dusk. Without astronomical night (a missing
    ``night_end`` or ``night``), the whole stretch before sunrise counts as
    dawn and after sunset as dusk. Without a sunrise or sunset (polar day or
    night) the phase comes from the elevation alone.
    """
    instant = _as_aware(instant)
    rise, fall = sun_times.sunrise, sun_times.sunset

    if rise is None or fall is None:
        if elevation_deg >= 0:
            return SunlightPhase.DAY
        if elevation_deg <= -ASTRONOMICAL_DEPRESSION:
            return SunlightPhase.NIGHT
        if instant < sun_times.solar_noon:
            return SunlightPhase.DAWN
        return SunlightPhase.DUSK

    if rise <= instant < fall:
        return SunlightPhase.DAY
    if instant < rise:
        if sun_times.night_end is None or instant >= sun_times.night_end:
            return SunlightPhase.DAWN
        return SunlightPhase.NIGHT
    if sun_times.night is None or instant < sun_times.night:
        return SunlightPhase.DUSK
    return SunlightPhase.NIGHT


def calculate_sunlight_phase(coord: Coordinate, instant: dt.datetime) -> SunlightPhase:
    """Day, night, dawn or dusk at a place and instant."""
    return classify_sunlight_phase(
        instant, get_sun_times(coord, instant), solar_elevation(coord, instant)
    )


def intensity_from_elevation(elevation_deg: float) -> float:
    """Map solar altitude to a brightness in ``[0, 1]``.

    ``0..90`` degrees maps onto ``0.5..1.0``, the twilight band ``-18..0``
    onto ``0..0.5``, and anything at or below ``-18`` is 0.
    """
    if elevation_deg >= 0:
        return 0.5 + 0.5 * min(elevation_deg, 90.0) / 90.0
    if elevation_deg <= -ASTRONOMICAL_DEPRESSION:
        return 0.0
    return (elevation_deg + ASTRONOMICAL_DEPRESSION) / ASTRONOMICAL_DEPRESSION * 0.5


def calculate_sunlight_intensity(coord: Coordinate, instant: dt.datetime) -> float:
    """Brightness in ``[0, 1]`` at a place and instant."""
    return intensity_from_elevation(solar_elevation(coord, instant))


def get_sunlight_info(coord: Coordinate, instant: dt.datetime) -> SunlightInfo:
    """Phase, intensity, elevation and sun events at a place and instant."""
    sun_times = get_sun_times(coord, instant)
    altitude = solar_elevation(coord, instant)
    return SunlightInfo(
        phase=classify_sunlight_phase(instant, sun_times, altitude),
        intensity=intensity_from_elevation(altitude),
        elevation=altitude,
        sun_times=sun_times,
    )


# =============================================================================
# SEGMENTS
# =============================================================================


def calculate_route_segment_colors(
    trip: ProcessedTrip,
    travel_date: dt.date,
    shape_coords: Sequence[Coordinate] | None = None,
    sample_points: int = DEFAULT_SAMPLE_POINTS,
) -> list[SunlightSegment]:
    """Sunlight segments along a trip for one travel date.

    Args:
        trip: Trip schedule.
        travel_date: Date the trip's first stop departs (day offset 0).
        shape_coords: Dense path; when missing or shorter than two points the
            stations themselves form the path.
        sample_points: Number of evenly spaced samples along the path.

    Returns:
        ``N - 1`` segments for ``N`` samples, each colored by the sun at its
        midpoint place and time. A trip with fewer than two stops gives
        ``[]`` and a warning.
    """
    if len(trip.stops) < 2:
        LOGGER.warning("Trip %s has fewer than 2 stops; no sunlight segments.", trip.trip_id)
        return []

    if shape_coords is not None and len(shape_coords) >= 2:
        time_points = map_shape_to_schedule(shape_coords, trip, travel_date)
    else:
        time_points = stop_time_points(trip, travel_date)

    sampled = resample_path(time_points, sample_points)
    segments = []
    for start, end in zip(sampled, sampled[1:]):
        mid_coord = interpolate_coordinate(start.coordinate, end.coordinate, 0.5)
        mid_instant = interpolate_instant(start.instant, end.instant, 0.5)
        info = get_sunlight_info(mid_coord, mid_instant)
        segments.append(
            SunlightSegment(
                start_coord=start.coordinate,
                end_coord=end.coordinate,
                sunlight_phase=info.phase,
                sunlight_intensity=info.intensity,
            )
        )
    return segments


# =============================================================================
# TRAIN POSITION
# =============================================================================


def _position_at_stop(trip: ProcessedTrip, i: int) -> TrainPosition:
    stop = trip.stops[i]
    next_name = trip.stops[i + 1].stop_name if i + 1 < len(trip.stops) else stop.stop_name
    lat, lon = stop.coordinates
    return TrainPosition(lat=lat, lon=lon, nearest_stops=(stop.stop_name, next_name))


def get_train_position_at_time(
    trip: ProcessedTrip, target: dt.datetime, travel_date: dt.date
) -> TrainPosition | None:
    """Where the train is at ``target`` on a given travel date.

    The train moves in a straight line from a stop's departure to the next
    stop's arrival, at constant speed; a zero-length window puts it at the
    earlier stop. During a dwell it sits at the station, and a target within
    ``POSITION_MATCH_SECONDS`` of a stop's departure snaps to that stop.

    Args:
        trip: Trip schedule.
        target: Instant to locate; a naive value is read in the first stop's
            timezone.
        travel_date: Date of day offset 0.

    Returns:
        The position with the names of the two stops it lies between, or
        None before the first departure, after the last arrival or for trips
        with fewer than two stops.
    """
    stops = trip.stops
    if len(stops) < 2:
        return None

    target = _as_aware(target, trip_timezone(trip))
    anchored = anchor_stop_times(trip, travel_date)
    if target < anchored[0].departure or target > anchored[-1].arrival:
        return None

    for i in range(len(stops) - 1):
        start = anchored[i].departure
        end = anchored[i + 1].arrival
        if start <= target <= end:
            total = (end - start).total_seconds()
            fraction = (target - start).total_seconds() / total if total > 0 else 0.0
            lat, lon = interpolate_coordinate(
                stops[i].coordinates, stops[i + 1].coordinates, fraction
            )
            return TrainPosition(
                lat=lat, lon=lon, nearest_stops=(stops[i].stop_name, stops[i + 1].stop_name)
            )

    for i, times in enumerate(anchored):
        if times.arrival <= target <= times.departure:
            return _position_at_stop(trip, i)

    window = dt.timedelta(seconds=POSITION_MATCH_SECONDS)
    for i, times in enumerate(anchored):
        if abs(target - times.departure) < window:
            return _position_at_stop(trip, i)
    return None
