from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from pathlib import Path

import pytest

from amtrak_sunlight.config import LoadOptions
from amtrak_sunlight.feed_loader import DirectoryFeedSource
from amtrak_sunlight.models import (
    Direction,
    GtfsCatalog,
    OperatingDays,
    ProcessedStop,
    ProcessedTrip,
)
from amtrak_sunlight.pipeline import load_catalog

SAMPLE_DATA_PATH = Path(__file__).resolve().parent.parent / "sample_data" / "gtfs"

# A Wednesday, inside the sample calendar
TRAVEL_DATE = dt.date(2026, 6, 17)


def make_stop(
    stop_id: str,
    coordinates: tuple[float, float],
    arrival: str,
    departure: str | None = None,
    sequence: int = 1,
    timezone: str = "America/Chicago",
    day_offset: int | None = None,
) -> ProcessedStop:
    """Build a ProcessedStop; the day offset defaults to the arrival's."""
    if day_offset is None:
        day_offset = int(arrival.split(":")[0]) // 24
    return ProcessedStop(
        stop_id=stop_id,
        stop_name=f"Station {stop_id}",
        stop_sequence=sequence,
        coordinates=coordinates,
        timezone=timezone,
        arrival_time=arrival,
        departure_time=departure or arrival,
        day_offset=day_offset,
    )


def make_trip(
    trip_id: str,
    stops: Sequence[ProcessedStop],
    route_id: str = "R1",
    headsign: str = "",
    shape_id: str = "",
    direction: Direction = Direction.WESTBOUND,
) -> ProcessedTrip:
    """Build a daily ProcessedTrip valid through 2026-2027."""
    return ProcessedTrip(
        trip_id=trip_id,
        route_id=route_id,
        train_number=trip_id,
        headsign=headsign,
        direction=direction,
        shape_id=shape_id,
        stops=list(stops),
        operating_days=OperatingDays(*([True] * 7)),
        start_date="20260101",
        end_date="20271231",
    )


def trips_visiting(route_id: str, *stop_lists: Iterable[str]) -> list[ProcessedTrip]:
    """One trip per stop list; coordinates are arbitrary but distinct."""
    trips = []
    for n, stop_ids in enumerate(stop_lists):
        stops = [
            make_stop(sid, (40.0 + i, -90.0 - i), f"{10 + i:02d}:00:00", sequence=i + 1)
            for i, sid in enumerate(stop_ids)
        ]
        trips.append(make_trip(f"{route_id}-{n}", stops, route_id=route_id))
    return trips


@pytest.fixture
def three_stop_trip() -> ProcessedTrip:
    """A departs 10:00, B arrives 10:30 and leaves 10:35, C arrives 11:00."""
    return make_trip(
        "T100",
        [
            make_stop("A", (40.0, -90.0), "10:00:00", "10:00:00", sequence=1),
            make_stop("B", (40.0, -91.0), "10:30:00", "10:35:00", sequence=2),
            make_stop("C", (40.0, -92.0), "11:00:00", "11:00:00", sequence=3),
        ],
    )


@pytest.fixture
def write_gtfs(tmp_path: Path):
    """Write (name, contents) pairs into a fresh GTFS folder and return its path."""

    def _write(files: Iterable[tuple[str, str]]) -> Path:
        base = tmp_path / "gtfs"
        base.mkdir(exist_ok=True)
        for name, contents in files:
            (base / name).write_text(contents, encoding="utf-8")
        return base

    return _write


@pytest.fixture(scope="session")
def sample_catalog() -> GtfsCatalog:
    """Catalog built from sample_data/gtfs with default options."""
    return load_catalog(DirectoryFeedSource(SAMPLE_DATA_PATH), LoadOptions())
