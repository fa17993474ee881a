"""Load the Amtrak GTFS feed from a folder, a zip archive or a URL.

The loader is the only place that touches I/O. A *feed source* hands back the
raw text of one file; :func:`load_all_gtfs_data` reads the files in
dependency order (trips after routes, stop times and shapes after trips) so
the large files can be filtered down to the services that were kept.

Any I/O problem (missing required file, unreadable archive, HTTP error) is
raised as :class:`FeedLoadError`; the caller may retry by running the whole
load again.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
import time
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Protocol

import requests

from amtrak_sunlight.config import (
    PRIMARY_AGENCY_ID,
    RAIL_ROUTE_TYPE,
    REQUIRED_FILES,
    ROUTE_CATEGORIES_PATH,
    LoadOptions,
)
from amtrak_sunlight.feed_parser import PARSERS, parse_route_categories
from amtrak_sunlight.models import (
    WEEKDAY_NAMES,
    GtfsCalendar,
    GtfsFeed,
    GtfsRoute,
    GtfsTrip,
    RouteCategory,
)

LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT_S = 120


class FeedLoadError(RuntimeError):
    """A feed file could not be fetched or read."""


class FeedSource(Protocol):
    """Supplier of raw GTFS file text."""

    def has_file(self, file_name: str) -> bool: ...

    def read_text(self, file_name: str) -> str: ...


# =============================================================================
# FEED SOURCES
# =============================================================================


class DirectoryFeedSource:
    """GTFS files unpacked in a folder."""

    def __init__(self, folder: str | os.PathLike[str]):
        self.folder = Path(folder)
        if not self.folder.is_dir():
            raise FeedLoadError(f"The directory '{self.folder}' does not exist.")

    def has_file(self, file_name: str) -> bool:
        return (self.folder / file_name).is_file()

    def read_text(self, file_name: str) -> str:
        path = self.folder / file_name
        try:
            return path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            raise FeedLoadError(f"Failed to load {file_name} from '{self.folder}': {exc}") from exc


class ZipFeedSource:
    """GTFS files inside a zip archive, given as a path or as bytes.

    Members may sit in a sub-folder of the archive; they are matched by base
    name.
    """

    def __init__(self, archive: str | os.PathLike[str] | bytes):
        label = "<bytes>" if isinstance(archive, bytes) else str(archive)
        try:
            handle = BytesIO(archive) if isinstance(archive, bytes) else archive
            with zipfile.ZipFile(handle) as zf:
                self._members = {
                    Path(name).name: zf.read(name)
                    for name in zf.namelist()
                    if name.endswith(".txt")
                }
        except (OSError, zipfile.BadZipFile) as exc:
            raise FeedLoadError(f"Could not open GTFS archive '{label}': {exc}") from exc
        self.label = label

    def has_file(self, file_name: str) -> bool:
        return file_name in self._members

    def read_text(self, file_name: str) -> str:
        if file_name not in self._members:
            raise FeedLoadError(f"Failed to load {file_name}: not in archive '{self.label}'")
        return self._members[file_name].decode("utf-8-sig")


class UrlFeedSource:
    """GTFS files served individually under a base URL."""

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT_S,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def has_file(self, file_name: str) -> bool:
        try:
            response = self.session.head(f"{self.base_url}/{file_name}", timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise FeedLoadError(f"Failed to check {file_name}: {exc}") from exc
        return response.ok

    def read_text(self, file_name: str) -> str:
        url = f"{self.base_url}/{file_name}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise FeedLoadError(f"Failed to load {file_name}: {exc.response.reason}") from exc
        except requests.exceptions.RequestException as exc:
            raise FeedLoadError(f"Failed to load {file_name}: {exc}") from exc
        response.encoding = response.encoding or "utf-8"
        return response.text.lstrip("\ufeff")


def download_gtfs_zip(url: str, timeout: float = REQUEST_TIMEOUT_S) -> ZipFeedSource:
    """Fetch a zipped feed into memory."""
    LOGGER.info("Downloading GTFS archive from %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as exc:
        raise FeedLoadError(f"Failed to download GTFS archive from {url}: {exc}") from exc
    LOGGER.info("Downloaded %.2f MB", len(response.content) / 1024 / 1024)
    return ZipFeedSource(response.content)


def open_feed_source(location: str | os.PathLike[str]) -> FeedSource:
    """Pick a source for a folder, a ``.zip`` path or an ``http(s)`` URL."""
    text = str(location)
    if text.startswith(("http://", "https://")):
        if text.lower().endswith(".zip"):
            return download_gtfs_zip(text)
        return UrlFeedSource(text)
    if text.lower().endswith(".zip"):
        return ZipFeedSource(text)
    return DirectoryFeedSource(text)


# =============================================================================
# LOADING
# =============================================================================


def _read_file(source: FeedSource, file_name: str, required: bool) -> list:
    if not required and not source.has_file(file_name):
        LOGGER.warning("Optional file %s not found; continuing without it.", file_name)
        return []
    rows = PARSERS[file_name](source.read_text(file_name))
    LOGGER.info("Loaded %s (%d records).", file_name, len(rows))
    return rows


def filter_primary_agency_trains(routes: list[GtfsRoute]) -> list[GtfsRoute]:
    """Keep rail routes run by the primary agency."""
    return [
        route
        for route in routes
        if route.route_type == RAIL_ROUTE_TYPE and route.agency_id == PRIMARY_AGENCY_ID
    ]


def load_all_gtfs_data(source: FeedSource, options: LoadOptions | None = None) -> GtfsFeed:
    """Read and parse every file of the feed.

    Args:
        source: Where the files come from.
        options: Load switches; defaults to :class:`LoadOptions`.

    Returns:
        The parsed feed, filtered per ``options``.

    Raises:
        FeedLoadError: A required file is missing or cannot be read.
        ValueError: A file cannot be tokenized.
    """
    options = options or LoadOptions()
    started = time.perf_counter()

    missing = [name for name in REQUIRED_FILES if not source.has_file(name)]
    if options.include_stop_times and not source.has_file("stop_times.txt"):
        missing.append("stop_times.txt")
    if missing:
        raise FeedLoadError(f"Missing GTFS files: {', '.join(missing)}")

    # No ordering among these four
    routes = _read_file(source, "routes.txt", required=True)
    stops = _read_file(source, "stops.txt", required=True)
    agencies = _read_file(source, "agency.txt", required=False)
    calendar = _read_file(source, "calendar.txt", required=True)

    if options.filter_to_primary_agency_trains_only:
        routes = filter_primary_agency_trains(routes)
        LOGGER.info("Kept %d primary-agency rail routes.", len(routes))

    trips = _read_file(source, "trips.txt", required=True)
    if options.filter_to_primary_agency_trains_only:
        route_ids = {route.route_id for route in routes}
        trips = [trip for trip in trips if trip.route_id in route_ids]
        LOGGER.info("Kept %d trips on those routes.", len(trips))

    stop_times = []
    if options.include_stop_times:
        trip_ids = {trip.trip_id for trip in trips}
        stop_times = [
            st
            for st in _read_file(source, "stop_times.txt", required=True)
            if st.trip_id in trip_ids
        ]

    shapes = []
    if options.include_dense_shapes:
        shape_ids = {trip.shape_id for trip in trips if trip.shape_id}
        shapes = [
            point
            for point in _read_file(source, "shapes.txt", required=False)
            if point.shape_id in shape_ids
        ]
        LOGGER.info("Kept %d shape points.", len(shapes))
    else:
        LOGGER.info("Skipping shapes.txt (include_dense_shapes is off).")

    LOGGER.info("GTFS data loaded in %.2fs", time.perf_counter() - started)
    return GtfsFeed(
        routes=routes,
        stops=stops,
        trips=trips,
        stop_times=stop_times,
        shapes=shapes,
        calendar=calendar,
        agencies=agencies,
    )


def load_route_categories(
    path: str | os.PathLike[str] = ROUTE_CATEGORIES_PATH,
) -> dict[str, RouteCategory]:
    """Read the route category table; defaults to the one shipped with the package.

    Raises:
        FeedLoadError: The file cannot be read.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise FeedLoadError(f"Failed to load route categories from '{path}': {exc}") from exc
    categories = parse_route_categories(text, path.name)
    LOGGER.info("Loaded %d route categories from %s", len(categories), path.name)
    return categories


# =============================================================================
# SERVICE DATES
# =============================================================================


def service_operates_on_date(calendar: GtfsCalendar, day: dt.date) -> bool:
    """Whether a calendar entry runs on ``day``.

    ``day`` must fall inside ``start_date``..``end_date`` (inclusive) and its
    weekday flag must be set.
    """
    stamp = day.strftime("%Y%m%d")
    if stamp < calendar.start_date or stamp > calendar.end_date:
        return False
    return getattr(calendar, WEEKDAY_NAMES[day.weekday()]) == 1


def get_trips_for_date(
    trips: list[GtfsTrip], calendar: list[GtfsCalendar], day: dt.date
) -> list[GtfsTrip]:
    """Trips whose service runs on ``day``."""
    active = {cal.service_id for cal in calendar if service_operates_on_date(cal, day)}
    return [trip for trip in trips if trip.service_id in active]
