"""One load cycle: parsed feed in, self-contained catalog out.

Every call builds fresh indices and a fresh :class:`GtfsCatalog`; nothing is
shared between cycles, so a failed load is retried by calling again.
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from collections.abc import Iterable, Mapping

from amtrak_sunlight.config import (
    DEFAULT_MERGE_GROUPS,
    DEFAULT_SAMPLE_POINTS,
    LoadOptions,
    MergeGroup,
)
from amtrak_sunlight.feed_loader import FeedSource, load_all_gtfs_data, load_route_categories
from amtrak_sunlight.indexer import build_feed_index
from amtrak_sunlight.models import (
    GtfsCatalog,
    GtfsFeed,
    ProcessedTrip,
    RouteCategory,
    RouteShape,
    SunlightSegment,
)
from amtrak_sunlight.processor import (
    find_shared_stop_coordinates,
    process_routes,
    process_trips,
    validate_processed_routes,
    validate_processed_trips,
)
from amtrak_sunlight.route_merger import apply_route_merges, find_best_shape_id
from amtrak_sunlight.simplify import simplify_shape
from amtrak_sunlight.sunlight import calculate_route_segment_colors

LOGGER = logging.getLogger(__name__)


def simplify_shapes(
    shapes: Mapping[str, RouteShape], tolerance: float | None
) -> dict[str, RouteShape]:
    """Douglas-Peucker every shape; a falsy tolerance copies them unchanged."""
    if not tolerance:
        return dict(shapes)

    simplified = {}
    before = after = 0
    for shape_id, shape in shapes.items():
        coords = simplify_shape(shape.coordinates, tolerance)
        simplified[shape_id] = RouteShape(shape_id=shape_id, coordinates=coords)
        before += len(shape.coordinates)
        after += len(coords)
    LOGGER.info("Simplified %d shapes: %d -> %d points.", len(shapes), before, after)
    return simplified


def build_catalog(
    feed: GtfsFeed,
    options: LoadOptions | None = None,
    merge_groups: Iterable[MergeGroup] = DEFAULT_MERGE_GROUPS,
    categories: Mapping[str, RouteCategory] | None = None,
) -> GtfsCatalog:
    """Index, process, simplify, merge and validate a parsed feed.

    Args:
        feed: Parsed (and usually filtered) feed.
        options: Load switches; only the simplification tolerance is used here.
        merge_groups: Route merge table.
        categories: Route category table; defaults to the packaged table
            read by :func:`load_route_categories`.

    Returns:
        The catalog, whose ``warnings`` counts the validation warnings.
    """
    options = options or LoadOptions()
    categories = load_route_categories() if categories is None else categories

    index = build_feed_index(feed)
    routes = process_routes(feed.routes, index, categories)
    schedules = process_trips(feed.trips, index)
    shapes = simplify_shapes(index.shapes, options.shape_simplify_tolerance)
    routes, schedules = apply_route_merges(routes, schedules, merge_groups)

    warnings = validate_processed_routes(routes)
    warnings += validate_processed_trips(schedules)
    warnings += len(find_shared_stop_coordinates(index.stops.values()))

    return GtfsCatalog(
        routes=routes,
        schedules=schedules,
        stops=index.stops,
        shapes=shapes,
        warnings=warnings,
    )


def load_catalog(
    source: FeedSource,
    options: LoadOptions | None = None,
    merge_groups: Iterable[MergeGroup] = DEFAULT_MERGE_GROUPS,
    categories: Mapping[str, RouteCategory] | None = None,
) -> GtfsCatalog:
    """Load a feed from ``source`` and build its catalog.

    Raises:
        FeedLoadError: The feed could not be read.
        ValueError: A feed file could not be tokenized.
    """
    started = time.perf_counter()
    feed = load_all_gtfs_data(source, options)
    catalog = build_catalog(feed, options, merge_groups, categories)
    LOGGER.info(
        "Catalog ready in %.2fs: %d routes, %d stops.",
        time.perf_counter() - started,
        len(catalog.routes),
        len(catalog.stops),
    )
    return catalog


def trip_shape(catalog: GtfsCatalog, trip: ProcessedTrip) -> RouteShape | None:
    """The trip's own loaded shape, else the first loaded shape of a sibling on its route."""
    if trip.shape_id in catalog.shapes:
        return catalog.shapes[trip.shape_id]
    siblings = catalog.schedules.get(trip.route_id, [])
    shape_id = find_best_shape_id(t for t in siblings if t.shape_id in catalog.shapes)
    return catalog.shapes[shape_id] if shape_id else None


def sunlight_for_trip(
    catalog: GtfsCatalog,
    trip: ProcessedTrip,
    travel_date: dt.date,
    sample_points: int = DEFAULT_SAMPLE_POINTS,
) -> list[SunlightSegment]:
    """Sunlight segments for a catalog trip, along a route shape when one was loaded."""
    shape = trip_shape(catalog, trip)
    coords = shape.coordinates if shape is not None else None
    return calculate_route_segment_colors(trip, travel_date, coords, sample_points)
