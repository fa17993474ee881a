"""Amtrak GTFS processing and sunlight coloring of train routes."""

from amtrak_sunlight.config import DEFAULT_MERGE_GROUPS, LoadOptions, MergeGroup
from amtrak_sunlight.feed_loader import (
    FeedLoadError,
    load_all_gtfs_data,
    load_route_categories,
    open_feed_source,
)
from amtrak_sunlight.models import (
    Direction,
    DirectionAxis,
    GtfsCatalog,
    ProcessedRoute,
    ProcessedTrip,
    SunlightPhase,
    SunlightSegment,
)
from amtrak_sunlight.pipeline import build_catalog, load_catalog, sunlight_for_trip
from amtrak_sunlight.sunlight import calculate_route_segment_colors, get_train_position_at_time

__all__ = [
    "DEFAULT_MERGE_GROUPS",
    "Direction",
    "DirectionAxis",
    "FeedLoadError",
    "GtfsCatalog",
    "LoadOptions",
    "MergeGroup",
    "ProcessedRoute",
    "ProcessedTrip",
    "SunlightPhase",
    "SunlightSegment",
    "build_catalog",
    "calculate_route_segment_colors",
    "get_train_position_at_time",
    "load_all_gtfs_data",
    "load_catalog",
    "load_route_categories",
    "open_feed_source",
]
