"""Static configuration for loading and processing the Amtrak GTFS feed.

Everything a load cycle consumes besides the feed itself lives here: the
agency filter, sampling and simplification defaults, the merge-group table
for routes that the feed lists twice, and where the route category table ships.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

# =============================================================================
# CONFIGURATION
# =============================================================================

# Amtrak's agency_id in the national feed; route_type 2 is rail (3 is bus).
PRIMARY_AGENCY_ID: Final[str] = "51"
RAIL_ROUTE_TYPE: Final[int] = 2

# Points sampled along a path when coloring it by sunlight.
DEFAULT_SAMPLE_POINTS: Final[int] = 100

# Douglas-Peucker tolerance in degrees (~100 m of latitude).
SHAPE_SIMPLIFY_TOLERANCE: Final[float] = 0.001

# A span must reach this fraction of the other span to confirm the bearing.
AXIS_SPAN_RATIO: Final[float] = 0.7

# A position query this close to a stop's own time snaps to the stop.
POSITION_MATCH_SECONDS: Final[int] = 60

# Sun depression (degrees below the horizon) that ends astronomical twilight.
ASTRONOMICAL_DEPRESSION: Final[float] = 18.0

# Used when a stop carries no stop_timezone.
FALLBACK_TIMEZONE: Final[str] = "UTC"

# Files the loader must find; agency.txt and shapes.txt are optional and
# stop_times.txt is needed only when stop times are loaded.
REQUIRED_FILES: Final[tuple[str, ...]] = (
    "routes.txt",
    "stops.txt",
    "trips.txt",
    "calendar.txt",
)
# -----------------------------------------------------------------------------
# LOAD OPTIONS
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadOptions:
    """Switches for one load cycle."""

    filter_to_primary_agency_trains_only: bool = True
    include_dense_shapes: bool = True
    include_stop_times: bool = True
    # None or 0 keeps shapes at full density
    shape_simplify_tolerance: float | None = SHAPE_SIMPLIFY_TOLERANCE


# -----------------------------------------------------------------------------
# ROUTE MERGES
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MergeGroup:
    """Feed route ids that describe one physical service.

    Attributes:
        route_ids: Route ids to collapse, in priority order.
        merged_name: Display name of the merged route.
        primary_route_id: Route whose id, color and URL survive. Defaults to
            the first entry of ``route_ids``.
    """

    route_ids: tuple[str, ...]
    merged_name: str
    primary_route_id: str | None = None

    @property
    def primary(self) -> str:
        """Route id the group collapses into."""
        return self.primary_route_id or self.route_ids[0]


DEFAULT_MERGE_GROUPS: Final[tuple[MergeGroup, ...]] = (
    MergeGroup(
        route_ids=("42957", "72"),
        merged_name="Illinois Zephyr / Carl Sandburg",
        primary_route_id="42957",
    ),
    MergeGroup(
        route_ids=("56", "63"),
        merged_name="Illini / Saluki",
        primary_route_id="56",
    ),
)

# -----------------------------------------------------------------------------
# ROUTE CATEGORIES
# -----------------------------------------------------------------------------

# Comma separated with a header line: route id in the first column, category
# label ("Long-Distance", "State-Supported", "Northeast Corridor") in the sixth.
ROUTE_CATEGORIES_PATH: Final[Path] = (
    Path(__file__).resolve().parent / "data" / "route_categories.txt"
)
