"""Collapse feed routes that describe one physical service.

Some Amtrak services appear in the feed under two route ids (one per train
family) even though every train calls at the same stations. A configured
:class:`~amtrak_sunlight.config.MergeGroup` names such ids; the group is
merged only when every member has trips and all members visit the same set
of stations.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence

from amtrak_sunlight.config import DEFAULT_MERGE_GROUPS, MergeGroup
from amtrak_sunlight.models import Direction, ProcessedRoute, ProcessedTrip

LOGGER = logging.getLogger(__name__)

# =============================================================================
# STOP COMPARISON
# =============================================================================


def unique_stop_ids(trips: Iterable[ProcessedTrip]) -> set[str]:
    """Every stop id visited by any of ``trips``."""
    return {stop.stop_id for trip in trips for stop in trip.stops}


def have_identical_stops(
    trips_a: Iterable[ProcessedTrip], trips_b: Iterable[ProcessedTrip]
) -> bool:
    """Whether two trip collections visit exactly the same stations.

    Order and repetition are ignored, since trains run both ways.
    """
    return unique_stop_ids(trips_a) == unique_stop_ids(trips_b)


def validate_merge_group(
    route_ids: Sequence[str], schedules: Mapping[str, Sequence[ProcessedTrip]]
) -> bool:
    """Check that every route of a group has trips and shares one stop set.

    A group of fewer than two ids is trivially valid.
    """
    if len(route_ids) < 2:
        return True

    all_trips = [schedules.get(route_id, []) for route_id in route_ids]
    if any(not trips for trips in all_trips):
        LOGGER.warning(
            "Route merge validation: some of routes %s have no trips.", ", ".join(route_ids)
        )
        return False

    reference = all_trips[0]
    for route_id, trips in zip(route_ids[1:], all_trips[1:]):
        if not have_identical_stops(reference, trips):
            LOGGER.warning(
                "Route merge validation failed: routes %s and %s have different stops.",
                route_ids[0],
                route_id,
            )
            return False
    return True


# =============================================================================
# MERGING
# =============================================================================


def merge_route_objects(
    routes: Sequence[ProcessedRoute], merged_name: str, primary_route_id: str | None = None
) -> ProcessedRoute:
    """Combine routes into one entry carrying the primary route's attributes.

    Train numbers are unioned and sorted; non-empty shape ids and direction
    options are unioned in first-seen order. Id, axis, color, URL and
    category come from the primary route (the first one when
    ``primary_route_id`` is absent or not among ``routes``).
    """
    primary = next((r for r in routes if r.route_id == primary_route_id), routes[0])

    numbers = sorted({number for route in routes for number in route.route_numbers})
    shape_ids = list(
        dict.fromkeys(shape_id for route in routes for shape_id in route.shape_ids if shape_id)
    )
    options: list[Direction] = list(
        dict.fromkeys(option for route in routes for option in route.direction_options)
    )

    return dataclasses.replace(
        primary,
        route_name=merged_name,
        route_numbers=numbers,
        direction_options=options,
        shape_ids=shape_ids,
    )


def merge_schedules(
    schedules: Mapping[str, Sequence[ProcessedTrip]],
    route_ids: Sequence[str],
    primary_route_id: str,
) -> dict[str, list[ProcessedTrip]]:
    """Reassign every trip of ``route_ids`` to the primary route.

    Returns:
        A new schedule map: the members' buckets are replaced by one bucket
        under ``primary_route_id``. ``schedules`` is left untouched.
    """
    merged_trips = [
        dataclasses.replace(trip, route_id=primary_route_id)
        for route_id in route_ids
        for trip in schedules.get(route_id, [])
    ]
    result = {
        route_id: list(trips)
        for route_id, trips in schedules.items()
        if route_id not in route_ids
    }
    result[primary_route_id] = merged_trips
    return result


def find_best_shape_id(trips: Iterable[ProcessedTrip]) -> str | None:
    """First non-empty shape id among ``trips``."""
    for trip in trips:
        if trip.shape_id:
            return trip.shape_id
    return None


def apply_route_merges(
    routes: Sequence[ProcessedRoute],
    schedules: Mapping[str, Sequence[ProcessedTrip]],
    merge_groups: Iterable[MergeGroup] = DEFAULT_MERGE_GROUPS,
) -> tuple[list[ProcessedRoute], dict[str, list[ProcessedTrip]]]:
    """Apply every merge group that validates.

    A group is skipped, with a warning, when fewer than two of its routes are
    in the catalog, when its primary route is missing, or when its routes do
    not share one stop set. Running the same groups again is a no-op, since
    the non-primary ids are gone after the first pass.

    Args:
        routes: Processed routes.
        schedules: Trips keyed by route id.
        merge_groups: Groups to apply, in order.

    Returns:
        New ``(routes, schedules)``; the inputs are not modified. Merged
        routes keep the list position of their primary route.
    """
    route_index = {route.route_id: route for route in routes}
    current = {route_id: list(trips) for route_id, trips in schedules.items()}
    removed: set[str] = set()

    for group in merge_groups:
        group_routes = [route_index[rid] for rid in group.route_ids if rid in route_index]
        if len(group_routes) < 2:
            LOGGER.warning(
                "Merge group '%s': found only %d route(s); skipping.",
                group.merged_name,
                len(group_routes),
            )
            continue

        primary = group.primary
        if primary not in route_index:
            LOGGER.warning(
                "Merge group '%s': primary route %s is not in the catalog; skipping.",
                group.merged_name,
                primary,
            )
            continue

        if not validate_merge_group(group.route_ids, current):
            LOGGER.warning(
                "Merge group '%s': routes have different stops; skipping.", group.merged_name
            )
            continue

        LOGGER.info(
            "Merging routes [%s] into '%s' (primary: %s).",
            ", ".join(group.route_ids),
            group.merged_name,
            primary,
        )
        route_index[primary] = merge_route_objects(group_routes, group.merged_name, primary)
        current = merge_schedules(current, group.route_ids, primary)
        for route_id in group.route_ids:
            if route_id != primary:
                route_index.pop(route_id, None)
                removed.add(route_id)

    merged_routes = [
        route_index[route.route_id] for route in routes if route.route_id not in removed
    ]
    LOGGER.info("Route merging complete: %d routes -> %d routes.", len(routes), len(merged_routes))
    return merged_routes, current
