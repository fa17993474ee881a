"""Export sunlight-colored route segments for one travel date.

This module loads an Amtrak GTFS feed (folder, ``.zip`` or URL), builds the
route and schedule catalog, and for every trip of the selected routes that
runs on the travel date computes the sunlight segments along its path.

Outputs
-------
* ``sunlight_<date>.xlsx`` – one worksheet per trip listing each segment's
  start and end coordinates, sun phase and intensity.
* ``sunlight_<date>.geojson`` – a ``FeatureCollection`` of ``LineString``
  segments carrying the same attributes, ready for any web map.

Before running, **edit the paths and optional filters** in the *CONFIGURATION*
section, or override them on the command line.
"""

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, NamedTuple

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from amtrak_sunlight.config import DEFAULT_SAMPLE_POINTS, ROUTE_CATEGORIES_PATH, LoadOptions
from amtrak_sunlight.feed_loader import load_route_categories, open_feed_source
from amtrak_sunlight.models import GtfsCatalog, ProcessedRoute, ProcessedTrip, SunlightSegment
from amtrak_sunlight.pipeline import load_catalog, sunlight_for_trip
from amtrak_sunlight.queries import trips_for_date
from amtrak_sunlight.utils.logging_helper import setup_logging

# =============================================================================
# CONFIGURATION
# =============================================================================

GTFS_LOCATION: str = r"sample_data/gtfs"  # folder, .zip path or URL

# Route id to service family table (route id in column 1, category in column 6)
CATEGORIES_FILE: Path = ROUTE_CATEGORIES_PATH

OUTPUT_FOLDER: Path = Path(r"output")

# Leave empty to export every route
FILTER_IN_ROUTE_IDS: list[str] = []

TRAVEL_DATE: str = ""  # YYYY-MM-DD; empty means today
SAMPLE_POINTS: int = DEFAULT_SAMPLE_POINTS

EXPORT_XLSX: bool = True
EXPORT_GEOJSON: bool = True

LOG_LEVEL: int = logging.INFO

LOGGER = logging.getLogger(__name__)

HEADER = [
    "Segment",
    "Start_Lat",
    "Start_Lon",
    "End_Lat",
    "End_Lon",
    "Phase",
    "Intensity",
]

# =============================================================================
# FUNCTIONS
# =============================================================================


class TripSunlight(NamedTuple):
    """Segments computed for one trip."""

    route: ProcessedRoute
    trip: ProcessedTrip
    segments: list[SunlightSegment]


def safe_sheet(name: str) -> str:
    """Sanitise a string into a valid, at most 31 character worksheet name."""
    cleaned = re.sub(r"[:\\/*?\[\]]", "_", name)[:31]
    return cleaned or "Sheet"


def compute_sunlight(
    catalog: GtfsCatalog,
    travel_date: dt.date,
    route_ids: Iterable[str] = (),
    sample_points: int = DEFAULT_SAMPLE_POINTS,
) -> list[TripSunlight]:
    """Segments for every trip of the selected routes running on ``travel_date``.

    An empty ``route_ids`` selects every route in the catalog.
    """
    wanted = set(route_ids)
    results = []
    for route in catalog.routes:
        if wanted and route.route_id not in wanted:
            continue
        trips = trips_for_date(catalog, route.route_id, travel_date)
        if not trips:
            LOGGER.info("Route %s has no trips on %s.", route.route_name, travel_date)
            continue
        for trip in trips:
            segments = sunlight_for_trip(catalog, trip, travel_date, sample_points)
            results.append(TripSunlight(route, trip, segments))
    LOGGER.info("Computed sunlight for %d trips.", len(results))
    return results


def segment_rows(segments: Sequence[SunlightSegment]) -> list[list[Any]]:
    """Worksheet rows (without header) for a list of segments."""
    return [
        [
            i + 1,
            round(seg.start_coord[0], 6),
            round(seg.start_coord[1], 6),
            round(seg.end_coord[0], 6),
            round(seg.end_coord[1], 6),
            seg.sunlight_phase.value,
            round(seg.sunlight_intensity, 4),
        ]
        for i, seg in enumerate(segments)
    ]


def export_workbook(results: Sequence[TripSunlight], out_path: Path) -> Path:
    """Write one worksheet per trip to ``out_path``."""
    wb = Workbook()
    wb.remove(wb.active)  # Remove default sheet

    used: set[str] = set()
    for result in results:
        label = f"{result.trip.train_number or result.trip.trip_id} {result.trip.headsign}"
        name = safe_sheet(label.strip())
        suffix = 2
        while name in used:
            name = safe_sheet(f"{label[:27]} ({suffix})")
            suffix += 1
        used.add(name)

        ws = wb.create_sheet(name)
        ws.append(HEADER)
        for row in segment_rows(result.segments):
            ws.append(row)
        for col in range(1, len(HEADER) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 14

    if not wb.sheetnames:
        wb.create_sheet("No trips")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(out_path)
    LOGGER.info("Wrote %s", out_path)
    return out_path


def segments_to_feature_collection(results: Iterable[TripSunlight]) -> dict[str, Any]:
    """GeoJSON ``FeatureCollection``; coordinates are ``[lon, lat]``."""
    features = []
    for result in results:
        for i, seg in enumerate(result.segments):
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [
                            [seg.start_coord[1], seg.start_coord[0]],
                            [seg.end_coord[1], seg.end_coord[0]],
                        ],
                    },
                    "properties": {
                        "route_id": result.route.route_id,
                        "route_name": result.route.route_name,
                        "category": result.route.category.value if result.route.category else None,
                        "trip_id": result.trip.trip_id,
                        "train_number": result.trip.train_number,
                        "segment": i,
                        "phase": seg.sunlight_phase.value,
                        "intensity": seg.sunlight_intensity,
                        "color": result.route.color,
                    },
                }
            )
    return {"type": "FeatureCollection", "features": features}


def export_geojson(results: Iterable[TripSunlight], out_path: Path) -> Path:
    """Write the segments of ``results`` as GeoJSON."""
    collection = segments_to_feature_collection(results)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(collection), encoding="utf-8")
    LOGGER.info("Wrote %s (%d features)", out_path, len(collection["features"]))
    return out_path


# =============================================================================
# ARGUMENTS
# =============================================================================


def build_arg_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    p = argparse.ArgumentParser(
        description="Color Amtrak routes by sunlight for a travel date and export the segments."
    )
    p.add_argument("-g", "--gtfs", default=GTFS_LOCATION, help="GTFS folder, .zip or URL.")
    p.add_argument("-o", "--outdir", type=Path, default=OUTPUT_FOLDER, help="Output folder.")
    p.add_argument(
        "--categories",
        type=Path,
        default=CATEGORIES_FILE,
        help="Route category table (default: the packaged one).",
    )
    p.add_argument(
        "-r",
        "--routes",
        nargs="*",
        default=FILTER_IN_ROUTE_IDS,
        metavar="ROUTE_ID",
        help="Route ids to export (default: all).",
    )
    p.add_argument(
        "-d",
        "--date",
        default=TRAVEL_DATE,
        help="Travel date as YYYY-MM-DD (default: today).",
    )
    p.add_argument(
        "-n",
        "--samples",
        type=int,
        default=SAMPLE_POINTS,
        help="Sample points per trip path.",
    )
    p.add_argument("--no-xlsx", action="store_true", help="Skip the Excel workbook.")
    p.add_argument("--no-geojson", action="store_true", help="Skip the GeoJSON file.")
    p.add_argument(
        "--all-agencies",
        action="store_true",
        help="Keep every route instead of Amtrak rail only.",
    )
    return p


def parse_travel_date(text: str) -> dt.date:
    """``YYYY-MM-DD`` to a date; empty text means today."""
    if not text:
        return dt.date.today()
    return dt.date.fromisoformat(text)


# =============================================================================
# MAIN
# =============================================================================


def main(argv: Sequence[str] | None = None) -> list[Path]:
    """CLI entry-point – load, compute and export."""
    args = build_arg_parser().parse_args(argv)
    setup_logging(LOG_LEVEL)

    travel_date = parse_travel_date(args.date)
    LOGGER.info("GTFS source:   %s", args.gtfs)
    LOGGER.info("Output folder: %s", args.outdir)
    LOGGER.info("Travel date:   %s", travel_date)

    options = LoadOptions(filter_to_primary_agency_trains_only=not args.all_agencies)
    categories = load_route_categories(args.categories)
    catalog = load_catalog(open_feed_source(args.gtfs), options, categories=categories)
    results = compute_sunlight(catalog, travel_date, args.routes, args.samples)
    if not results:
        LOGGER.warning("No trips run on %s – nothing to export.", travel_date)
        return []

    written = []
    stem = f"sunlight_{travel_date:%Y%m%d}"
    if EXPORT_XLSX and not args.no_xlsx:
        written.append(export_workbook(results, args.outdir / f"{stem}.xlsx"))
    if EXPORT_GEOJSON and not args.no_geojson:
        written.append(export_geojson(results, args.outdir / f"{stem}.geojson"))
    return written


if __name__ == "__main__":  # pragma: no cover
    main()
