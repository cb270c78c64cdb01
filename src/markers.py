"""
Marker layout along the flight path.

Places the city, POI, story, and aircraft markers on the route's great
circle and writes a manifest of their coordinates next to the screenshots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from config import (
    DESTINATION_CODE,
    MARKER_TYPES,
    ORIGIN_CODE,
    POI_FRACTIONS,
    STORY_FRACTIONS,
)
from src.utils.geo_utils import (
    FlightPath,
    GeoPoint,
    distance,
    format_coordinates,
    interpolate,
    position_at_time,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Marker:
    """A map marker and where it sits on the route."""
    marker_id: str
    name: str
    marker_type: str  # key into MARKER_TYPES
    position: GeoPoint
    fraction: float  # share of the route from the origin

    @property
    def priority(self) -> int:
        return MARKER_TYPES[self.marker_type]["priority"]

    @property
    def color(self) -> str:
        return MARKER_TYPES[self.marker_type]["color"]


def build_markers(
    path: FlightPath,
    aircraft_elapsed_minutes: float,
    poi_fractions: Tuple[float, ...] = POI_FRACTIONS,
    story_fractions: Tuple[float, ...] = STORY_FRACTIONS,
) -> List[Marker]:
    """
    Lay out every marker for a route, highest priority first.

    Aircraft comes first, then the two cities, then POIs, then story markers.
    """
    aircraft_fraction = aircraft_elapsed_minutes / path.total_duration_minutes
    markers = [
        Marker(
            "aircraft", "Aircraft", "AIRCRAFT",
            position_at_time(path, aircraft_elapsed_minutes), aircraft_fraction,
        ),
        Marker("origin", ORIGIN_CODE, "CITIES", path.origin, 0.0),
        Marker("destination", DESTINATION_CODE, "CITIES", path.destination, 1.0),
    ]
    for i, fraction in enumerate(poi_fractions, start=1):
        markers.append(Marker(
            f"poi-{i}", f"Point of Interest {i}", "POI",
            interpolate(path.origin, path.destination, fraction), fraction,
        ))
    for i, fraction in enumerate(story_fractions, start=1):
        markers.append(Marker(
            f"story-{i}", f"Story {i}", "STORY",
            interpolate(path.origin, path.destination, fraction), fraction,
        ))

    # sorted() is stable, so insertion order holds within a priority
    return sorted(markers, key=lambda m: m.priority)


def markers_to_dataframe(markers: List[Marker], path: FlightPath) -> pd.DataFrame:
    """Convert markers to a DataFrame, one row per marker."""
    records = []
    for m in markers:
        records.append({
            "marker_id": m.marker_id,
            "name": m.name,
            "type": m.marker_type,
            "priority": m.priority,
            "color": m.color,
            "lon": m.position.lon,
            "lat": m.position.lat,
            "display": format_coordinates(m.position),
            "route_fraction": m.fraction,
            "km_from_origin": round(distance(path.origin, m.position), 3),
        })
    return pd.DataFrame(records)


def save_marker_manifest(
    markers: List[Marker],
    path: FlightPath,
    output_dir: Path,
) -> Tuple[Path, Path]:
    """
    Save marker coordinates to CSV and JSON.

    Returns:
        Tuple of (csv_path, json_path).
    """
    df = markers_to_dataframe(markers, path)
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = output_dir / "markers.csv"
    json_path = output_dir / "markers.json"

    df.to_csv(csv_path, index=False)
    df.to_json(json_path, orient="records", indent=2, force_ascii=False)

    logger.info(f"Saved {len(df)} markers to {csv_path}")
    return csv_path, json_path
