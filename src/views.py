"""
Map views for the two screenshots.

The overview frames the whole route around its great-circle midpoint. The
zoom view centers near the aircraft, shifted so the aircraft lands in the
top third of the portrait frame.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from config import MAP_CONFIG, SCREENSHOT_CONFIG, VIEWPORT
from src.utils.geo_utils import FlightPath, GeoPoint, path_midpoint

# Web Mercator latitude limit
MAX_MERCATOR_LAT = 85.051129


@dataclass(frozen=True)
class ViewSpec:
    """A camera target for the renderer."""
    name: str
    center: GeoPoint
    zoom: float
    fly_duration_ms: int = MAP_CONFIG["fly_duration_ms"]
    settle_timeout_ms: int = SCREENSHOT_CONFIG["readiness_timeout_ms"]


def _lat_to_world_y(lat: float, world_size: float) -> float:
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    phi = math.radians(lat)
    return (1 - math.log(math.tan(math.pi / 4 + phi / 2)) / math.pi) / 2 * world_size


def _world_y_to_lat(y: float, world_size: float) -> float:
    n = math.pi * (1 - 2 * y / world_size)
    return math.degrees(math.atan(math.sinh(n)))


def offset_center_for_subject(
    subject: GeoPoint,
    zoom: float,
    viewport_height: int,
    frame_fraction: float,
    tile_size: int = MAP_CONFIG["tile_size_px"],
) -> GeoPoint:
    """
    Find the map center that puts subject at frame_fraction of the frame height.

    frame_fraction is measured from the top edge: 0.5 returns the subject
    itself, smaller values move the subject up in the frame.
    """
    world_size = tile_size * 2 ** zoom
    subject_y = _lat_to_world_y(subject.lat, world_size)
    # Screen y grows downward, so the center sits below the subject
    center_y = subject_y + viewport_height * (0.5 - frame_fraction)
    return GeoPoint(lon=subject.lon, lat=_world_y_to_lat(center_y, world_size))


def overview_view(path: FlightPath, zoom: float = MAP_CONFIG["overview_zoom"]) -> ViewSpec:
    return ViewSpec(name="overview", center=path_midpoint(path), zoom=zoom)


def zoom_view(
    aircraft: GeoPoint,
    zoom: float = MAP_CONFIG["zoom_zoom"],
    viewport_height: int = VIEWPORT["height"],
    frame_fraction: float = MAP_CONFIG["aircraft_frame_fraction"],
) -> ViewSpec:
    center = offset_center_for_subject(aircraft, zoom, viewport_height, frame_fraction)
    return ViewSpec(name="zoom", center=center, zoom=zoom)
