"""
Typed, validated settings built from config.py.

Everything here fails fast with ConfigurationError; nothing in this module
is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from config import (
    COORDINATES,
    DESTINATION_CODE,
    DEVICE_SCALE_FACTOR,
    FLIGHT_CONFIG,
    HEADLESS,
    ORIGIN_CODE,
    RENDER_URL,
    SCREENSHOT_CONFIG,
    SCREENSHOT_DIR,
    VIEWPORT,
)
from src.errors import ConfigurationError
from src.utils.geo_utils import FlightPath, GeoPoint

logger = logging.getLogger(__name__)


@dataclass
class CaptureSettings:
    """Everything a capture run needs besides the flight path."""
    render_url: str
    output_dir: Path
    aircraft_elapsed_minutes: float
    viewport: Dict[str, int] = field(default_factory=lambda: dict(VIEWPORT))
    device_scale_factor: float = DEVICE_SCALE_FACTOR
    headless: bool = HEADLESS
    navigation_timeout_ms: float = SCREENSHOT_CONFIG["navigation_timeout_ms"]
    readiness_timeout_ms: float = SCREENSHOT_CONFIG["readiness_timeout_ms"]
    poll_interval_ms: float = SCREENSHOT_CONFIG["poll_interval_ms"]
    transition_timeout_ms: float = SCREENSHOT_CONFIG["transition_timeout_ms"]
    tile_load_wait_ms: float = SCREENSHOT_CONFIG["tile_load_wait_ms"]
    settle_delay_ms: float = SCREENSHOT_CONFIG["settle_delay_ms"]
    max_retries: int = SCREENSHOT_CONFIG["max_retries"]
    retry_delay_ms: float = SCREENSHOT_CONFIG["retry_delay_ms"]


def parse_geo_point(code: str, coords) -> GeoPoint:
    """Turn a configured (lon, lat) pair into a GeoPoint."""
    try:
        return GeoPoint.from_lon_lat(coords)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid coordinates for {code}: {coords!r} ({e})") from e


def load_flight_path(
    coordinates: Mapping[str, tuple] = COORDINATES,
    origin_code: str = ORIGIN_CODE,
    destination_code: str = DESTINATION_CODE,
    total_minutes: Optional[float] = None,
) -> FlightPath:
    """
    Build the FlightPath from configured airport coordinates.

    Raises:
        ConfigurationError: If an airport is missing, its coordinates are out
            of range, or the duration is not positive.
    """
    for code in (origin_code, destination_code):
        if code not in coordinates:
            raise ConfigurationError(f"No coordinates configured for {code}")

    total = FLIGHT_CONFIG["total_flight_minutes"] if total_minutes is None else total_minutes
    origin = parse_geo_point(origin_code, coordinates[origin_code])
    destination = parse_geo_point(destination_code, coordinates[destination_code])

    if origin == destination:
        logger.warning(f"{origin_code} and {destination_code} share coordinates; path is a point")

    try:
        return FlightPath(origin=origin, destination=destination, total_duration_minutes=total)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid flight duration {total!r}: {e}") from e


def validate_settings(settings: CaptureSettings) -> CaptureSettings:
    """
    Check a CaptureSettings for values no run could succeed with.

    Raises:
        ConfigurationError: On the first invalid value found.
    """
    if not settings.render_url:
        raise ConfigurationError("Render URL is empty")
    if settings.aircraft_elapsed_minutes < 0:
        raise ConfigurationError(
            f"Aircraft elapsed time must not be negative, got {settings.aircraft_elapsed_minutes}"
        )
    for dim in ("width", "height"):
        if settings.viewport.get(dim, 0) <= 0:
            raise ConfigurationError(f"Viewport {dim} must be positive: {settings.viewport}")
    if settings.device_scale_factor <= 0:
        raise ConfigurationError(
            f"Device scale factor must be positive, got {settings.device_scale_factor}"
        )
    for name in (
        "navigation_timeout_ms",
        "readiness_timeout_ms",
        "poll_interval_ms",
        "transition_timeout_ms",
    ):
        if getattr(settings, name) <= 0:
            raise ConfigurationError(f"{name} must be positive, got {getattr(settings, name)}")
    for name in ("tile_load_wait_ms", "settle_delay_ms", "retry_delay_ms"):
        if getattr(settings, name) < 0:
            raise ConfigurationError(f"{name} must not be negative, got {getattr(settings, name)}")
    if settings.max_retries < 1:
        raise ConfigurationError(f"max_retries must be at least 1, got {settings.max_retries}")
    return settings


def load_capture_settings(**overrides) -> CaptureSettings:
    """
    Build CaptureSettings from config.py, applying keyword overrides.

    Overrides set to None are ignored so CLI defaults can pass through.
    """
    values = {
        "render_url": RENDER_URL,
        "output_dir": SCREENSHOT_DIR,
        "aircraft_elapsed_minutes": FLIGHT_CONFIG["aircraft_elapsed_minutes"],
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        settings = CaptureSettings(**values)
    except TypeError as e:
        raise ConfigurationError(f"Unknown capture setting: {e}") from e
    settings.output_dir = Path(settings.output_dir)
    return validate_settings(settings)
