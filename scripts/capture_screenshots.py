#!/usr/bin/env python3
"""
Capture the overview and zoom screenshots of the flight path map.

Usage:
    python scripts/capture_screenshots.py
    python scripts/capture_screenshots.py --url http://localhost:3000 --output-dir out/
    python scripts/capture_screenshots.py --elapsed 30 --max-retries 5 --headed

Exit codes: 0 on success, 1 if the render target is unreachable or every
attempt failed, 2 on invalid configuration, 130 if interrupted.
"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import replace
from functools import partial
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import LOG_DATE_FORMAT, LOG_FORMAT, MAP_CONFIG
from src.browser_session import BrowserSession
from src.capture import CaptureOrchestrator
from src.errors import ConfigurationError, ExhaustedRetriesError
from src.flight_config import CaptureSettings, load_capture_settings, load_flight_path
from src.markers import build_markers, save_marker_manifest
from src.preflight import probe_render_target
from src.readiness import ReadinessGate
from src.retry import RetryPolicy
from src.utils.geo_utils import (
    FlightPath,
    distance,
    distance_nautical_miles,
    format_coordinates,
    position_at_time,
)
from src.views import overview_view, zoom_view

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
logger = logging.getLogger("capture_screenshots")


def make_orchestrator(settings: CaptureSettings, flight_path: FlightPath) -> CaptureOrchestrator:
    """Build a fresh orchestrator (and browser session factory) for one attempt."""
    aircraft = position_at_time(flight_path, settings.aircraft_elapsed_minutes)
    overview = replace(
        overview_view(flight_path),
        settle_timeout_ms=settings.readiness_timeout_ms,
    )
    zoom = replace(
        zoom_view(
            aircraft,
            viewport_height=settings.viewport["height"],
            frame_fraction=MAP_CONFIG["aircraft_frame_fraction"],
        ),
        settle_timeout_ms=settings.readiness_timeout_ms,
    )
    gate = ReadinessGate(
        timeout_ms=settings.readiness_timeout_ms,
        poll_interval_ms=settings.poll_interval_ms,
    )
    session_factory = partial(
        BrowserSession,
        viewport=settings.viewport,
        device_scale_factor=settings.device_scale_factor,
        headless=settings.headless,
    )
    return CaptureOrchestrator(
        render_url=settings.render_url,
        output_dir=settings.output_dir,
        overview=overview,
        zoom=zoom,
        expected_aircraft=aircraft,
        session_factory=session_factory,
        readiness_gate=gate,
        navigation_timeout_ms=settings.navigation_timeout_ms,
        transition_timeout_ms=settings.transition_timeout_ms,
        tile_load_wait_ms=settings.tile_load_wait_ms,
        settle_delay_ms=settings.settle_delay_ms,
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Flight path map screenshot capture")
    parser.add_argument("--url", help="Render target URL (default: RENDER_URL)")
    parser.add_argument("--output-dir", type=Path, help="Screenshot directory (default: SCREENSHOT_DIR)")
    parser.add_argument("--elapsed", type=float,
                        help="Minutes since departure for the aircraft marker")
    parser.add_argument("--max-retries", type=int, help="Maximum capture attempts")
    parser.add_argument("--retry-delay-ms", type=float, help="Delay between attempts")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--skip-preflight", action="store_true",
                        help="Do not probe the render target before capturing")
    parser.add_argument("--no-manifest", action="store_true",
                        help="Skip writing markers.csv / markers.json")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    try:
        flight_path = load_flight_path()
        settings = load_capture_settings(
            render_url=args.url,
            output_dir=args.output_dir,
            aircraft_elapsed_minutes=args.elapsed,
            max_retries=args.max_retries,
            retry_delay_ms=args.retry_delay_ms,
            headless=False if args.headed else None,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    aircraft = position_at_time(flight_path, settings.aircraft_elapsed_minutes)
    logger.info(
        f"Route {format_coordinates(flight_path.origin)} -> "
        f"{format_coordinates(flight_path.destination)}: "
        f"{distance(flight_path.origin, flight_path.destination):.0f}km "
        f"({distance_nautical_miles(flight_path.origin, flight_path.destination):.0f}nm)"
    )
    logger.info(
        f"Aircraft at {settings.aircraft_elapsed_minutes} min: {format_coordinates(aircraft)}"
    )

    if not args.skip_preflight and not probe_render_target(settings.render_url):
        logger.error("Render target unreachable; start the map server and try again")
        sys.exit(1)

    start = time.time()
    policy = RetryPolicy(max_attempts=settings.max_retries, retry_delay_ms=settings.retry_delay_ms)
    try:
        results = asyncio.run(policy.run(partial(make_orchestrator, settings, flight_path)))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except ExhaustedRetriesError as e:
        logger.error(f"Screenshot capture failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.error("Capture interrupted")
        sys.exit(130)

    if not args.no_manifest:
        markers = build_markers(flight_path, settings.aircraft_elapsed_minutes)
        save_marker_manifest(markers, flight_path, settings.output_dir)

    elapsed = time.time() - start
    logger.info(f"Capture completed in {elapsed:.0f}s")
    for result in results:
        logger.info(f"  {result.name}: {result.path}")


if __name__ == "__main__":
    main()
