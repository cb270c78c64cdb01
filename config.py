"""
Flight path capture configuration.

Route coordinates, view settings, browser settings, and timing constants.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# --- Paths ---
PROJECT_ROOT = Path(__file__).parent
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", str(PROJECT_ROOT / "screenshots")))

# --- Render target ---
# Served by the map page's own dev server (not part of this project)
RENDER_URL = os.getenv("RENDER_URL", "http://localhost:3000")
MAP_GLOBAL_NAME = "flightPathMap"
MAP_CONTAINER_SELECTOR = "#map"

# --- Coordinates (lon, lat) ---
COORDINATES = {
    "CVG": (-84.6627, 39.0458),  # Cincinnati/Northern Kentucky International Airport
    "MCO": (-81.3792, 28.4312),  # Orlando International Airport
}
ORIGIN_CODE = "CVG"
DESTINATION_CODE = "MCO"

# --- Flight ---
FLIGHT_CONFIG = {
    "total_flight_minutes": 120,
    "aircraft_elapsed_minutes": 2.5,
}

# --- Markers ---
MARKER_TYPES = {
    "AIRCRAFT": {"color": "#FFFFFF", "layer": "aircraft-layer", "priority": 0},
    "CITIES": {"color": "#3B82F6", "layer": "cities-layer", "priority": 1},
    "POI": {"color": "#10B981", "layer": "poi-layer", "priority": 2},
    "STORY": {"color": "#8B5CF6", "layer": "story-layer", "priority": 3},
}
POI_FRACTIONS = (0.3, 0.7)
STORY_FRACTIONS = (0.2, 0.8)

# --- Views ---
MAP_CONFIG = {
    "overview_zoom": 5,
    "zoom_zoom": 10,
    "fly_duration_ms": 2000,
    # Aircraft sits this far down from the top edge in the zoom view
    "aircraft_frame_fraction": 1 / 3,
    "tile_size_px": 512,
}

# --- Browser ---
VIEWPORT = {"width": 1080, "height": 1920}
DEVICE_SCALE_FACTOR = 1
HEADLESS = os.getenv("HEADLESS", "1").lower() not in ("0", "false", "no")
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--enable-webgl",
    "--ignore-gpu-blocklist",
    "--use-gl=swiftshader",
    "--use-angle=swiftshader",
]

# --- Screenshot timing ---
SCREENSHOT_CONFIG = {
    "navigation_timeout_ms": 30_000,
    "readiness_timeout_ms": 30_000,
    "poll_interval_ms": 1_000,
    "transition_timeout_ms": 10_000,
    # moveend fires before tiles for the new view finish loading
    "tile_load_wait_ms": 2_000,
    "settle_delay_ms": 1_000,
    "max_retries": 3,
    "retry_delay_ms": 1_000,
}

# --- Logging ---
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
