"""
Renderer contract and its Playwright page implementation.

The orchestrator drives the map only through MapRenderer. PageMapRenderer
fulfils it by evaluating JavaScript against the map object the page
exposes under a configurable global name.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config import MAP_CONTAINER_SELECTOR, MAP_GLOBAL_NAME
from src.errors import RenderTimeoutError, SessionError
from src.utils.geo_utils import GeoPoint
from src.views import ViewSpec

logger = logging.getLogger(__name__)

# Set by fly_to's moveend listener, read by wait_for_transition_end
_MOVE_END_FLAG = "__flightCaptureMoveEnded"


class MapRenderer(ABC):
    """What the capture pipeline needs from the rendered map."""

    @abstractmethod
    async def readiness_state(self) -> Dict[str, bool]:
        """Named checks that must all hold before a view change."""

    @abstractmethod
    async def settled_state(self) -> Dict[str, bool]:
        """Named checks that must all hold before a capture."""

    @abstractmethod
    async def fly_to(self, view: ViewSpec) -> None:
        """Start the transition to view. Returns without waiting for it to end."""

    @abstractmethod
    async def wait_for_transition_end(self, timeout_ms: float) -> None:
        """Wait for the renderer's own end-of-transition signal."""

    @abstractmethod
    async def aircraft_position(self) -> GeoPoint:
        """Where the renderer placed the aircraft marker."""

    @abstractmethod
    async def hide_controls(self) -> None:
        """Hide attribution, zoom buttons and other map chrome."""


READINESS_JS = """
(name) => {
    const app = window[name];
    const map = app && app.map;
    return {
        container_present: !!document.querySelector(%(selector)r),
        renderer_library_loaded: typeof window.mapboxgl !== 'undefined',
        map_initialized: !!(app && app.isInitialized),
        style_loaded: !!(map && map.isStyleLoaded()),
        tiles_loaded: !!(map && map.areTilesLoaded()),
    };
}
""" % {"selector": MAP_CONTAINER_SELECTOR}

SETTLED_JS = """
(name) => {
    const map = window[name] && window[name].map;
    return {
        map_available: !!map,
        not_moving: !!map && !map.isMoving(),
        tiles_loaded: !!map && map.areTilesLoaded(),
    };
}
"""

FLY_TO_JS = """
([name, flag, view]) => {
    const map = window[name].map;
    window[flag] = false;
    map.once('moveend', () => { window[flag] = true; });
    map.flyTo({
        center: view.center,
        zoom: view.zoom,
        duration: view.duration,
        essential: true,
    });
}
"""

AIRCRAFT_JS = """
(name) => {
    const app = window[name];
    const marker = app && app.markerManager && app.markerManager.getAircraftMarker();
    return marker ? marker.data.coordinates : null;
}
"""

HIDE_CONTROLS_JS = """
() => {
    const selectors = [
        '.mapboxgl-ctrl-attrib',
        '.mapboxgl-ctrl-logo',
        '.mapboxgl-ctrl-top-right',
        '.mapboxgl-ctrl-top-left',
        '.mapboxgl-ctrl-bottom-right',
        '.mapboxgl-ctrl-bottom-left',
    ];
    let hidden = 0;
    for (const el of document.querySelectorAll(selectors.join(','))) {
        el.style.display = 'none';
        hidden += 1;
    }
    return hidden;
}
"""


class PageMapRenderer(MapRenderer):
    """MapRenderer backed by a Mapbox GL page loaded in a Playwright page."""

    def __init__(self, page: Page, global_name: str = MAP_GLOBAL_NAME):
        self._page = page
        self.global_name = global_name

    async def readiness_state(self) -> Dict[str, bool]:
        return await self._page.evaluate(READINESS_JS, self.global_name)

    async def settled_state(self) -> Dict[str, bool]:
        return await self._page.evaluate(SETTLED_JS, self.global_name)

    async def fly_to(self, view: ViewSpec) -> None:
        logger.info(
            f"Flying to {view.name} view: center={view.center.as_lon_lat()}, zoom={view.zoom}"
        )
        payload = {
            "center": view.center.as_lon_lat(),
            "zoom": view.zoom,
            "duration": view.fly_duration_ms,
        }
        await self._page.evaluate(FLY_TO_JS, [self.global_name, _MOVE_END_FLAG, payload])

    async def wait_for_transition_end(self, timeout_ms: float) -> None:
        try:
            await self._page.wait_for_function(
                f"window.{_MOVE_END_FLAG} === true", timeout=timeout_ms
            )
        except PlaywrightTimeoutError as e:
            raise RenderTimeoutError(
                f"Map transition did not end within {timeout_ms}ms",
                failing_checks=["move_end"],
            ) from e

    async def aircraft_position(self) -> GeoPoint:
        coords = await self._page.evaluate(AIRCRAFT_JS, self.global_name)
        if coords is None:
            raise SessionError("Aircraft marker not found on the page")
        return GeoPoint.from_lon_lat(coords)

    async def hide_controls(self) -> None:
        hidden = await self._page.evaluate(HIDE_CONTROLS_JS)
        logger.debug(f"Hid {hidden} map control element(s)")
