"""
Two-screenshot capture run.

One run walks a fixed sequence of states inside a single browser session:

    IDLE -> INITIALIZING -> NAVIGATING -> WAITING_INITIAL_READY
         -> SETTING_VIEW(overview) -> WAITING_VIEW_SETTLED -> CAPTURING(overview)
         -> SETTING_VIEW(zoom) -> WAITING_VIEW_SETTLED -> CAPTURING(zoom)
         -> DONE

Any failure moves the run to FAILED, deletes whatever this run already
wrote, and raises a CaptureRunError (or ConfigurationError) to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

from config import SCREENSHOT_CONFIG
from src.browser_session import BrowserSession
from src.errors import CaptureError, FlightCaptureError, SessionError
from src.readiness import ReadinessGate
from src.renderer import MapRenderer, PageMapRenderer
from src.utils.geo_utils import GeoPoint, distance
from src.views import ViewSpec

logger = logging.getLogger(__name__)

# Reported aircraft further than this from the configured position gets a warning
AIRCRAFT_MISMATCH_KM = 1.0


class CaptureState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    NAVIGATING = "navigating"
    WAITING_INITIAL_READY = "waiting_initial_ready"
    SETTING_VIEW = "setting_view"
    WAITING_VIEW_SETTLED = "waiting_view_settled"
    CAPTURING = "capturing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptureResult:
    """A screenshot that was written completely."""
    name: str  # "overview" or "zoom"
    path: Path


class CaptureOrchestrator:
    """Runs one overview-then-zoom capture. Single use: build a new one per attempt."""

    def __init__(
        self,
        render_url: str,
        output_dir: Path,
        overview: ViewSpec,
        zoom: ViewSpec,
        expected_aircraft: Optional[GeoPoint] = None,
        session_factory: Callable[[], BrowserSession] = BrowserSession,
        renderer_factory: Callable[..., MapRenderer] = PageMapRenderer,
        readiness_gate: Optional[ReadinessGate] = None,
        navigation_timeout_ms: float = SCREENSHOT_CONFIG["navigation_timeout_ms"],
        transition_timeout_ms: float = SCREENSHOT_CONFIG["transition_timeout_ms"],
        tile_load_wait_ms: float = SCREENSHOT_CONFIG["tile_load_wait_ms"],
        settle_delay_ms: float = SCREENSHOT_CONFIG["settle_delay_ms"],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            render_url: Page that hosts the map.
            output_dir: Directory for overview.png and zoom.png.
            overview: Wide view, captured first.
            zoom: Close view around the aircraft, captured second.
            expected_aircraft: Configured aircraft position, checked against
                what the renderer reports.
            session_factory: Builds the (not yet acquired) browser session.
            renderer_factory: Wraps the session's page in a MapRenderer.
            readiness_gate: Poller for the ready and settled checks.
            navigation_timeout_ms: Budget for loading render_url.
            transition_timeout_ms: Budget for the renderer's moveend signal.
            tile_load_wait_ms: Extra wait for tiles after the map reports ready.
            settle_delay_ms: Extra wait after a view transition ends.
            sleep: Async sleep taking seconds.
        """
        self.render_url = render_url
        self.output_dir = Path(output_dir)
        self.views: Tuple[ViewSpec, ViewSpec] = (overview, zoom)
        self.expected_aircraft = expected_aircraft
        self.navigation_timeout_ms = navigation_timeout_ms
        self.transition_timeout_ms = transition_timeout_ms
        self.tile_load_wait_ms = tile_load_wait_ms
        self.settle_delay_ms = settle_delay_ms

        self._session_factory = session_factory
        self._renderer_factory = renderer_factory
        self._gate = readiness_gate or ReadinessGate()
        self._sleep = sleep
        self._session: Optional[BrowserSession] = None
        self._written: List[Path] = []

        self.state = CaptureState.IDLE
        self.transitions: List[Tuple[CaptureState, Optional[str]]] = [(CaptureState.IDLE, None)]

    def _enter(self, state: CaptureState, view_name: Optional[str] = None) -> None:
        self.state = state
        self.transitions.append((state, view_name))
        label = f"{state.value}({view_name})" if view_name else state.value
        logger.info(f"Capture state -> {label}")

    async def tile_load_wait(self) -> None:
        """Give tiles time to load after the map first reports ready."""
        logger.debug(f"Waiting {self.tile_load_wait_ms}ms for tiles")
        await self._sleep(self.tile_load_wait_ms / 1000)

    async def settle_delay(self) -> None:
        """moveend fires before the new view's tiles finish; wait out the gap."""
        logger.debug(f"Waiting {self.settle_delay_ms}ms for the view to settle")
        await self._sleep(self.settle_delay_ms / 1000)

    async def run(self) -> List[CaptureResult]:
        """
        Capture overview.png then zoom.png.

        The browser session is released before DONE. On failure the session
        is left for teardown() so the caller decides how to handle release
        errors.

        Returns:
            [overview result, zoom result].

        Raises:
            CaptureRunError: Any retryable failure, browser crashes included.
            ConfigurationError: Invalid settings discovered during the run.
        """
        if self.state is not CaptureState.IDLE:
            raise RuntimeError("CaptureOrchestrator instances are single use")

        try:
            results = await self._run_steps()
        except Exception as e:
            self._enter(CaptureState.FAILED)
            self._discard_written()
            logger.warning(f"Capture run failed: {type(e).__name__}: {e}")
            if isinstance(e, FlightCaptureError):
                raise
            raise SessionError(f"Unexpected browser failure: {e}") from e
        except BaseException:
            # Cancelled or interrupted: still all-or-nothing, release is teardown's job
            self._enter(CaptureState.FAILED)
            self._discard_written()
            raise

        self._enter(CaptureState.DONE)
        return results

    async def _run_steps(self) -> List[CaptureResult]:
        self._enter(CaptureState.INITIALIZING)
        self._session = self._session_factory()
        await self._session.acquire()
        renderer = self._renderer_factory(self._session.page)

        self._enter(CaptureState.NAVIGATING)
        await self._session.goto(self.render_url, timeout_ms=self.navigation_timeout_ms)

        self._enter(CaptureState.WAITING_INITIAL_READY)
        await self._gate.wait(renderer.readiness_state, name="map")
        await self.tile_load_wait()

        results = []
        for view in self.views:
            results.append(await self._capture_view(renderer, view))

        await self._session.release()
        return results

    async def _capture_view(self, renderer: MapRenderer, view: ViewSpec) -> CaptureResult:
        self._enter(CaptureState.SETTING_VIEW, view.name)
        await self._gate.wait(renderer.readiness_state, name="map")
        await renderer.fly_to(view)

        self._enter(CaptureState.WAITING_VIEW_SETTLED, view.name)
        await renderer.wait_for_transition_end(self.transition_timeout_ms)
        await self.settle_delay()
        await self.tile_load_wait()
        await self._gate.wait(
            renderer.settled_state,
            name=f"{view.name} view",
            timeout_ms=view.settle_timeout_ms,
        )

        if view.name == "zoom" and self.expected_aircraft is not None:
            await self._check_aircraft(renderer)

        self._enter(CaptureState.CAPTURING, view.name)
        await renderer.hide_controls()
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureError(f"Could not create output directory {self.output_dir}: {e}") from e

        path = self.output_dir / f"{view.name}.png"
        await self._session.screenshot(path)
        self._written.append(path)
        return CaptureResult(name=view.name, path=path)

    async def _check_aircraft(self, renderer: MapRenderer) -> None:
        reported = await renderer.aircraft_position()
        gap_km = distance(reported, self.expected_aircraft)
        if gap_km > AIRCRAFT_MISMATCH_KM:
            logger.warning(
                f"Renderer aircraft {reported.as_lon_lat()} is {gap_km:.1f}km from "
                f"configured position {self.expected_aircraft.as_lon_lat()}"
            )

    def _discard_written(self) -> None:
        for path in self._written:
            path.unlink(missing_ok=True)
            logger.info(f"Removed partial-run artifact {path}")
        self._written.clear()

    async def teardown(self) -> None:
        """Release the browser session if this run still holds one."""
        if self._session is not None:
            session, self._session = self._session, None
            await session.release()
