"""Tests for the capture orchestrator."""

import asyncio
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.capture import CaptureOrchestrator, CaptureResult, CaptureState
from src.errors import CaptureError, NavigationError, RenderTimeoutError, SessionError
from src.readiness import ReadinessGate
from src.renderer import MapRenderer
from src.retry import RetryPolicy
from src.utils.geo_utils import GeoPoint
from src.views import ViewSpec

AIRCRAFT = GeoPoint(lon=-84.55, lat=38.85)
OVERVIEW = ViewSpec(name="overview", center=GeoPoint(lon=-82.93, lat=33.74), zoom=5)
ZOOM = ViewSpec(name="zoom", center=GeoPoint(lon=-84.55, lat=38.80), zoom=10)


class FakeClock:
    def __init__(self, events):
        self.now = 0.0
        self.events = events

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.events.append(f"sleep:{seconds}")
        self.now += seconds


class FakeSession:
    def __init__(self, events, fail_on=None):
        self.events = events
        self.fail_on = fail_on
        self.page = object()
        self.release_count = 0
        self._released = False

    async def acquire(self):
        self.events.append("acquire")
        if self.fail_on == "acquire":
            raise SessionError("chromium crashed on launch")
        return self

    async def goto(self, url, timeout_ms):
        self.events.append("goto")
        if self.fail_on == "goto":
            raise NavigationError(f"Timed out after {timeout_ms}ms loading {url}")
        if self.fail_on == "cancel":
            raise asyncio.CancelledError()

    async def screenshot(self, path):
        self.events.append(f"screenshot:{path.stem}")
        if self.fail_on == f"screenshot:{path.stem}":
            raise CaptureError("disk full")
        path.write_bytes(b"\x89PNG fake")
        return path

    async def release(self):
        if self._released:
            return
        self._released = True
        self.release_count += 1
        self.events.append("release")


class FakeRenderer(MapRenderer):
    def __init__(self, events, aircraft=AIRCRAFT, never_settles=False, fail_fly=False):
        self.events = events
        self.aircraft = aircraft
        self.never_settles = never_settles
        self.fail_fly = fail_fly

    async def readiness_state(self):
        self.events.append("ready?")
        return {"container_present": True, "map_initialized": True}

    async def settled_state(self):
        self.events.append("settled?")
        return {"not_moving": True, "tiles_loaded": not self.never_settles}

    async def fly_to(self, view):
        if self.fail_fly:
            raise RuntimeError("Execution context was destroyed")
        self.events.append(f"fly_to:{view.name}")

    async def wait_for_transition_end(self, timeout_ms):
        self.events.append("transition_end")

    async def aircraft_position(self):
        self.events.append("aircraft?")
        return self.aircraft

    async def hide_controls(self):
        self.events.append("hide_controls")


def make_orchestrator(tmp_path, events, session_fail_on=None, **renderer_kwargs):
    clock = FakeClock(events)
    session = FakeSession(events, fail_on=session_fail_on)
    renderer = FakeRenderer(events, **renderer_kwargs)
    orchestrator = CaptureOrchestrator(
        render_url="http://localhost:3000",
        output_dir=tmp_path / "screenshots",
        overview=OVERVIEW,
        zoom=ZOOM,
        expected_aircraft=AIRCRAFT,
        session_factory=lambda: session,
        renderer_factory=lambda page: renderer,
        readiness_gate=ReadinessGate(
            timeout_ms=3_000, poll_interval_ms=1_000, clock=clock, sleep=clock.sleep
        ),
        tile_load_wait_ms=2_000,
        settle_delay_ms=1_000,
        sleep=clock.sleep,
    )
    return orchestrator, session


def index_of(events, item, start=0):
    return events.index(item, start)


class TestSuccessfulRun:
    def test_returns_overview_then_zoom(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events)

        results = asyncio.run(orchestrator.run())

        out = tmp_path / "screenshots"
        assert results == [
            CaptureResult(name="overview", path=out / "overview.png"),
            CaptureResult(name="zoom", path=out / "zoom.png"),
        ]
        assert all(r.path.exists() for r in results)
        assert orchestrator.state is CaptureState.DONE

    def test_state_sequence(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [])
        asyncio.run(orchestrator.run())

        assert orchestrator.transitions == [
            (CaptureState.IDLE, None),
            (CaptureState.INITIALIZING, None),
            (CaptureState.NAVIGATING, None),
            (CaptureState.WAITING_INITIAL_READY, None),
            (CaptureState.SETTING_VIEW, "overview"),
            (CaptureState.WAITING_VIEW_SETTLED, "overview"),
            (CaptureState.CAPTURING, "overview"),
            (CaptureState.SETTING_VIEW, "zoom"),
            (CaptureState.WAITING_VIEW_SETTLED, "zoom"),
            (CaptureState.CAPTURING, "zoom"),
            (CaptureState.DONE, None),
        ]

    def test_settle_waits_follow_transition_end(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events)
        asyncio.run(orchestrator.run())

        for name in ("overview", "zoom"):
            fly = index_of(events, f"fly_to:{name}")
            end = index_of(events, "transition_end", fly)
            assert events[end + 1:end + 3] == ["sleep:1.0", "sleep:2.0"]
            settled = index_of(events, "settled?", end)
            hide = index_of(events, "hide_controls", settled)
            assert events[hide + 1] == f"screenshot:{name}"

    def test_ready_checked_before_each_view_change(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events)
        asyncio.run(orchestrator.run())

        goto = index_of(events, "goto")
        assert events[goto + 1] == "ready?"
        for name in ("overview", "zoom"):
            fly = index_of(events, f"fly_to:{name}")
            assert events[fly - 1] == "ready?"

    def test_overview_captured_before_zoom(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events)
        asyncio.run(orchestrator.run())
        shots = [e for e in events if e.startswith("screenshot:")]
        assert shots == ["screenshot:overview", "screenshot:zoom"]

    def test_session_released_once(self, tmp_path):
        orchestrator, session = make_orchestrator(tmp_path, [])
        asyncio.run(orchestrator.run())
        asyncio.run(orchestrator.teardown())
        assert session.release_count == 1

    def test_creates_output_directory(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [])
        assert not (tmp_path / "screenshots").exists()
        asyncio.run(orchestrator.run())
        assert (tmp_path / "screenshots").is_dir()

    def test_single_use(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [])
        asyncio.run(orchestrator.run())
        with pytest.raises(RuntimeError):
            asyncio.run(orchestrator.run())


class TestAircraftCheck:
    def test_only_checked_for_zoom_view(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events)
        asyncio.run(orchestrator.run())
        assert events.count("aircraft?") == 1
        assert index_of(events, "aircraft?") > index_of(events, "fly_to:zoom")

    def test_mismatch_is_logged_not_fatal(self, tmp_path, caplog):
        far_away = GeoPoint(lon=-81.38, lat=28.43)
        orchestrator, _ = make_orchestrator(tmp_path, [], aircraft=far_away)
        with caplog.at_level(logging.WARNING, logger="src.capture"):
            results = asyncio.run(orchestrator.run())
        assert len(results) == 2
        assert "from configured position" in caplog.text


class TestFailedRun:
    def test_navigation_failure_writes_nothing(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [], session_fail_on="goto")
        with pytest.raises(NavigationError):
            asyncio.run(orchestrator.run())
        assert orchestrator.state is CaptureState.FAILED
        assert not list(tmp_path.rglob("*.png"))

    def test_zoom_failure_removes_overview(self, tmp_path):
        events = []
        orchestrator, _ = make_orchestrator(tmp_path, events, session_fail_on="screenshot:zoom")
        with pytest.raises(CaptureError):
            asyncio.run(orchestrator.run())
        assert "screenshot:overview" in events
        assert not (tmp_path / "screenshots" / "overview.png").exists()
        assert not list(tmp_path.rglob("*.png"))

    def test_view_never_settles(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [], never_settles=True)
        with pytest.raises(RenderTimeoutError) as exc_info:
            asyncio.run(orchestrator.run())
        assert "tiles_loaded" in exc_info.value.failing_checks
        assert orchestrator.transitions[-2] == (CaptureState.WAITING_VIEW_SETTLED, "overview")

    def test_unexpected_error_becomes_session_error(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [], fail_fly=True)
        with pytest.raises(SessionError) as exc_info:
            asyncio.run(orchestrator.run())
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_launch_failure(self, tmp_path):
        orchestrator, _ = make_orchestrator(tmp_path, [], session_fail_on="acquire")
        with pytest.raises(SessionError):
            asyncio.run(orchestrator.run())
        assert orchestrator.transitions[-2] == (CaptureState.INITIALIZING, None)

    def test_failed_run_leaves_release_to_teardown(self, tmp_path):
        orchestrator, session = make_orchestrator(tmp_path, [], session_fail_on="goto")
        with pytest.raises(NavigationError):
            asyncio.run(orchestrator.run())
        assert session.release_count == 0
        asyncio.run(orchestrator.teardown())
        asyncio.run(orchestrator.teardown())
        assert session.release_count == 1


class TestCancelledRun:
    def test_cancellation_marks_run_failed(self, tmp_path):
        orchestrator, session = make_orchestrator(tmp_path, [], session_fail_on="cancel")
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(orchestrator.run())
        assert orchestrator.state is CaptureState.FAILED
        assert session.release_count == 0

    def test_retry_policy_releases_cancelled_session(self, tmp_path):
        orchestrator, session = make_orchestrator(tmp_path, [], session_fail_on="cancel")

        async def no_sleep(seconds):
            pass

        policy = RetryPolicy(max_attempts=3, retry_delay_ms=0, sleep=no_sleep)
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(policy.run(lambda: orchestrator))
        assert session.release_count == 1
