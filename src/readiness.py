"""
Readiness polling for the render target.

A readiness predicate returns a mapping of independently named boolean
checks (or a single bool). One poll succeeds only if every check holds in
that same observation; checks that passed on earlier polls do not count.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Dict, Mapping, Union

from config import SCREENSHOT_CONFIG
from src.errors import RenderTimeoutError

logger = logging.getLogger(__name__)

CheckResult = Union[bool, Mapping[str, bool]]
Predicate = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]


def _normalize(result: CheckResult) -> Dict[str, bool]:
    if isinstance(result, Mapping):
        if not result:
            raise ValueError("Readiness predicate returned no checks")
        return {name: bool(ok) for name, ok in result.items()}
    return {"ready": bool(result)}


class ReadinessGate:
    """Polls a predicate at a fixed interval until it holds or a timeout elapses."""

    def __init__(
        self,
        timeout_ms: float = SCREENSHOT_CONFIG["readiness_timeout_ms"],
        poll_interval_ms: float = SCREENSHOT_CONFIG["poll_interval_ms"],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            timeout_ms: Default time budget for one wait.
            poll_interval_ms: Default delay between polls.
            clock: Monotonic clock in seconds.
            sleep: Async sleep taking seconds.
        """
        if poll_interval_ms <= 0:
            raise ValueError(f"Poll interval must be positive, got {poll_interval_ms}")
        self.timeout_ms = timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock
        self._sleep = sleep

    async def wait(
        self,
        predicate: Predicate,
        name: str = "render target",
        timeout_ms: float | None = None,
        poll_interval_ms: float | None = None,
    ) -> int:
        """
        Block until every check in predicate() holds.

        Args:
            predicate: Callable (sync or async) returning the named checks.
            name: What is being waited on, for logs and errors.
            timeout_ms: Override the gate's default timeout.
            poll_interval_ms: Override the gate's default poll interval.

        Returns:
            Number of polls it took.

        Raises:
            RenderTimeoutError: If the checks never all held before the timeout,
                or a single poll did not answer in time.
            ValueError: If the predicate returns an empty mapping of checks.
        """
        timeout_s = (self.timeout_ms if timeout_ms is None else timeout_ms) / 1000
        interval_s = (
            self.poll_interval_ms if poll_interval_ms is None else poll_interval_ms
        ) / 1000

        start = self._clock()
        deadline = start + timeout_s
        polls = 0

        while True:
            polls += 1
            result = predicate()
            if inspect.isawaitable(result):
                # A hung page must not outlive the timeout; allow at least one interval
                poll_budget = max(deadline - self._clock(), interval_s)
                try:
                    result = await asyncio.wait_for(result, poll_budget)
                except asyncio.TimeoutError:
                    elapsed_ms = (self._clock() - start) * 1000
                    raise RenderTimeoutError(
                        f"{name} poll {polls} got no answer within {poll_budget * 1000:.0f}ms "
                        f"({elapsed_ms:.0f}ms into the wait)",
                        failing_checks=["poll_response"],
                    ) from None
            checks = _normalize(result)
            failing = [check for check, ok in checks.items() if not ok]

            if not failing:
                logger.debug(f"[{name}] ready after {polls} poll(s)")
                return polls

            now = self._clock()
            logger.debug(f"[{name}] poll {polls}: waiting on {', '.join(failing)}")
            if now >= deadline:
                elapsed_ms = (now - start) * 1000
                raise RenderTimeoutError(
                    f"{name} not ready after {elapsed_ms:.0f}ms "
                    f"({polls} polls); failing checks: {', '.join(failing)}",
                    failing_checks=failing,
                )

            await self._sleep(min(interval_s, deadline - now))
