"""
Retry policy around whole capture runs.

Each attempt builds a fresh orchestrator (and with it a fresh browser
session). The delay between attempts is constant.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional

from config import SCREENSHOT_CONFIG
from src.capture import CaptureOrchestrator, CaptureResult
from src.errors import ConfigurationError, ExhaustedRetriesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryState:
    """Position within the retry budget. Attempts are 1-indexed."""
    attempt: int
    max_attempts: int
    retry_delay_ms: float

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if not 1 <= self.attempt <= self.max_attempts:
            raise ValueError(f"attempt {self.attempt} outside 1..{self.max_attempts}")

    @property
    def has_remaining(self) -> bool:
        return self.attempt < self.max_attempts

    def advance(self) -> RetryState:
        return replace(self, attempt=self.attempt + 1)


class RetryPolicy:
    """Retries a full capture run up to a fixed number of attempts."""

    def __init__(
        self,
        max_attempts: int = SCREENSHOT_CONFIG["max_retries"],
        retry_delay_ms: float = SCREENSHOT_CONFIG["retry_delay_ms"],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.retry_delay_ms = retry_delay_ms
        self._sleep = sleep

    async def run(
        self,
        orchestrator_factory: Callable[[], CaptureOrchestrator],
        max_attempts: Optional[int] = None,
        retry_delay_ms: Optional[float] = None,
    ) -> List[CaptureResult]:
        """
        Run captures until one succeeds or the budget is spent.

        Args:
            orchestrator_factory: Builds a new orchestrator for each attempt.
            max_attempts: Override the policy's attempt budget.
            retry_delay_ms: Override the policy's delay between attempts.

        Returns:
            The successful attempt's capture results.

        Raises:
            ConfigurationError: Immediately, without retrying.
            ExhaustedRetriesError: After max_attempts failures, carrying the
                last underlying error.
        """
        state = RetryState(
            attempt=1,
            max_attempts=self.max_attempts if max_attempts is None else max_attempts,
            retry_delay_ms=self.retry_delay_ms if retry_delay_ms is None else retry_delay_ms,
        )
        return await self._attempt(orchestrator_factory, state)

    async def _attempt(
        self,
        orchestrator_factory: Callable[[], CaptureOrchestrator],
        state: RetryState,
    ) -> List[CaptureResult]:
        logger.info(f"=== Screenshot capture attempt {state.attempt}/{state.max_attempts} ===")

        orchestrator = orchestrator_factory()
        try:
            results = await orchestrator.run()
        except ConfigurationError:
            await self._teardown(orchestrator)
            raise
        except Exception as e:
            error = e
            await self._teardown(orchestrator)
        except BaseException:
            logger.warning(f"Capture attempt {state.attempt} interrupted; releasing browser")
            await self._teardown(orchestrator)
            raise
        else:
            logger.info(f"Capture succeeded on attempt {state.attempt}")
            return results

        logger.warning(
            f"Capture attempt {state.attempt} failed: {type(error).__name__}: {error}"
        )
        if not state.has_remaining:
            logger.error(f"All {state.max_attempts} capture attempts failed")
            raise ExhaustedRetriesError(state.attempt, error) from error

        logger.info(f"Retrying in {state.retry_delay_ms:.0f}ms...")
        await self._sleep(state.retry_delay_ms / 1000)
        return await self._attempt(orchestrator_factory, state.advance())

    async def _teardown(self, orchestrator: CaptureOrchestrator) -> None:
        """Release the attempt's session; a failed release must not mask the run's error."""
        try:
            await orchestrator.teardown()
        except Exception as e:
            logger.warning(f"Ignoring error during session teardown: {e}")
