"""
Error types raised by the capture pipeline.

ConfigurationError is fatal. Everything under CaptureRunError fails the
current run and is eligible for retry.
"""

from __future__ import annotations

from typing import Iterable, Optional


class FlightCaptureError(Exception):
    """Base class for all capture pipeline errors."""


class ConfigurationError(FlightCaptureError):
    """Invalid or missing coordinates or settings. Never retried."""


class CaptureRunError(FlightCaptureError):
    """A single capture run failed; the retry policy may try again."""


class NavigationError(CaptureRunError):
    """The render target failed to load within the navigation timeout."""


class RenderTimeoutError(CaptureRunError):
    """A readiness predicate never held within its timeout."""

    def __init__(self, message: str, failing_checks: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.failing_checks = list(failing_checks or [])


class CaptureError(CaptureRunError):
    """Writing a screenshot failed (I/O, directory, or encoding)."""


class SessionError(CaptureRunError):
    """The browser or page crashed or failed to launch."""


class ExhaustedRetriesError(FlightCaptureError):
    """Every attempt in the retry budget failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            f"Capture failed after {attempts} attempt(s): "
            f"{type(last_error).__name__}: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
