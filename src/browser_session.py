"""
Headless browser session for screenshot capture.

Owns one Chromium instance, one browser context, and one page, configured
with a fixed viewport and device scale factor so every screenshot has the
same pixel size regardless of the host display. A session is acquired once
and released once; it is never reused after release.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from config import CHROMIUM_ARGS, DEVICE_SCALE_FACTOR, HEADLESS, USER_AGENT, VIEWPORT
from src.errors import CaptureError, NavigationError, SessionError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def read_png_size(data: bytes) -> Tuple[int, int]:
    """
    Read (width, height) from a PNG's IHDR chunk.

    Raises:
        ValueError: If data is not a PNG.
    """
    if len(data) < 24 or not data.startswith(PNG_SIGNATURE) or data[12:16] != b"IHDR":
        raise ValueError("Not a PNG image")
    width, height = struct.unpack(">II", data[16:24])
    return width, height


def write_atomically(path: Path, data: bytes) -> None:
    """Write data to a sibling temp file, then rename it over path."""
    tmp_path = path.with_name(f".{path.name}.partial")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class BrowserSession:
    """A single headless Chromium page with a fixed viewport."""

    def __init__(
        self,
        viewport: Optional[Dict[str, int]] = None,
        device_scale_factor: float = DEVICE_SCALE_FACTOR,
        headless: bool = HEADLESS,
        user_agent: str = USER_AGENT,
        launch_args: Optional[List[str]] = None,
    ):
        self.viewport = dict(viewport or VIEWPORT)
        self.device_scale_factor = device_scale_factor
        self.headless = headless
        self.user_agent = user_agent
        self.launch_args = list(CHROMIUM_ARGS if launch_args is None else launch_args)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._acquired = False
        self._released = False

    @property
    def expected_size(self) -> Tuple[int, int]:
        """Pixel size every screenshot from this session must have."""
        return (
            int(round(self.viewport["width"] * self.device_scale_factor)),
            int(round(self.viewport["height"] * self.device_scale_factor)),
        )

    @property
    def is_active(self) -> bool:
        return self._acquired and not self._released

    @property
    def page(self) -> Page:
        if not self.is_active or self._page is None:
            raise SessionError("Browser session is not active")
        return self._page

    async def acquire(self) -> BrowserSession:
        """
        Launch Chromium and open the page.

        Raises:
            SessionError: If the browser fails to launch or the session was
                already acquired.
        """
        if self._acquired:
            raise SessionError("Browser session already acquired")
        self._acquired = True

        logger.info(
            f"Launching Chromium (headless={self.headless}, "
            f"viewport={self.viewport['width']}x{self.viewport['height']}, "
            f"scale={self.device_scale_factor})"
        )
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=self.launch_args,
            )
            self._context = await self._browser.new_context(
                viewport=self.viewport,
                device_scale_factor=self.device_scale_factor,
                user_agent=self.user_agent,
            )
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self.release()
            raise SessionError(f"Failed to launch browser: {e}") from e

        logger.info("Browser session ready")
        return self

    async def goto(self, url: str, timeout_ms: float, wait_until: str = "networkidle") -> None:
        """
        Load the render target.

        Raises:
            NavigationError: On timeout, network failure, or an HTTP error status.
        """
        logger.info(f"Navigating to {url}")
        try:
            response = await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out after {timeout_ms}ms loading {url}") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e

        # file:// targets have no response object
        if response is not None and not response.ok:
            raise NavigationError(f"Render target {url} returned HTTP {response.status}")

    async def screenshot(self, path: Path) -> Path:
        """
        Capture the viewport as a PNG and write it to path.

        The file appears only once it is complete and its dimensions match
        the session's expected size.

        Raises:
            CaptureError: If the capture, validation, or write fails.
        """
        try:
            data = await self.page.screenshot(type="png", full_page=False)
        except PlaywrightError as e:
            raise CaptureError(f"Screenshot failed: {e}") from e

        try:
            size = read_png_size(data)
        except ValueError as e:
            raise CaptureError(f"Screenshot is not a valid PNG: {e}") from e
        if size != self.expected_size:
            raise CaptureError(
                f"Screenshot is {size[0]}x{size[1]}, "
                f"expected {self.expected_size[0]}x{self.expected_size[1]}"
            )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            write_atomically(path, data)
        except OSError as e:
            raise CaptureError(f"Could not write {path}: {e}") from e

        logger.info(f"Saved {size[0]}x{size[1]} screenshot to {path}")
        return path

    async def release(self) -> None:
        """Close page, context, browser and driver. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None

        try:
            try:
                if context is not None:
                    await context.close()
            finally:
                if browser is not None:
                    await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
        logger.info("Browser session released")

    async def __aenter__(self) -> BrowserSession:
        return await self.acquire()

    async def __aexit__(self, *args) -> None:
        await self.release()
