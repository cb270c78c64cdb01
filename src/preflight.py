"""
Render target reachability check.

Run once before the first capture attempt so a dev server that was never
started fails fast instead of burning the whole retry budget.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

PREFLIGHT_TIMEOUT_S = 10


def probe_render_target(url: str, timeout: float = PREFLIGHT_TIMEOUT_S) -> bool:
    """
    Check that an http(s) render target answers.

    Non-HTTP targets (file://) are not probed and count as reachable.

    Returns:
        True if the target responded with a non-error status.
    """
    scheme = urlparse(url).scheme
    if scheme not in ("http", "https"):
        logger.info(f"Skipping preflight for {scheme or 'local'} target {url}")
        return True

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Render target {url} is not reachable: {e}")
        return False

    logger.info(f"Render target {url} answered HTTP {response.status_code}")
    return True
