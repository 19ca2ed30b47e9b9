"""
Browser runtime handle.

A BrowserHandle bundles a started Playwright driver with one launched
Chromium instance. Whoever creates a handle owns it and must close it;
code that merely borrows a handle (e.g. a search run given the tool
server's shared browser) opens its own contexts and never closes the
handle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from google_search.crawler.stealth import get_ignored_default_args, get_stealth_args
from google_search.search.errors import LaunchFailure
from google_search.utils.config import get_settings
from google_search.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = get_logger(__name__)


@dataclass
class BrowserHandle:
    """A launched browser plus the driver that launched it."""

    playwright: Playwright
    browser: Browser
    headless: bool
    _closed: bool = False

    @property
    def devices(self) -> dict[str, dict[str, Any]]:
        """Device descriptors known to the runtime."""
        return self.playwright.devices

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close the browser and stop the driver. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.browser.close()
        except Exception as e:
            logger.warning("Error closing browser", error=str(e))
        try:
            await self.playwright.stop()
        except Exception as e:
            logger.warning("Error stopping Playwright driver", error=str(e))
        logger.info("Browser handle closed", headless=self.headless)


def launch_timeout_ms(navigation_timeout_ms: int) -> int:
    """Browser launch timeout as a multiple of the navigation timeout."""
    multiplier = get_settings().browser.launch_timeout_multiplier
    return int(navigation_timeout_ms * multiplier)


async def launch_browser(headless: bool, timeout_ms: int) -> BrowserHandle:
    """Start Playwright and launch Chromium with stealth arguments.

    Args:
        headless: True for automated mode, False for assisted mode.
        timeout_ms: Navigation timeout; the launch timeout is derived from it.

    Returns:
        An owned BrowserHandle.

    Raises:
        LaunchFailure: If the driver or the browser could not be started.
    """
    from playwright.async_api import async_playwright

    logger.info("Launching browser", headless=headless)

    playwright = None
    try:
        playwright = await async_playwright().start()
        browser = await playwright.chromium.launch(
            headless=headless,
            timeout=launch_timeout_ms(timeout_ms),
            args=get_stealth_args(),
            ignore_default_args=get_ignored_default_args(),
        )
    except Exception as e:
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as stop_error:
                logger.debug("Driver stop after failed launch raised", error=str(stop_error))
        logger.error("Browser launch failed", headless=headless, error=str(e))
        raise LaunchFailure(
            f"Browser launch failed: {e}", details={"headless": headless}
        ) from e

    logger.info("Browser launched", headless=headless)
    return BrowserHandle(playwright=playwright, browser=browser, headless=headless)
