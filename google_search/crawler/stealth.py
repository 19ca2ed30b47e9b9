"""
Browser stealth utilities for google-search.

Minimal anti-automation measures applied to every context:
- navigator.webdriver / plugins / languages overrides
- window.chrome stub
- WebGL vendor/renderer masking
- Fixed desktop screen metrics

Note: The identity profile (locale, timezone, appearance) is applied through
context options, not scripts, so it stays consistent across runs.
"""

from typing import TYPE_CHECKING

from google_search.utils.config import get_settings
from google_search.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

logger = get_logger(__name__)


# =============================================================================
# Stealth JavaScript Injections
# =============================================================================

STEALTH_JS = """
(() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => false });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5],
    });
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en', 'zh-CN'],
    });

    window.chrome = {
        runtime: {},
        loadTimes: function () {},
        csi: function () {},
        app: {},
    };

    // UNMASKED_VENDOR_WEBGL (37445) / UNMASKED_RENDERER_WEBGL (37446)
    if (typeof WebGLRenderingContext !== 'undefined') {
        const getParameter = WebGLRenderingContext.prototype.getParameter;
        WebGLRenderingContext.prototype.getParameter = function (parameter) {
            if (parameter === 37445) {
                return 'Intel Inc.';
            }
            if (parameter === 37446) {
                return 'Intel Iris OpenGL Engine';
            }
            return getParameter.call(this, parameter);
        };
    }
})();
"""

SCREEN_JS_TEMPLATE = """
(() => {{
    Object.defineProperty(window.screen, 'width', {{ get: () => {width} }});
    Object.defineProperty(window.screen, 'height', {{ get: () => {height} }});
    Object.defineProperty(window.screen, 'colorDepth', {{ get: () => {depth} }});
    Object.defineProperty(window.screen, 'pixelDepth', {{ get: () => {depth} }});
}})();
"""


def get_screen_js() -> str:
    """Build the screen-metrics init script from settings."""
    browser = get_settings().browser
    return SCREEN_JS_TEMPLATE.format(
        width=browser.screen_width,
        height=browser.screen_height,
        depth=browser.color_depth,
    )


def get_stealth_args() -> list[str]:
    """Get Chromium launch arguments for stealth operation."""
    return list(get_settings().browser.launch_args)


def get_ignored_default_args() -> list[str]:
    """Default Playwright arguments to drop (e.g. --enable-automation)."""
    return list(get_settings().browser.ignore_default_args)


async def apply_context_stealth(context: "BrowserContext") -> None:
    """Install the navigator/WebGL masking script on a context."""
    await context.add_init_script(STEALTH_JS)
    logger.debug("Context stealth script installed")


async def apply_page_stealth(page: "Page") -> None:
    """Install the screen-metrics script on a page."""
    await page.add_init_script(get_screen_js())
