"""
Pytest fixtures and configuration for google-search tests.

Markers:
- @pytest.mark.unit: Single class/function, no external dependencies.
  DEFAULT: tests without a marker are classified as unit.
- @pytest.mark.integration: Several components together, browser mocked.
- @pytest.mark.e2e: Real browser and network. Excluded by default
  (pyproject addopts); run with `pytest -m e2e`.

Mock Strategy:
- Playwright objects (driver, browser, context, page) are always mocked
  with MagicMock/AsyncMock; no test launches a browser.
- File I/O uses tmp_path.
- Settings and selector tables are read from the repository's config/
  directory and reset after every test.
"""

import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault(
    "GOOGLE_SEARCH_CONFIG_DIR", str(Path(__file__).resolve().parent.parent / "config")
)

from google_search.crawler.browser import BrowserHandle  # noqa: E402
from google_search.search.selector_config import reset_selectors_config  # noqa: E402
from google_search.utils.config import get_settings  # noqa: E402

DESKTOP_CHROME = {
    "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0 Safari/537.36",
    "viewport": {"width": 1280, "height": 720},
    "device_scale_factor": 1,
    "is_mobile": False,
    "has_touch": False,
    "default_browser_type": "chromium",
}

SERP_HTML = """
<html><body>
<div id="search">
  <div data-hveid="1">
    <a href="https://example.com/one"><h3>Result One</h3></a>
    <div class="VwiC3b">First result snippet text</div>
  </div>
  <div data-hveid="2">
    <h3><a href="https://example.org/two">Result Two</a></h3>
    <div class="VwiC3b">Second result snippet text</div>
  </div>
</div>
</body></html>
"""

SEARCH_URL = "https://www.google.com/search?q=test"
SORRY_URL = "https://www.google.com/sorry/index?continue=https://www.google.com/"


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line("markers", "unit: Unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "integration: Integration tests with mocked browser runtime"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring a real browser (excluded by default)"
    )


def pytest_collection_modifyitems(config, items):
    """Tests without an explicit classification marker are unit tests."""
    for item in items:
        if not any(m.name in ("unit", "integration", "e2e") for m in item.iter_markers()):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_config_caches():
    """Reset cached settings and selector tables between tests."""
    get_settings.cache_clear()
    reset_selectors_config()
    yield
    get_settings.cache_clear()
    reset_selectors_config()


# =============================================================================
# Playwright doubles
# =============================================================================


def make_mock_page(
    url: str = SEARCH_URL,
    html: str = SERP_HTML,
    response_url: str | None = None,
) -> MagicMock:
    """Page double that walks through a successful search by default."""
    page = MagicMock()
    page.url = url

    response = MagicMock()
    response.url = response_url or url
    page.goto = AsyncMock(return_value=response)

    search_input = MagicMock()
    search_input.click = AsyncMock()
    page.query_selector = AsyncMock(return_value=search_input)

    page.keyboard = MagicMock()
    page.keyboard.type = AsyncMock()
    page.keyboard.press = AsyncMock()

    page.wait_for_load_state = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.wait_for_url = AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.screenshot = AsyncMock()
    page.add_init_script = AsyncMock()
    page.close = AsyncMock()
    return page


def make_mock_context(page: MagicMock, blob: dict[str, Any] | None = None) -> MagicMock:
    """Context double whose storage_state() writes a blob the way Playwright does."""
    blob = blob if blob is not None else {"cookies": [{"name": "NID", "value": "1"}], "origins": []}
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()

    async def storage_state(path: str | None = None) -> dict[str, Any]:
        if path is not None:
            Path(path).write_text(json.dumps(blob), encoding="utf-8")
        return blob

    context.storage_state = AsyncMock(side_effect=storage_state)
    return context


def make_mock_handle(page: MagicMock, headless: bool = True) -> BrowserHandle:
    """BrowserHandle around mocked driver/browser yielding the given page."""
    context = make_mock_context(page)

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.devices = {"Desktop Chrome": dict(DESKTOP_CHROME)}
    playwright.stop = AsyncMock()

    return BrowserHandle(playwright=playwright, browser=browser, headless=headless)


@pytest.fixture
def mock_page() -> MagicMock:
    return make_mock_page()


@pytest.fixture
def mock_handle(mock_page: MagicMock) -> BrowserHandle:
    return make_mock_handle(mock_page)


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "browser-state.json"


@pytest.fixture
def make_page():
    """Factory for page doubles: make_page(url=..., html=..., response_url=...)."""
    return make_mock_page


@pytest.fixture
def make_handle():
    """Factory for BrowserHandle doubles: make_handle(page, headless=True)."""
    return make_mock_handle
