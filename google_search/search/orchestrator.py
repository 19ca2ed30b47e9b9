"""
Search orchestration.

Composes identity, session, browser runtime, challenge handling and
extraction into the two public operations:

- search() / execute_search(): query -> result records
- fetch_result_page_markup(): query -> sanitized result page markup

Each call is one run. A run makes at most two attempts: the first in
automated (headless) mode, and, if a challenge page is seen, a second in
assisted (headful) mode. Persistence of session and identity happens exactly
once per run, in the final attempt, on success and on failure alike.

Browser ownership:
- A BrowserHandle passed to the orchestrator is borrowed. The orchestrator
  opens and closes its own contexts on it but never closes the handle.
  On escalation the borrowed handle is abandoned and a new, owned, headful
  browser is launched instead.
- A browser launched by the orchestrator is owned and closed at the end of
  the attempt that launched it.
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import urlparse

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from google_search.crawler.browser import BrowserHandle, launch_browser
from google_search.crawler.challenge_detector import is_challenge
from google_search.crawler.execution_mode import (
    ChallengeCheckpoint,
    ExecutionMode,
    ExecutionModeController,
)
from google_search.crawler.fingerprint import (
    FingerprintStore,
    IdentityProfile,
    StoredIdentity,
    resolve_identity,
)
from google_search.crawler.session_store import SessionStateStore
from google_search.crawler.stealth import apply_context_stealth, apply_page_stealth
from google_search.extractor.html_normalizer import (
    default_markup_path,
    sanitize_markup,
    screenshot_path_for,
)
from google_search.search.errors import (
    EscalationRequired,
    InputNotFound,
    MarkupFetchError,
    NavigationTimeout,
    ResultContainerNotFound,
    StatePersistenceFailure,
)
from google_search.search.extractor import ContentExtractor
from google_search.search.schemas import (
    HtmlResponse,
    SearchOptions,
    SearchResponse,
    SearchResult,
)
from google_search.search.selector_config import PageSelectorsConfig, get_selectors_config
from google_search.utils.config import get_settings
from google_search.utils.logging import LogContext, get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, ElementHandle, Page

logger = get_logger(__name__)

T = TypeVar("T")

Launcher = Callable[[bool, int], Awaitable[BrowserHandle]]

# Device descriptor keys that are not new_context() options
_NON_CONTEXT_DEVICE_KEYS = frozenset({"default_browser_type"})

FAILED_RESULT_TITLE = "Search failed"


def _random_delay(bounds: tuple[int, int]) -> int:
    low, high = bounds
    return random.randint(low, high)


@dataclass
class _RunState:
    """Per-run values shared by both attempts."""

    query: str
    timeout_ms: int
    limit: int
    locale_hint: str | None
    save_state: bool
    session_store: SessionStateStore
    fingerprint_store: FingerprintStore
    stored_identity: StoredIdentity | None
    session_blob: dict[str, Any] | None
    controller: ExecutionModeController
    identity: IdentityProfile | None = None
    domain: str | None = None
    attempts: int = 0


class SearchOrchestrator:
    """
    Runs searches against the provider through a Playwright browser.

    Example:
        orchestrator = SearchOrchestrator()
        response = await orchestrator.search("playwright python", SearchOptions(limit=5))
    """

    def __init__(
        self,
        browser: BrowserHandle | None = None,
        *,
        launcher: Launcher = launch_browser,
        extractor: ContentExtractor | None = None,
        page_selectors: PageSelectorsConfig | None = None,
    ):
        """
        Args:
            browser: Borrowed browser to run on. Never closed by this class.
            launcher: Launches an owned browser (headless, timeout_ms).
            extractor: Result extractor. Default uses configured tables.
            page_selectors: Input/result/challenge tables. Default from config.
        """
        self._browser = browser
        self._launcher = launcher
        self._extractor = extractor or ContentExtractor()
        self._page_selectors = page_selectors

    @property
    def page_selectors(self) -> PageSelectorsConfig:
        return self._page_selectors or get_selectors_config().page

    # =========================================================================
    # Public operations
    # =========================================================================

    async def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        """Run a search, reporting fatal errors as a single error record.

        Returns:
            SearchResponse. On failure, results holds one record whose title
            is "Search failed", link is empty and snippet carries the message.
        """
        try:
            return await self.execute_search(query, options)
        except Exception as e:
            logger.error("Search failed", query=query, error=str(e), error_type=type(e).__name__)
            return SearchResponse(
                query=query,
                results=[
                    SearchResult(
                        title=FAILED_RESULT_TITLE,
                        link="",
                        snippet=f"Unable to complete the search: {e}",
                    )
                ],
            )

    async def execute_search(
        self, query: str, options: SearchOptions | None = None
    ) -> SearchResponse:
        """Run a search and return extracted records.

        Raises:
            LaunchFailure, NavigationTimeout, ChallengeUnresolved,
            InputNotFound, ResultContainerNotFound: On fatal pipeline errors.
        """
        options = options or SearchOptions()
        results = await self._run(query, options, self._collect_results)
        logger.info("Search completed", query=query, result_count=len(results))
        return SearchResponse(query=query, results=results)

    async def fetch_result_page_markup(
        self,
        query: str,
        options: SearchOptions | None = None,
        save_to_file: bool = False,
        output_path: str | None = None,
    ) -> HtmlResponse:
        """Run a search and return the sanitized result page markup.

        Args:
            query: Search query.
            options: Per-call options (limit is ignored).
            save_to_file: Write the markup and a full-page screenshot to disk.
            output_path: Markup file path. Auto-named under the configured
                HTML directory if None.

        Raises:
            MarkupFetchError: On any failure, chained to the cause.
        """
        options = options or SearchOptions()

        async def capture(page: Page, run: _RunState) -> HtmlResponse:
            return await self._capture_markup(page, run, save_to_file, output_path)

        try:
            return await self._run(query, options, capture)
        except MarkupFetchError:
            raise
        except Exception as e:
            logger.error("Markup fetch failed", query=query, error=str(e))
            raise MarkupFetchError(
                f"Failed to fetch result page markup: {e}",
                details={"query": query},
            ) from e

    # =========================================================================
    # Run / attempt loop
    # =========================================================================

    async def _run(
        self,
        query: str,
        options: SearchOptions,
        finish: Callable[[Page, _RunState], Awaitable[T]],
    ) -> T:
        timeout_ms = options.resolved_timeout()
        state_file = options.resolved_state_file()
        fingerprint_store = FingerprintStore(state_file)
        session_store = SessionStateStore(state_file)

        run = _RunState(
            query=query,
            timeout_ms=timeout_ms,
            limit=options.resolved_limit(),
            locale_hint=options.resolved_locale(),
            save_state=not options.no_save_state,
            session_store=session_store,
            fingerprint_store=fingerprint_store,
            stored_identity=fingerprint_store.load(),
            session_blob=session_store.load(),
            controller=ExecutionModeController(timeout_ms),
        )

        borrowed = self._browser
        with LogContext(query=query):
            while True:
                run.attempts += 1
                if borrowed is not None and run.controller.mode == ExecutionMode.AUTOMATED:
                    handle, owned = borrowed, False
                else:
                    handle = await self._launcher(run.controller.headless, timeout_ms)
                    owned = True

                logger.info(
                    "Starting search attempt",
                    attempt=run.attempts,
                    mode=run.controller.mode.value,
                    owned_browser=owned,
                )
                try:
                    return await self._attempt(handle, owned, run, finish)
                except EscalationRequired as signal:
                    logger.info(
                        "Attempt abandoned for assisted retry",
                        checkpoint=signal.checkpoint,
                        url=signal.url,
                    )
                    # The borrowed handle is never reused once escalated
                    borrowed = None

    async def _attempt(
        self,
        handle: BrowserHandle,
        owned: bool,
        run: _RunState,
        finish: Callable[[Page, _RunState], Awaitable[T]],
    ) -> T:
        context: BrowserContext | None = None
        page: Page | None = None
        escalated = False
        try:
            if run.identity is None:
                run.identity, _ = resolve_identity(
                    run.stored_identity, run.locale_hint, handle.devices
                )
            if run.domain is None:
                run.domain = self._select_domain(run.stored_identity)

            context = await self._new_context(handle, run.identity, run.session_blob)
            page = await context.new_page()
            await apply_page_stealth(page)

            await self._open_search_page(page, run)
            await self._submit_query(page, run)
            return await finish(page, run)
        except EscalationRequired:
            escalated = True
            raise
        finally:
            if not escalated and context is not None:
                await self._persist(context, run)
            await self._release(handle, owned, context, page)

    # =========================================================================
    # Context setup
    # =========================================================================

    def _context_options(
        self,
        handle: BrowserHandle,
        identity: IdentityProfile,
        session_blob: dict[str, Any] | None,
    ) -> dict[str, Any]:
        settings = get_settings()
        devices = handle.devices
        device = devices.get(identity.device_name) or devices.get(
            settings.browser.canonical_device, {}
        )
        options: dict[str, Any] = {
            k: v for k, v in dict(device).items() if k not in _NON_CONTEXT_DEVICE_KEYS
        }
        options.update(identity.context_options())
        options.update(
            permissions=list(settings.browser.permissions),
            accept_downloads=True,
            is_mobile=False,
            has_touch=False,
            java_script_enabled=True,
        )
        if session_blob is not None:
            options["storage_state"] = session_blob
        return options

    async def _new_context(
        self,
        handle: BrowserHandle,
        identity: IdentityProfile,
        session_blob: dict[str, Any] | None,
    ) -> BrowserContext:
        options = self._context_options(handle, identity, session_blob)
        context = await handle.browser.new_context(**options)
        await apply_context_stealth(context)
        logger.debug(
            "Browser context created",
            device=identity.device_name,
            locale=identity.locale,
            timezone=identity.timezone_id,
            with_session=session_blob is not None,
        )
        return context

    def _select_domain(self, stored: StoredIdentity | None) -> str:
        if stored is not None and stored.google_domain:
            logger.info("Using saved search domain", domain=stored.google_domain)
            return stored.google_domain
        domain = random.choice(get_settings().search.domains)
        logger.info("Selected search domain at random", domain=domain)
        return domain

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    async def _wait_network_idle(self, page: Page, run: _RunState, checkpoint: str) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=run.timeout_ms)
        except PlaywrightTimeoutError as e:
            self._escalate_on_challenge_timeout(page, run, checkpoint, e)
            raise NavigationTimeout(page.url, run.timeout_ms) from e

    def _escalate_on_challenge_timeout(
        self, page: Page, run: _RunState, checkpoint: str, error: Exception
    ) -> None:
        """A timeout while sitting on a challenge page in automated mode escalates."""
        if run.controller.mode == ExecutionMode.AUTOMATED and is_challenge(page.url):
            raise run.controller.escalate(checkpoint, page.url) from error

    async def _open_search_page(self, page: Page, run: _RunState) -> None:
        checkpoint = ChallengeCheckpoint.AFTER_NAVIGATION.value
        logger.info("Opening search page", domain=run.domain)
        try:
            response = await page.goto(run.domain, timeout=run.timeout_ms, wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            self._escalate_on_challenge_timeout(page, run, checkpoint, e)
            raise NavigationTimeout(run.domain, run.timeout_ms) from e

        response_url = response.url if response is not None else None
        if await run.controller.check(page, checkpoint, response_url):
            await self._wait_network_idle(page, run, checkpoint)

    async def _find_search_input(self, page: Page) -> ElementHandle:
        selectors = self.page_selectors.input_selectors
        for selector in selectors:
            element = await page.query_selector(selector)
            if element is not None:
                logger.debug("Search input found", selector=selector)
                return element
        logger.error("Search input not found", selectors=selectors)
        raise InputNotFound(list(selectors))

    async def _submit_query(self, page: Page, run: _RunState) -> None:
        delays = get_settings().search
        search_input = await self._find_search_input(page)

        await search_input.click()
        await page.keyboard.type(run.query, delay=_random_delay(delays.typing_delay_ms))
        await page.wait_for_timeout(_random_delay(delays.submit_delay_ms))
        await page.keyboard.press("Enter")

        logger.info("Query submitted, waiting for results page")
        checkpoint = ChallengeCheckpoint.AFTER_SUBMIT.value
        await self._wait_network_idle(page, run, checkpoint)
        if await run.controller.check(page, checkpoint):
            await self._wait_network_idle(page, run, checkpoint)

    async def _first_result_selector(self, page: Page, run: _RunState) -> str | None:
        divisor = get_settings().search.selector_wait_divisor
        per_selector_ms = int(run.timeout_ms / divisor)
        for selector in self.page_selectors.result_selectors:
            try:
                await page.wait_for_selector(selector, timeout=per_selector_ms)
            except PlaywrightTimeoutError:
                continue
            logger.info("Search results found", selector=selector)
            return selector
        return None

    async def _wait_for_results(self, page: Page, run: _RunState) -> None:
        if await self._first_result_selector(page, run) is not None:
            return

        if is_challenge(page.url):
            await run.controller.on_challenge(page, ChallengeCheckpoint.RESULT_WAIT.value)
            if await self._first_result_selector(page, run) is not None:
                return

        logger.error("Search result container not found", url=page.url)
        raise ResultContainerNotFound(list(self.page_selectors.result_selectors), page.url)

    async def _collect_results(self, page: Page, run: _RunState) -> list[SearchResult]:
        await self._wait_for_results(page, run)
        await page.wait_for_timeout(_random_delay(get_settings().search.results_delay_ms))

        excluded_hosts = [urlparse(run.domain).netloc] if run.domain else []
        return await self._extractor.extract(page, run.limit, excluded_hosts=excluded_hosts)

    async def _capture_markup(
        self,
        page: Page,
        run: _RunState,
        save_to_file: bool,
        output_path: str | None,
    ) -> HtmlResponse:
        settings = get_settings()
        final_url = page.url
        logger.info("Result page loaded, settling before capture", url=final_url)

        await page.wait_for_timeout(settings.search.markup_settle_ms)
        await self._wait_network_idle(page, run, ChallengeCheckpoint.AFTER_SUBMIT.value)

        full_html = await page.content()
        html = sanitize_markup(full_html)
        logger.info(
            "Result page markup captured",
            original_length=len(full_html),
            cleaned_length=len(html),
        )

        saved_path: Path | None = None
        screenshot_path: Path | None = None
        if save_to_file:
            if output_path:
                saved_path = Path(output_path)
            else:
                saved_path = default_markup_path(run.query, settings.storage.html_output_dir)
            saved_path.parent.mkdir(parents=True, exist_ok=True)
            saved_path.write_text(html, encoding="utf-8")
            logger.info("Sanitized markup saved", path=str(saved_path))

            screenshot_path = screenshot_path_for(saved_path)
            await page.screenshot(path=str(screenshot_path), full_page=True)
            logger.info("Page screenshot saved", path=str(screenshot_path))

        return HtmlResponse(
            query=run.query,
            html=html,
            url=final_url,
            saved_path=str(saved_path) if saved_path else None,
            screenshot_path=str(screenshot_path) if screenshot_path else None,
            original_html_length=len(full_html),
        )

    # =========================================================================
    # Persistence and teardown
    # =========================================================================

    async def _persist(self, context: BrowserContext, run: _RunState) -> None:
        if not run.save_state:
            logger.info("State persistence disabled for this call")
            return

        try:
            await run.session_store.save(context)
        except StatePersistenceFailure as e:
            logger.error("Session state not saved", error=e.message, **e.details)

        if run.identity is None:
            return
        try:
            run.fingerprint_store.save(run.identity, run.domain)
        except StatePersistenceFailure as e:
            logger.error("Fingerprint not saved", error=e.message, **e.details)

    async def _release(
        self,
        handle: BrowserHandle,
        owned: bool,
        context: BrowserContext | None,
        page: Page | None,
    ) -> None:
        if page is not None:
            try:
                await page.close()
            except Exception as e:
                logger.debug("Page close failed", error=str(e))
        if context is not None:
            try:
                await context.close()
            except Exception as e:
                logger.debug("Context close failed", error=str(e))
        if owned:
            await handle.close()
        else:
            logger.info("Keeping borrowed browser open")


async def search(
    query: str,
    options: SearchOptions | None = None,
    browser: BrowserHandle | None = None,
) -> SearchResponse:
    """Convenience wrapper: one-off search with an optional borrowed browser."""
    return await SearchOrchestrator(browser).search(query, options)


async def fetch_result_page_markup(
    query: str,
    options: SearchOptions | None = None,
    save_to_file: bool = False,
    output_path: str | None = None,
    browser: BrowserHandle | None = None,
) -> HtmlResponse:
    """Convenience wrapper around SearchOrchestrator.fetch_result_page_markup()."""
    return await SearchOrchestrator(browser).fetch_result_page_markup(
        query, options, save_to_file=save_to_file, output_path=output_path
    )
