"""
Search result extraction.

Two passes over the rendered result page:

1. Primary pass: ordered strategy descriptors (container, title, snippet).
   Containers are visited in document order; the first strategies win.
2. Fallback pass: runs only while results are short of the limit. Scans
   absolute HTTP anchors, skipping provider-internal links, and derives a
   snippet from the nearest sufficiently long ancestor text.

Results are unique by link within one extraction (first occurrence wins)
and always carry a non-empty title and an http(s) link. Extraction never
raises: a strategy that errors is logged and skipped, and whatever was
gathered so far is returned.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from google_search.search.schemas import SearchResult
from google_search.search.selector_config import (
    ExtractionConfig,
    ExtractionStrategy,
    get_selectors_config,
)
from google_search.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

HTTP_SCHEMES = ("http://", "https://")


def _text(element: Tag | None) -> str:
    if element is None:
        return ""
    return element.get_text(" ", strip=True)


def _resolve_href(anchor: Tag | None, base_url: str) -> str:
    """Absolute URL of an anchor, the way the browser resolves a.href."""
    if anchor is None:
        return ""
    href = anchor.get("href")
    if not isinstance(href, str) or not href.strip():
        return ""
    return urljoin(base_url, href.strip())


class _Collector:
    """Accumulates results for one extraction, enforcing uniqueness and the limit."""

    def __init__(self, max_results: int):
        self.max_results = max_results
        self.results: list[SearchResult] = []
        self.seen: set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.results) >= self.max_results

    def add(self, title: str, link: str, snippet: str) -> bool:
        if not title or not link or link in self.seen:
            return False
        self.results.append(SearchResult(title=title, link=link, snippet=snippet))
        self.seen.add(link)
        return True


def _find_result_link(container: Tag, title_elem: Tag, base_url: str) -> str:
    """Link inside the title, else enclosing anchor, else first anchor in the container."""
    inner = title_elem.find("a")
    if isinstance(inner, Tag):
        return _resolve_href(inner, base_url)

    current: Tag | None = title_elem
    while current is not None and current.name != "a":
        current = current.parent if isinstance(current.parent, Tag) else None
    if current is not None:
        return _resolve_href(current, base_url)

    return _resolve_href(container.find("a"), base_url)


def _find_snippet(
    container: Tag,
    strategy: ExtractionStrategy,
    config: ExtractionConfig,
) -> str:
    primary = container.select_one(strategy.snippet)
    if primary is not None:
        # An existing but empty primary node still decides the snippet
        return _text(primary)

    for selector in config.fallback_snippet_selectors:
        element = container.select_one(selector)
        if element is not None:
            snippet = _text(element)
            break
    else:
        snippet = ""

    if snippet:
        return snippet

    for block in container.select(config.snippet_block_selector):
        if block.select_one(strategy.title) is not None:
            continue
        text = _text(block)
        if len(text) > config.min_snippet_length:
            return text
    return ""


def _apply_strategy(
    soup: BeautifulSoup,
    strategy: ExtractionStrategy,
    base_url: str,
    config: ExtractionConfig,
    collector: _Collector,
) -> None:
    for container in soup.select(strategy.container):
        if collector.full:
            break
        title_elem = container.select_one(strategy.title)
        if title_elem is None:
            continue

        link = _find_result_link(container, title_elem, base_url)
        if not link.startswith(HTTP_SCHEMES) or link in collector.seen:
            continue

        collector.add(_text(title_elem), link, _find_snippet(container, strategy, config))


def _primary_pass(
    soup: BeautifulSoup,
    base_url: str,
    config: ExtractionConfig,
    collector: _Collector,
) -> None:
    for strategy in config.strategies:
        if collector.full:
            break
        # Records added before a failure are kept; the rest of the strategy is skipped
        try:
            _apply_strategy(soup, strategy, base_url, config, collector)
        except Exception as e:
            logger.warning(
                "Extraction strategy failed",
                container=strategy.container,
                title=strategy.title,
                snippet=strategy.snippet,
                error=str(e),
            )


def _fallback_pass(
    soup: BeautifulSoup,
    base_url: str,
    config: ExtractionConfig,
    collector: _Collector,
    excluded: list[str],
) -> None:
    for anchor in soup.select(config.fallback_anchor_selector):
        if collector.full:
            break
        link = _resolve_href(anchor, base_url)
        if not link.startswith(HTTP_SCHEMES) or link in collector.seen:
            continue
        if any(marker in link for marker in excluded):
            continue

        title = _text(anchor)
        if not title:
            continue

        snippet = ""
        parent = anchor.parent
        for _ in range(config.ancestor_levels):
            if not isinstance(parent, Tag) or isinstance(parent, BeautifulSoup):
                break
            text = _text(parent)
            if len(text) > config.min_snippet_length and text != title:
                snippet = text
                break
            parent = parent.parent

        collector.add(title, link, snippet)


def extract_from_html(
    html: str,
    base_url: str,
    max_results: int,
    config: ExtractionConfig | None = None,
    excluded_hosts: Iterable[str] = (),
) -> list[SearchResult]:
    """Extract result records from result-page markup.

    Args:
        html: Rendered page markup.
        base_url: Page URL, used to resolve relative hrefs.
        max_results: Upper bound on returned records.
        config: Extraction tables. Uses the configured tables if None.
        excluded_hosts: Extra link markers excluded from the fallback pass
            (typically the selected search domain's host).

    Returns:
        At most max_results records, possibly empty.
    """
    if max_results <= 0:
        return []

    config = config or get_selectors_config().extraction
    collector = _Collector(max_results)

    soup = BeautifulSoup(html or "", "html.parser")

    _primary_pass(soup, base_url, config, collector)
    primary_count = len(collector.results)

    if not collector.full:
        excluded = list(config.excluded_link_markers) + [h for h in excluded_hosts if h]
        try:
            _fallback_pass(soup, base_url, config, collector, excluded)
        except Exception as e:
            logger.warning("Fallback extraction failed", error=str(e))

    logger.debug(
        "Extraction finished",
        primary=primary_count,
        fallback=len(collector.results) - primary_count,
    )
    return collector.results[:max_results]


class ContentExtractor:
    """Runs the extraction passes against a live page."""

    def __init__(self, config: ExtractionConfig | None = None):
        self._config = config

    @property
    def config(self) -> ExtractionConfig:
        return self._config or get_selectors_config().extraction

    async def extract(
        self,
        page: Page,
        max_results: int,
        excluded_hosts: Iterable[str] = (),
    ) -> list[SearchResult]:
        """Extract up to max_results records from the page's current DOM.

        Returns an empty list if the page content cannot be read.
        """
        try:
            html = await page.content()
        except Exception as e:
            logger.warning("Could not read page content for extraction", error=str(e))
            return []

        results = extract_from_html(
            html,
            page.url,
            max_results,
            config=self.config,
            excluded_hosts=excluded_hosts,
        )
        logger.info("Extracted search results", count=len(results))
        return results
