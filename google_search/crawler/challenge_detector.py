"""Challenge page detection by URL.

The search provider redirects suspected automation to a human-verification
interstitial. Detection only looks at URLs (the current page location and
the location the navigation response ended on), never at page content.
"""

from collections.abc import Iterable

from google_search.search.selector_config import get_selectors_config


def get_challenge_markers() -> list[str]:
    """Get the configured challenge URL markers."""
    return get_selectors_config().page.challenge_markers


def _url_has_marker(url: str | None, markers: Iterable[str]) -> bool:
    if not url:
        return False
    return any(marker in url for marker in markers)


def is_challenge(
    current_url: str | None,
    response_url: str | None = None,
    markers: Iterable[str] | None = None,
) -> bool:
    """Check whether either URL points at a human-verification page.

    Args:
        current_url: The page's current location.
        response_url: Final URL of the navigation response, if any.
        markers: Substring markers. Uses the configured markers if None.

    Returns:
        True if either URL contains any marker.
    """
    marker_list = list(markers) if markers is not None else get_challenge_markers()
    return _url_has_marker(current_url, marker_list) or _url_has_marker(
        response_url, marker_list
    )


def is_clear(url: str, markers: Iterable[str] | None = None) -> bool:
    """Inverse of is_challenge for a single URL (used as a wait predicate)."""
    return not is_challenge(url, None, markers)
