"""
HTML sanitizing for saved result pages.

Strips presentation and behaviour (style blocks, stylesheet links, scripts)
so the saved markup holds only document structure and text.
"""

import re
from datetime import datetime, timezone
from pathlib import Path

from google_search.utils.logging import get_logger

logger = get_logger(__name__)

_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.DOTALL | re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.DOTALL | re.IGNORECASE)
_STYLESHEET_LINK_RE = re.compile(
    r"<link\s+[^>]*rel=[\"']stylesheet[\"'][^>]*>", re.IGNORECASE
)
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9]")

MAX_QUERY_FILENAME_LENGTH = 50


def sanitize_markup(html: str) -> str:
    """Remove <style>, <script> and stylesheet <link> elements.

    Args:
        html: Raw page markup.

    Returns:
        Markup without style or script content.
    """
    if not html:
        return html

    cleaned = _STYLE_RE.sub("", html)
    cleaned = _STYLESHEET_LINK_RE.sub("", cleaned)
    cleaned = _SCRIPT_RE.sub("", cleaned)

    logger.debug(
        "Markup sanitized",
        original_length=len(html),
        cleaned_length=len(cleaned),
    )
    return cleaned


def default_markup_path(query: str, output_dir: str | Path, now: datetime | None = None) -> Path:
    """Auto-generated file name: <dir>/<query, alphanumerics only>-<timestamp>.html"""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3] + "Z"
    safe_query = _UNSAFE_FILENAME_RE.sub("_", query)[:MAX_QUERY_FILENAME_LENGTH]
    return Path(output_dir) / f"{safe_query}-{timestamp}.html"


def screenshot_path_for(markup_path: str | Path) -> Path:
    """Screenshot saved beside the markup file, same name with .png."""
    return Path(markup_path).with_suffix(".png")
