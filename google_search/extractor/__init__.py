"""
Markup processing for saved result pages.
"""

from google_search.extractor.html_normalizer import (
    default_markup_path,
    sanitize_markup,
    screenshot_path_for,
)

__all__ = [
    "sanitize_markup",
    "default_markup_path",
    "screenshot_path_for",
]
