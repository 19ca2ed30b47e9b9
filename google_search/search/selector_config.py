"""
Selector table configuration.

Loads the ordered selector tables used by the search pipeline from
config/selectors.yaml, falling back to built-in defaults.

Design Philosophy:
- Selectors are data, not branching code: every list is ordered and
  "first match in list order wins"
- Tables are passed into the extractor and orchestrator explicitly so they
  can be tested against fixture HTML without a live page
- Markup drift is fixed by editing YAML, not code
"""

from __future__ import annotations

import threading

from pydantic import BaseModel, Field, field_validator

from google_search.utils.config import get_config_dir, load_yaml_with_local_override
from google_search.utils.logging import get_logger

logger = get_logger(__name__)


def _strip_selectors(values: list[str]) -> list[str]:
    cleaned = []
    for value in values:
        if not value or not value.strip():
            raise ValueError("Selector cannot be empty")
        cleaned.append(value.strip())
    return cleaned


class ExtractionStrategy(BaseModel):
    """One primary-pass extraction strategy descriptor."""

    container: str = Field(..., description="Result container selector")
    title: str = Field(..., description="Title selector inside the container")
    snippet: str = Field(..., description="Primary snippet selector inside the container")

    @field_validator("container", "title", "snippet")
    @classmethod
    def validate_selector(cls, v: str) -> str:
        """Ensure selector is not empty."""
        if not v.strip():
            raise ValueError("Selector cannot be empty")
        return v.strip()


def _default_strategies() -> list[ExtractionStrategy]:
    return [
        ExtractionStrategy(container="#search div[data-hveid]", title="h3", snippet=".VwiC3b"),
        ExtractionStrategy(container="#rso div[data-hveid]", title="h3", snippet='[data-sncf="1"]'),
        ExtractionStrategy(container=".g", title="h3", snippet='div[style*="webkit-line-clamp"]'),
        ExtractionStrategy(
            container="div[jscontroller][data-hveid]", title="h3", snippet='div[role="text"]'
        ),
    ]


class ExtractionConfig(BaseModel):
    """Tables and thresholds consumed by ContentExtractor."""

    strategies: list[ExtractionStrategy] = Field(default_factory=_default_strategies)
    fallback_snippet_selectors: list[str] = Field(
        default_factory=lambda: [
            ".VwiC3b",
            '[data-sncf="1"]',
            'div[style*="webkit-line-clamp"]',
            'div[role="text"]',
        ]
    )
    snippet_block_selector: str = "div"
    min_snippet_length: int = Field(default=20, ge=0)
    fallback_anchor_selector: str = "a[href^='http']"
    ancestor_levels: int = Field(default=3, ge=0)
    excluded_link_markers: list[str] = Field(
        default_factory=lambda: ["google.com/", "accounts.google", "support.google"]
    )

    @field_validator("fallback_snippet_selectors", "excluded_link_markers")
    @classmethod
    def validate_lists(cls, v: list[str]) -> list[str]:
        """Reject empty entries."""
        return _strip_selectors(v)


class PageSelectorsConfig(BaseModel):
    """Selectors and markers consumed by the orchestrator."""

    input_selectors: list[str] = Field(
        default_factory=lambda: [
            "textarea[name='q']",
            "input[name='q']",
            "textarea[title='Search']",
            "input[title='Search']",
            "textarea[aria-label='Search']",
            "input[aria-label='Search']",
            "textarea",
        ]
    )
    result_selectors: list[str] = Field(
        default_factory=lambda: [
            "#search",
            "#rso",
            ".g",
            "[data-sokoban-container]",
            "div[role='main']",
        ]
    )
    challenge_markers: list[str] = Field(
        default_factory=lambda: [
            "google.com/sorry/index",
            "google.com/sorry",
            "recaptcha",
            "captcha",
            "unusual traffic",
        ]
    )

    @field_validator("input_selectors", "result_selectors", "challenge_markers")
    @classmethod
    def validate_lists(cls, v: list[str]) -> list[str]:
        """Reject empty entries."""
        return _strip_selectors(v)


class SelectorsConfig(BaseModel):
    """Root schema for selectors.yaml."""

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    page: PageSelectorsConfig = Field(default_factory=PageSelectorsConfig)


_config_instance: SelectorsConfig | None = None
_config_lock = threading.Lock()


def load_selectors_config() -> SelectorsConfig:
    """Load selectors.yaml (with local.yaml "selectors" overrides).

    Returns:
        Validated SelectorsConfig. Missing file means built-in defaults.
    """
    config_dir = get_config_dir()
    data = load_yaml_with_local_override(config_dir, "selectors.yaml", "selectors")
    config = SelectorsConfig(**data)
    logger.debug(
        "Selector tables loaded",
        config_dir=str(config_dir),
        strategies=len(config.extraction.strategies),
        input_selectors=len(config.page.input_selectors),
    )
    return config


def get_selectors_config() -> SelectorsConfig:
    """Get the process-wide selector tables (loaded once)."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = load_selectors_config()

    return _config_instance


def reset_selectors_config() -> None:
    """Reset the cached tables (for testing)."""
    global _config_instance

    with _config_lock:
        _config_instance = None
