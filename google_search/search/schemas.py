"""
Pydantic schemas for search requests and responses.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from google_search.utils.config import get_default_state_file, get_settings


class SearchResult(BaseModel):
    """A single extracted search result."""

    title: str
    link: str
    snippet: str = ""


class SearchResponse(BaseModel):
    """Result set paired with the query that produced it."""

    query: str
    results: list[SearchResult] = Field(default_factory=list)


class HtmlResponse(BaseModel):
    """Sanitized result-page markup and optional saved artifacts."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    html: str
    url: str
    saved_path: str | None = Field(default=None, alias="savedPath")
    screenshot_path: str | None = Field(default=None, alias="screenshotPath")
    original_html_length: int | None = Field(default=None, alias="originalHtmlLength")


class SearchOptions(BaseModel):
    """Per-call options.

    Accepts both snake_case and the camelCase keys used by the tool layer
    (stateFile, noSaveState).
    """

    model_config = ConfigDict(populate_by_name=True)

    limit: int | None = Field(default=None, ge=1)
    timeout: int | None = Field(default=None, ge=1, description="Timeout in milliseconds")
    state_file: str | None = Field(default=None, alias="stateFile")
    no_save_state: bool = Field(default=False, alias="noSaveState")
    locale: str | None = None

    def resolved_limit(self) -> int:
        return self.limit or get_settings().search.default_limit

    def resolved_timeout(self) -> int:
        return self.timeout or get_settings().search.default_timeout_ms

    def resolved_locale(self) -> str:
        return self.locale or get_settings().search.default_locale

    def resolved_state_file(self) -> Path:
        if self.state_file:
            return Path(self.state_file).expanduser()
        return get_default_state_file()
