"""
Error taxonomy for the search pipeline.

Error codes follow the pattern:
- *_FAILURE: runtime could not be brought up or state could not be written
- *_TIMEOUT: a bounded wait expired
- *_NOT_FOUND: an expected page element never appeared
- *_UNRESOLVED: a challenge page was not cleared in assisted mode

Only StatePersistenceFailure is non-fatal; it is always caught where
persistence happens and logged.
"""

from enum import Enum
from typing import Any


class SearchErrorCode(str, Enum):
    """Error codes for search pipeline failures."""

    LAUNCH_FAILURE = "LAUNCH_FAILURE"
    """Browser runtime could not be started."""

    NAVIGATION_TIMEOUT = "NAVIGATION_TIMEOUT"
    """Navigation or page settle exceeded the configured timeout."""

    CHALLENGE_UNRESOLVED = "CHALLENGE_UNRESOLVED"
    """Assisted-mode wait for challenge clearance timed out."""

    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    """No query-input selector matched."""

    RESULT_CONTAINER_NOT_FOUND = "RESULT_CONTAINER_NOT_FOUND"
    """No result-container selector matched after challenge recovery."""

    STATE_PERSISTENCE_FAILURE = "STATE_PERSISTENCE_FAILURE"
    """Session or identity state could not be written."""

    MARKUP_FETCH_FAILED = "MARKUP_FETCH_FAILED"
    """Result-page markup could not be fetched."""


class GoogleSearchError(Exception):
    """
    Base exception for search pipeline errors.

    Carries a machine-readable code plus optional details for
    structured responses.
    """

    code: SearchErrorCode = SearchErrorCode.MARKUP_FETCH_FAILED

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a response dictionary."""
        result: dict[str, Any] = {
            "ok": False,
            "error_code": self.code.value,
            "error": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class LaunchFailure(GoogleSearchError):
    """Raised when the browser runtime cannot be launched."""

    code = SearchErrorCode.LAUNCH_FAILURE


class NavigationTimeout(GoogleSearchError):
    """Raised when navigation or load settling times out."""

    code = SearchErrorCode.NAVIGATION_TIMEOUT

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(
            f"Navigation to {url} timed out after {timeout_ms} ms",
            details={"url": url, "timeout_ms": timeout_ms},
        )


class ChallengeUnresolved(GoogleSearchError):
    """Raised when a challenge page is not cleared within the assisted wait."""

    code = SearchErrorCode.CHALLENGE_UNRESOLVED

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(
            f"Human verification was not completed within {timeout_ms} ms",
            details={"url": url, "timeout_ms": timeout_ms},
        )


class InputNotFound(GoogleSearchError):
    """Raised when none of the query-input selectors match."""

    code = SearchErrorCode.INPUT_NOT_FOUND

    def __init__(self, selectors: list[str]):
        super().__init__(
            "Unable to find the search input box",
            details={"selectors": selectors},
        )


class ResultContainerNotFound(GoogleSearchError):
    """Raised when no result container appears."""

    code = SearchErrorCode.RESULT_CONTAINER_NOT_FOUND

    def __init__(self, selectors: list[str], url: str):
        super().__init__(
            "Unable to find search result elements",
            details={"selectors": selectors, "url": url},
        )


class StatePersistenceFailure(GoogleSearchError):
    """Raised by the state stores when a write fails. Never fatal."""

    code = SearchErrorCode.STATE_PERSISTENCE_FAILURE


class MarkupFetchError(GoogleSearchError):
    """Raised by the markup-fetch operation, wrapping the underlying cause."""

    code = SearchErrorCode.MARKUP_FETCH_FAILED


class EscalationRequired(Exception):
    """
    Internal signal: a challenge was seen in automated mode.

    Raised out of a pipeline attempt so the orchestrator can tear the
    attempt down and restart in assisted mode. Never reaches callers.
    """

    def __init__(self, checkpoint: str, url: str):
        super().__init__(f"Challenge detected at {checkpoint}: {url}")
        self.checkpoint = checkpoint
        self.url = url
