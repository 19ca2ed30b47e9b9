"""
Session state persistence.

The session blob is whatever the browser runtime's storage_state() produces
(cookies plus origin storage). It is stored and handed back unchanged; this
module never interprets its contents beyond checking it parses as a JSON
object.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from google_search.search.errors import StatePersistenceFailure
from google_search.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

logger = get_logger(__name__)


class SessionStateStore:
    """Reads and writes the session blob at a fixed path."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any] | None:
        """Load the stored session blob.

        Returns:
            The blob, or None if absent or unreadable. An unreadable blob is
            logged; the run continues with a fresh session.
        """
        if not self.exists():
            logger.info("No saved session state, starting a fresh session", path=str(self.path))
            return None

        try:
            blob = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cannot read session state, ignoring it", path=str(self.path), error=str(e))
            return None

        if not isinstance(blob, dict):
            logger.warning(
                "Session state is not a JSON object, ignoring it",
                path=str(self.path),
                type=type(blob).__name__,
            )
            return None

        logger.info("Loaded saved session state", path=str(self.path))
        return blob

    async def save(self, context: BrowserContext) -> None:
        """Capture the context's session state and write it to disk.

        Raises:
            StatePersistenceFailure: If the directory or file cannot be written
                or the runtime fails to export its state.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            await context.storage_state(path=str(self.path))
        except Exception as e:
            raise StatePersistenceFailure(
                f"Failed to save session state: {e}", details={"path": str(self.path)}
            ) from e
        logger.info("Session state saved", path=str(self.path))
