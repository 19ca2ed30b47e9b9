"""
Execution mode state machine.

Two states:
    AUTOMATED  headless browser, no human surface. Initial state.
    ASSISTED   visible browser; a person can clear challenge pages.

One transition, AUTOMATED -> ASSISTED, taken at most once per run when a
challenge page is seen. The transition itself is signalled by raising
EscalationRequired so the orchestrator can tear down the attempt and start
a new one headful. In ASSISTED mode a challenge page suspends the pipeline
until the page leaves every challenge URL, bounded by a timeout.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from google_search.crawler.challenge_detector import is_challenge, is_clear
from google_search.search.errors import ChallengeUnresolved, EscalationRequired
from google_search.utils.config import get_settings
from google_search.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


class ExecutionMode(str, Enum):
    """Browser visibility for a pipeline attempt."""

    AUTOMATED = "automated"
    ASSISTED = "assisted"


class ChallengeCheckpoint(str, Enum):
    """Points in the pipeline where challenge detection runs."""

    AFTER_NAVIGATION = "after_navigation"
    AFTER_SUBMIT = "after_submit"
    RESULT_WAIT = "result_wait"


class ExecutionModeController:
    """Tracks the execution mode of one run and reacts to challenge pages."""

    def __init__(self, timeout_ms: int, mode: ExecutionMode = ExecutionMode.AUTOMATED):
        self._timeout_ms = timeout_ms
        self._mode = mode
        self._escalated = False

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    @property
    def headless(self) -> bool:
        return self._mode == ExecutionMode.AUTOMATED

    @property
    def escalated(self) -> bool:
        """True once this run has moved to ASSISTED."""
        return self._escalated

    @property
    def clearance_timeout_ms(self) -> int:
        multiplier = get_settings().search.challenge_wait_multiplier
        return int(self._timeout_ms * multiplier)

    def escalate(self, checkpoint: str, url: str) -> EscalationRequired:
        """Move to ASSISTED and build the signal to raise.

        Raises:
            RuntimeError: If called when already ASSISTED.
        """
        if self._mode != ExecutionMode.AUTOMATED:
            raise RuntimeError("Execution mode can only escalate once per run")
        self._mode = ExecutionMode.ASSISTED
        self._escalated = True
        logger.warning(
            "Challenge page detected, restarting in assisted (headful) mode",
            checkpoint=checkpoint,
            url=url,
        )
        return EscalationRequired(checkpoint, url)

    async def on_challenge(self, page: Page, checkpoint: str) -> None:
        """Handle a challenge page seen at a checkpoint.

        Raises:
            EscalationRequired: In AUTOMATED mode, after switching to ASSISTED.
            ChallengeUnresolved: In ASSISTED mode, if the page is still on a
                challenge URL when the clearance wait runs out.
        """
        if self._mode == ExecutionMode.AUTOMATED:
            raise self.escalate(checkpoint, page.url)
        await self.wait_for_clearance(page, checkpoint)

    async def check(
        self,
        page: Page,
        checkpoint: str,
        response_url: str | None = None,
    ) -> bool:
        """Run challenge detection at a checkpoint.

        Returns:
            True if a challenge was seen and cleared in place (ASSISTED),
            False if no challenge was seen.

        Raises:
            EscalationRequired: Challenge seen in AUTOMATED mode.
            ChallengeUnresolved: Challenge not cleared in time in ASSISTED mode.
        """
        if not is_challenge(page.url, response_url):
            return False
        await self.on_challenge(page, checkpoint)
        return True

    async def wait_for_clearance(self, page: Page, checkpoint: str) -> None:
        """Suspend until the page navigates away from every challenge URL."""
        timeout_ms = self.clearance_timeout_ms
        url = page.url
        logger.warning(
            "Waiting for human verification in the browser window",
            checkpoint=checkpoint,
            url=url,
            timeout_ms=timeout_ms,
        )
        try:
            await page.wait_for_url(lambda current: is_clear(current), timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            logger.error("Human verification timed out", checkpoint=checkpoint, url=url)
            raise ChallengeUnresolved(url, timeout_ms) from e
        logger.info("Human verification completed", checkpoint=checkpoint, url=page.url)
