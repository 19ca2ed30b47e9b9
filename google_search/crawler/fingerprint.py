"""
Browser identity ("fingerprint") generation and persistence.

An identity profile is the bundle of device/locale/timezone/appearance
attributes a browser context presents. It is generated once from host
signals and then reused verbatim for every later run against the same
storage path: a fingerprint that changes between requests is itself an
automation signal.

Persisted layout (next to the session state file):
    {"fingerprint": {...IdentityProfile...}, "googleDomain": "https://..."}
"""

from __future__ import annotations

import json
import os
import platform
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from google_search.search.errors import StatePersistenceFailure
from google_search.utils.config import get_settings
from google_search.utils.logging import get_logger

logger = get_logger(__name__)

ColorScheme = Literal["dark", "light"]
ReducedMotion = Literal["reduce", "no-preference"]
ForcedColors = Literal["active", "none"]


# =============================================================================
# Models
# =============================================================================


class IdentityProfile(BaseModel):
    """Device and locale identity presented to the search provider."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_name: str = Field(..., alias="deviceName")
    locale: str
    timezone_id: str = Field(..., alias="timezoneId")
    color_scheme: ColorScheme = Field(..., alias="colorScheme")
    reduced_motion: ReducedMotion = Field(default="no-preference", alias="reducedMotion")
    forced_colors: ForcedColors = Field(default="none", alias="forcedColors")

    def context_options(self) -> dict[str, str]:
        """Playwright new_context() keyword arguments for this identity."""
        return {
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "color_scheme": self.color_scheme,
            "reduced_motion": self.reduced_motion,
            "forced_colors": self.forced_colors,
        }


class StoredIdentity(BaseModel):
    """On-disk identity record: profile plus search-domain binding."""

    model_config = ConfigDict(populate_by_name=True)

    fingerprint: IdentityProfile | None = None
    google_domain: str | None = Field(default=None, alias="googleDomain")


# =============================================================================
# Generation
# =============================================================================

# (min minutes east of UTC inclusive, max exclusive, timezone). Ranges are
# disjoint; lookup walks the table in order and the first hit wins.
# Keep them disjoint: +9 belongs to Seoul only and Berlin covers +1, not -1.
TIMEZONE_OFFSET_TABLE: list[tuple[int | None, int | None, str]] = [
    (540, None, "Asia/Seoul"),
    (480, 540, "Asia/Shanghai"),
    (420, 480, "Asia/Bangkok"),
    (60, 120, "Europe/Berlin"),
    (0, 60, "Europe/London"),
    (-300, -240, "America/New_York"),
]
DEFAULT_TIMEZONE = "Asia/Seoul"

# Local hours rendered in dark mode: [19, 24) and [0, 7)
DARK_HOURS_START = 19
DARK_HOURS_END = 7

PLATFORM_DEVICES = {
    "Darwin": "Desktop Safari",
    "Windows": "Desktop Edge",
    "Linux": "Desktop Firefox",
}


def timezone_for_offset(offset_minutes: int) -> str:
    """Map a UTC offset (minutes east of UTC) to a timezone id.

    Args:
        offset_minutes: Host offset, positive east of UTC (UTC+9 -> 540).

    Returns:
        Timezone id from the first matching range, or the default.
    """
    for lower, upper, timezone_id in TIMEZONE_OFFSET_TABLE:
        if lower is not None and offset_minutes < lower:
            continue
        if upper is not None and offset_minutes >= upper:
            continue
        return timezone_id
    return DEFAULT_TIMEZONE


def color_scheme_for_hour(hour: int) -> ColorScheme:
    """Dark in the evening and at night, light during the day."""
    if hour >= DARK_HOURS_START or hour < DARK_HOURS_END:
        return "dark"
    return "light"


def _normalize_locale(value: str) -> str:
    """Turn POSIX locale strings (en_US.UTF-8) into BCP 47 tags (en-US)."""
    tag = value.split(".", 1)[0].split("@", 1)[0]
    return tag.replace("_", "-")


def _system_locale() -> str | None:
    for var in ("LC_ALL", "LANG"):
        value = os.environ.get(var)
        if not value:
            continue
        tag = _normalize_locale(value)
        if tag and tag not in ("C", "POSIX"):
            return tag
    return None


def generate_fingerprint(
    locale_hint: str | None = None,
    now: datetime | None = None,
) -> IdentityProfile:
    """Derive a plausible identity from host signals.

    Args:
        locale_hint: Explicit locale; falls back to the system locale, then
            the configured default.
        now: Local wall-clock time (aware or naive). Defaults to now.

    Returns:
        A new IdentityProfile.
    """
    settings = get_settings()
    now = now or datetime.now().astimezone()

    locale = locale_hint or _system_locale() or settings.search.default_locale

    offset = now.utcoffset() if now.tzinfo is not None else datetime.now().astimezone().utcoffset()
    offset_minutes = int(offset.total_seconds() // 60) if offset is not None else 0

    platform_device = PLATFORM_DEVICES.get(platform.system(), settings.browser.canonical_device)
    # The runtime is always Chromium, so the canonical Chrome profile wins
    # over the platform-native browser.
    device_name = settings.browser.canonical_device
    logger.debug(
        "Device profile selected",
        platform_device=platform_device,
        device=device_name,
    )

    return IdentityProfile(
        device_name=device_name,
        locale=locale,
        timezone_id=timezone_for_offset(offset_minutes),
        color_scheme=color_scheme_for_hour(now.hour),
        reduced_motion="no-preference",
        forced_colors="none",
    )


# =============================================================================
# Persistence
# =============================================================================


def fingerprint_path_for(state_file: str | Path) -> Path:
    """Identity file path for a session state file.

    browser-state.json -> browser-state-fingerprint.json
    """
    state_path = Path(state_file)
    suffix = get_settings().storage.fingerprint_suffix
    return state_path.with_name(f"{state_path.stem}{suffix}.json")


class FingerprintStore:
    """Loads and saves the identity record for one state file."""

    def __init__(self, state_file: str | Path):
        self.path = fingerprint_path_for(state_file)

    def load(self) -> StoredIdentity | None:
        """Load the stored identity.

        Returns:
            StoredIdentity, or None when the file is absent or corrupt.
            Corruption is logged and the file's content discarded.
        """
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            stored = StoredIdentity.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                "Cannot load fingerprint file, a new fingerprint will be generated",
                path=str(self.path),
                error=str(e),
            )
            return None
        logger.info("Loaded saved browser fingerprint", path=str(self.path))
        return stored

    def save(self, identity: IdentityProfile, google_domain: str | None) -> None:
        """Write the identity record, creating parent directories.

        Raises:
            StatePersistenceFailure: If the file cannot be written.
        """
        record = StoredIdentity(fingerprint=identity, google_domain=google_domain)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(record.model_dump(by_alias=True), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            raise StatePersistenceFailure(
                f"Failed to save fingerprint: {e}", details={"path": str(self.path)}
            ) from e
        logger.info("Fingerprint saved", path=str(self.path))


def resolve_identity(
    stored: StoredIdentity | None,
    locale_hint: str | None,
    known_devices: dict | None = None,
) -> tuple[IdentityProfile, bool]:
    """Pick the stored identity or generate a new one.

    Args:
        stored: Previously stored record, if any.
        locale_hint: Locale to use when generating.
        known_devices: Runtime device descriptors; a stored device name the
            runtime does not know is replaced by the canonical profile.

    Returns:
        (identity, generated) where generated is True for a fresh identity.
    """
    if stored is not None and stored.fingerprint is not None:
        identity = stored.fingerprint
        if known_devices is not None and identity.device_name not in known_devices:
            canonical = get_settings().browser.canonical_device
            logger.warning(
                "Stored device profile unknown to runtime, using canonical profile",
                stored_device=identity.device_name,
                device=canonical,
            )
            identity = identity.model_copy(update={"device_name": canonical})
        logger.info("Using saved browser fingerprint")
        return identity, False

    identity = generate_fingerprint(locale_hint)
    logger.info(
        "Generated new browser fingerprint from host settings",
        locale=identity.locale,
        timezone=identity.timezone_id,
        color_scheme=identity.color_scheme,
        device=identity.device_name,
    )
    return identity, True
