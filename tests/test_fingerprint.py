"""
Tests for browser identity generation and persistence.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-FG-N-01 | Host hour 2 | Equivalence – night | colorScheme=dark | - |
| TC-FG-N-02 | Host hour 14 | Equivalence – day | colorScheme=light | - |
| TC-FG-B-01 | Hours 6/7/18/19 | Boundary – edges | dark/light/light/dark | - |
| TC-FG-N-03 | Offsets in table | Equivalence – mapping | Matching timezone | - |
| TC-FG-B-02 | Range edges 480/539/540 | Boundary – edges | Ranges disjoint | - |
| TC-FG-A-01 | Offset outside table | Equivalence – default | Asia/Seoul | - |
| TC-FG-N-04 | Locale hint given | Equivalence – hint | Hint used | - |
| TC-FG-N-05 | LANG=en_US.UTF-8 | Equivalence – system | en-US | - |
| TC-FG-B-03 | No hint, no env | Boundary – default | ko-KR | - |
| TC-FG-N-06 | Any host platform | Equivalence – device | Desktop Chrome | - |
| TC-FG-N-07 | Least-restrictive prefs | Equivalence – defaults | no-preference / none | - |
| TC-FS-N-01 | Save then load | Equivalence – round trip | Same identity + domain | camelCase on disk |
| TC-FS-N-02 | Path derivation | Equivalence – naming | <stem>-fingerprint.json | - |
| TC-FS-A-01 | Corrupt JSON | Abnormal – corrupt | None | never fatal |
| TC-FS-A-02 | Missing file | Abnormal – absent | None | - |
| TC-FS-A-03 | Unwritable path | Abnormal – write | StatePersistenceFailure | - |
| TC-RI-N-01 | Stored identity | Equivalence – reuse | Verbatim, generated=False | - |
| TC-RI-N-02 | No stored identity | Equivalence – generate | generated=True | - |
| TC-RI-A-01 | Stored unknown device | Abnormal – device | Canonical device | - |
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from google_search.crawler.fingerprint import (
    FingerprintStore,
    IdentityProfile,
    StoredIdentity,
    color_scheme_for_hour,
    fingerprint_path_for,
    generate_fingerprint,
    resolve_identity,
    timezone_for_offset,
)
from google_search.search.errors import StatePersistenceFailure

pytestmark = pytest.mark.unit

KST = timezone(timedelta(hours=9))


@pytest.fixture
def no_system_locale(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LC_ALL", raising=False)
    monkeypatch.delenv("LANG", raising=False)


@pytest.fixture
def identity() -> IdentityProfile:
    return IdentityProfile(
        device_name="Desktop Chrome",
        locale="en-GB",
        timezone_id="Europe/London",
        color_scheme="light",
    )


class TestColorScheme:
    """Tests for hour-based color scheme."""

    def test_night_hour_generates_dark(self, no_system_locale: None) -> None:
        """TC-FG-N-01: no stored identity, host hour 2 -> dark."""
        # Given: local time 02:00
        now = datetime(2024, 3, 1, 2, 0, tzinfo=KST)

        # When
        profile = generate_fingerprint(now=now)

        # Then
        assert profile.color_scheme == "dark"

    def test_day_hour_generates_light(self, no_system_locale: None) -> None:
        """TC-FG-N-02: no stored identity, host hour 14 -> light."""
        now = datetime(2024, 3, 1, 14, 0, tzinfo=KST)

        profile = generate_fingerprint(now=now)

        assert profile.color_scheme == "light"

    @pytest.mark.parametrize(
        "hour, expected",
        [(0, "dark"), (6, "dark"), (7, "light"), (18, "light"), (19, "dark"), (23, "dark")],
    )
    def test_hour_edges(self, hour: int, expected: str) -> None:
        """TC-FG-B-01: [19,24) and [0,7) are dark."""
        assert color_scheme_for_hour(hour) == expected


class TestTimezone:
    """Tests for offset -> timezone mapping."""

    @pytest.mark.parametrize(
        "offset, expected",
        [
            (540, "Asia/Seoul"),
            (600, "Asia/Seoul"),
            (480, "Asia/Shanghai"),
            (420, "Asia/Bangkok"),
            (60, "Europe/Berlin"),
            (0, "Europe/London"),
            (-300, "America/New_York"),
        ],
    )
    def test_table_mapping(self, offset: int, expected: str) -> None:
        """TC-FG-N-03: offsets map to their range's timezone."""
        assert timezone_for_offset(offset) == expected

    def test_ranges_are_disjoint(self) -> None:
        """TC-FG-B-02: the Shanghai range ends where the Seoul range starts."""
        assert timezone_for_offset(479) == "Asia/Bangkok"
        assert timezone_for_offset(539) == "Asia/Shanghai"
        assert timezone_for_offset(540) == "Asia/Seoul"

    @pytest.mark.parametrize("offset", [330, -480, 180, -60])
    def test_unmapped_offset_defaults(self, offset: int) -> None:
        """TC-FG-A-01: offsets outside every range use the default."""
        assert timezone_for_offset(offset) == "Asia/Seoul"

    def test_timezone_from_aware_now(self, no_system_locale: None) -> None:
        """Generated timezone follows the offset of the given time."""
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=-5)))

        profile = generate_fingerprint(now=now)

        assert profile.timezone_id == "America/New_York"


class TestLocale:
    """Tests for locale selection."""

    def test_hint_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """TC-FG-N-04: an explicit hint is used verbatim."""
        monkeypatch.setenv("LANG", "fr_FR.UTF-8")

        profile = generate_fingerprint("de-DE", now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.locale == "de-DE"

    def test_system_locale(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """TC-FG-N-05: POSIX locale is normalised to a BCP 47 tag."""
        monkeypatch.delenv("LC_ALL", raising=False)
        monkeypatch.setenv("LANG", "en_US.UTF-8")

        profile = generate_fingerprint(now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.locale == "en-US"

    @pytest.mark.parametrize("value", ["C", "C.UTF-8", "POSIX"])
    def test_neutral_system_locale_ignored(
        self, monkeypatch: pytest.MonkeyPatch, value: str
    ) -> None:
        """The C/POSIX locale carries no language and is skipped."""
        monkeypatch.delenv("LC_ALL", raising=False)
        monkeypatch.setenv("LANG", value)

        profile = generate_fingerprint(now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.locale == "ko-KR"

    def test_default_locale(self, no_system_locale: None) -> None:
        """TC-FG-B-03: no hint and no system locale -> configured default."""
        profile = generate_fingerprint(now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.locale == "ko-KR"


class TestGeneratedDefaults:
    """Tests for fixed identity attributes."""

    def test_device_is_canonical(self, no_system_locale: None) -> None:
        """TC-FG-N-06: device profile is always the canonical desktop profile."""
        profile = generate_fingerprint(now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.device_name == "Desktop Chrome"

    def test_least_restrictive_preferences(self, no_system_locale: None) -> None:
        """TC-FG-N-07: reduced motion and forced colors default off."""
        profile = generate_fingerprint(now=datetime(2024, 1, 1, 12, tzinfo=KST))

        assert profile.reduced_motion == "no-preference"
        assert profile.forced_colors == "none"


class TestFingerprintStore:
    """Tests for FingerprintStore."""

    def test_path_derivation(self, tmp_path: Path) -> None:
        """TC-FS-N-02: identity file sits beside the state file."""
        path = fingerprint_path_for(tmp_path / "browser-state.json")

        assert path == tmp_path / "browser-state-fingerprint.json"

    def test_save_then_load(self, tmp_path: Path, identity: IdentityProfile) -> None:
        """TC-FS-N-01: round trip keeps identity and domain binding."""
        # Given
        store = FingerprintStore(tmp_path / "nested" / "browser-state.json")

        # When
        store.save(identity, "https://www.google.co.uk")
        loaded = store.load()

        # Then
        assert loaded is not None
        assert loaded.fingerprint == identity
        assert loaded.google_domain == "https://www.google.co.uk"

        on_disk = json.loads(store.path.read_text(encoding="utf-8"))
        assert on_disk["googleDomain"] == "https://www.google.co.uk"
        assert on_disk["fingerprint"]["deviceName"] == "Desktop Chrome"
        assert on_disk["fingerprint"]["timezoneId"] == "Europe/London"
        assert on_disk["fingerprint"]["colorScheme"] == "light"

    def test_corrupt_file_is_discarded(self, tmp_path: Path) -> None:
        """TC-FS-A-01: corrupt identity file is treated as absent."""
        store = FingerprintStore(tmp_path / "browser-state.json")
        store.path.write_text("{not json", encoding="utf-8")

        assert store.load() is None

    def test_invalid_values_are_discarded(self, tmp_path: Path) -> None:
        """TC-FS-A-01: schema-invalid identity is treated as absent."""
        store = FingerprintStore(tmp_path / "browser-state.json")
        store.path.write_text(
            json.dumps({"fingerprint": {"deviceName": "x", "colorScheme": "purple"}}),
            encoding="utf-8",
        )

        assert store.load() is None

    def test_missing_file(self, tmp_path: Path) -> None:
        """TC-FS-A-02: no file, no identity."""
        assert FingerprintStore(tmp_path / "browser-state.json").load() is None

    def test_write_failure_raises(self, tmp_path: Path, identity: IdentityProfile) -> None:
        """TC-FS-A-03: write errors surface as StatePersistenceFailure."""
        # Given: the parent "directory" is a regular file
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = FingerprintStore(blocker / "browser-state.json")

        # When/Then
        with pytest.raises(StatePersistenceFailure):
            store.save(identity, None)


class TestResolveIdentity:
    """Tests for resolve_identity()."""

    def test_stored_identity_is_reused(self, identity: IdentityProfile) -> None:
        """TC-RI-N-01: stored identity is returned verbatim."""
        stored = StoredIdentity(fingerprint=identity, google_domain="https://www.google.ca")

        resolved, generated = resolve_identity(stored, "ja-JP", {"Desktop Chrome": {}})

        assert resolved == identity
        assert generated is False

    def test_reuse_is_idempotent_across_loads(
        self, tmp_path: Path, identity: IdentityProfile
    ) -> None:
        """Two consecutive loads of one storage path give identical identities."""
        store = FingerprintStore(tmp_path / "browser-state.json")
        store.save(identity, "https://www.google.com")

        first, _ = resolve_identity(store.load(), None)
        second, _ = resolve_identity(store.load(), None)

        assert first == second == identity

    def test_absent_identity_is_generated(self, no_system_locale: None) -> None:
        """TC-RI-N-02: nothing stored -> generated."""
        resolved, generated = resolve_identity(None, "en-AU")

        assert generated is True
        assert resolved.locale == "en-AU"

    def test_unknown_device_falls_back(self, identity: IdentityProfile) -> None:
        """TC-RI-A-01: a device the runtime does not know is replaced."""
        stored = StoredIdentity(
            fingerprint=identity.model_copy(update={"device_name": "Nokia 3310"})
        )

        resolved, _ = resolve_identity(stored, None, {"Desktop Chrome": {}})

        assert resolved.device_name == "Desktop Chrome"
        assert resolved.locale == identity.locale
