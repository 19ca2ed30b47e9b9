"""
Configuration management for google-search.
Loads and validates settings from YAML files and environment variables.
"""

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "GOOGLE_SEARCH_"


class GeneralConfig(BaseModel):
    """General configuration."""

    version: str = "1.0.0"
    log_level: str = "INFO"
    # Empty means "<system temp>/google-search-logs"
    logs_dir: str = ""
    log_file_name: str = "google-search.log"


class BrowserConfig(BaseModel):
    """Browser launch and presentation configuration."""

    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--disable-blink-features=AutomationControlled",
            "--disable-features=IsolateOrigins,site-per-process",
            "--disable-site-isolation-trials",
            "--disable-web-security",
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-accelerated-2d-canvas",
            "--no-first-run",
            "--no-zygote",
            "--disable-gpu",
            "--hide-scrollbars",
            "--mute-audio",
            "--disable-background-networking",
            "--disable-background-timer-throttling",
            "--disable-backgrounding-occluded-windows",
            "--disable-breakpad",
            "--disable-component-extensions-with-background-pages",
            "--disable-extensions",
            "--disable-features=TranslateUI",
            "--disable-ipc-flooding-protection",
            "--disable-renderer-backgrounding",
            "--enable-features=NetworkService,NetworkServiceInProcess",
            "--force-color-profile=srgb",
            "--metrics-recording-only",
        ]
    )
    ignore_default_args: list[str] = Field(default_factory=lambda: ["--enable-automation"])
    # Launch timeout = navigation timeout * multiplier (cold starts are slow)
    launch_timeout_multiplier: float = 2.0
    canonical_device: str = "Desktop Chrome"
    screen_width: int = 1920
    screen_height: int = 1080
    color_depth: int = 24
    permissions: list[str] = Field(default_factory=lambda: ["geolocation", "notifications"])


class SearchConfig(BaseModel):
    """Search pipeline configuration."""

    default_limit: int = 10
    default_timeout_ms: int = 60000
    cli_default_timeout_ms: int = 30000
    default_locale: str = "ko-KR"
    domains: list[str] = Field(
        default_factory=lambda: [
            "https://www.google.com",
            "https://www.google.co.uk",
            "https://www.google.ca",
            "https://www.google.com.au",
        ]
    )
    # Assisted-mode wait for challenge clearance = timeout * multiplier
    challenge_wait_multiplier: float = 2.0
    # Each result-container selector gets timeout / divisor
    selector_wait_divisor: float = 2.0
    typing_delay_ms: tuple[int, int] = (10, 30)
    submit_delay_ms: tuple[int, int] = (100, 300)
    results_delay_ms: tuple[int, int] = (200, 500)
    markup_settle_ms: int = 1000


class StorageConfig(BaseModel):
    """Persistent state and artifact locations."""

    model_config = ConfigDict(extra="forbid")

    state_dir: str = "."
    state_file_name: str = "browser-state.json"
    fingerprint_suffix: str = "-fingerprint"
    html_output_dir: str = "./google-search-html"
    tool_state_file_name: str = ".google-search-browser-state.json"


class Settings(BaseModel):
    """Root settings model."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Dictionary whose values win.

    Returns:
        New merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config_dir() -> Path:
    """Get the configuration directory (GOOGLE_SEARCH_CONFIG_DIR or ./config)."""
    return Path(os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "config"))


def load_yaml_with_local_override(
    config_dir: Path,
    filename: str,
    section_key: str | None = None,
) -> dict[str, Any]:
    """Load YAML file with local.yaml override support.

    Loads the base file, then applies overrides from the matching top-level
    section of local.yaml.

    Args:
        config_dir: Configuration directory path.
        filename: YAML filename (e.g., "settings.yaml").
        section_key: Key in local.yaml for overrides.
                     Defaults to filename without extension.

    Returns:
        Merged configuration dictionary.
    """
    config: dict[str, Any] = {}

    base_path = config_dir / filename
    if base_path.exists():
        with open(base_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    local_path = config_dir / "local.yaml"
    local_overrides: dict[str, Any] = {}
    if local_path.exists():
        with open(local_path, encoding="utf-8") as f:
            local_overrides = yaml.safe_load(f) or {}

    if section_key is None:
        section_key = Path(filename).stem

    if isinstance(local_overrides.get(section_key), dict):
        config = _deep_merge(config, local_overrides[section_key])

    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables are prefixed with GOOGLE_SEARCH_ and use
    double underscores for nested keys.

    Example:
        GOOGLE_SEARCH_GENERAL__LOG_LEVEL=DEBUG

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        key_path = key[len(ENV_PREFIX) :].lower().split("__")
        if len(key_path) < 2:
            # Top-level variables (e.g. CONFIG_DIR) are not settings
            continue

        current = config
        for part in key_path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. config/settings.yaml (+ local.yaml "settings" section)
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config = load_yaml_with_local_override(get_config_dir(), "settings.yaml", "settings")
    config = _apply_env_overrides(config)
    return Settings(**config)


def get_logs_dir(settings: Settings | None = None) -> Path:
    """Resolve the log directory, defaulting to the system temp directory."""
    settings = settings or get_settings()
    if settings.general.logs_dir:
        return Path(settings.general.logs_dir).expanduser()
    return Path(tempfile.gettempdir()) / "google-search-logs"


def get_default_state_file(settings: Settings | None = None) -> Path:
    """Default session state file under the configured state directory."""
    settings = settings or get_settings()
    return Path(settings.storage.state_dir).expanduser() / settings.storage.state_file_name
