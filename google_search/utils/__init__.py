"""
google-search utilities module.
"""

from google_search.utils.config import get_default_state_file, get_settings
from google_search.utils.logging import (
    LogContext,
    bind_context,
    configure_logging,
    ensure_logging_configured,
    get_logger,
    unbind_context,
)

__all__ = [
    "get_settings",
    "get_default_state_file",
    "get_logger",
    "configure_logging",
    "ensure_logging_configured",
    "bind_context",
    "unbind_context",
    "LogContext",
]
