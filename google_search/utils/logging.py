"""
Structured logging configuration for google-search.
Uses structlog for JSON-formatted logs with per-run context binding.
"""

import logging
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from google_search.utils.config import get_logs_dir, get_settings


def _add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add ISO timestamp to log event."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    return event_dict


def _add_log_level(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Log output goes to stderr and to a log file; stdout is left alone so the
    CLI can print machine-readable results.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Uses settings if None.
        log_file: Path to log file. Uses settings if None.
        json_format: Whether to use JSON format (True) or console format (False).
    """
    settings = get_settings()

    if log_level is None:
        log_level = settings.general.log_level

    if log_file is None:
        log_dir = get_logs_dir(settings)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / settings.general.log_file_name

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
        force=True,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__).

    Returns:
        Configured logger instance.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind context variables."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(query="python asyncio"):
            logger.info("Navigating")
            # Every event inside the block carries query and run_id
    """

    def __init__(self, **kwargs: Any):
        self.context = {"run_id": uuid.uuid4().hex[:12], **kwargs}

    def __enter__(self) -> "LogContext":
        bind_context(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        unbind_context(*self.context.keys())

    @property
    def run_id(self) -> str:
        return self.context["run_id"]


_logging_configured = False


def ensure_logging_configured() -> None:
    """Ensure logging is configured (call once at startup)."""
    global _logging_configured
    if not _logging_configured:
        configure_logging()
        _logging_configured = True
