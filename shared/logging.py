"""
Structured logging for the auth service.

Sets up structlog with:
- JSON formatting for production, pretty console for development
- Sensitive-field redaction (passwords, tokens, codes never reach a sink)
- Standard-library logging bridged so uvicorn/pymongo output shares the format

Example:
    >>> from shared.logging import get_logger
    >>> log = get_logger(__name__)
    >>> log.info("login_success", user_id="123", device_type="mobile")
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

# Exact keys that are always redacted
REDACTED_FIELDS = {
    "password",
    "password_hash",
    "current_password",
    "new_password",
    "token",
    "refresh_token",
    "access_token",
    "otp",
    "otp_code",
    "code",
    "secret",
    "authorization",
    "cookie",
}

# Substrings that mark a key as sensitive unless it is an identifier/counter
_SENSITIVE_PARTS = ("password", "token", "secret", "otp")
_SAFE_SUFFIXES = ("_id", "_count", "_type", "_at")
_STRUCTURAL_KEYS = {"level", "event", "timestamp", "logger"}


def get_logger(name: str) -> BoundLogger:
    """Get a configured logger instance (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if lowered in _STRUCTURAL_KEYS:
        return False
    if lowered in REDACTED_FIELDS:
        return True
    if lowered.endswith(_SAFE_SUFFIXES):
        return False
    return any(part in lowered for part in _SENSITIVE_PARTS)


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if _is_sensitive(key):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """Route standard-library logging to stdout at *log_level*."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    is_production: bool = False,
) -> None:
    """Configure stdlib logging and structlog in one call.

    ``log_format`` defaults to ``json`` in production and ``console`` otherwise.
    """
    if log_format is None:
        log_format = "json" if is_production else "console"
    configure_stdlib_logging(log_level)
    configure_structlog(log_format)
