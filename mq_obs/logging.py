"""
Structured Logging (structlog).

stdout carries the MCP stdio transport, so every log line goes to stderr.
Credential-looking keys are masked before rendering.
"""

import logging
import sys
from typing import Any, TextIO

import structlog

from mq_config.settings import Settings

REDACTED = "***"
SENSITIVE_KEYS = frozenset({"authorization", "password", "username", "auth", "marqeta_password"})


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask values whose key names a credential."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(settings: Settings, stream: TextIO | None = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Output format: JSON (default) or text (dev)
    Includes: logger name, level, timestamp
    """
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=settings.LOG_LEVEL.upper(),
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.format_exc_info,
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get configured logger."""
    return structlog.get_logger(name)
