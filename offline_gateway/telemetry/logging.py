"""Structured logging configuration.

Configures structlog with JSON output in production and a human-readable
console renderer in development.

Log format (production):
    {
        "timestamp": "2026-10-18T10:30:45.123456Z",
        "level": "info",
        "logger": "offline_gateway.routing.strategies",
        "event": "strategy.cache_hit",
        "resource_key": "GET https://cdnjs.cloudflare.com/...",
        "classification": "accelerator",
        "tier": "offline-app-dynamic-v3.0"
    }
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor


def configure_logging(
    *,
    json_logs: bool = False,
    log_level: str = "INFO",
) -> None:
    """Configure structured logging for the application.

    Args:
        json_logs: Use JSON format (True for production, False for dev)
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
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


# ------------------------------------------------------------------ #
# Context Binding Helpers
# ------------------------------------------------------------------ #


def bind_request_context(resource_key: str, classification: str | None) -> Any:
    """Bind the routed request to log context.

    Returns the token mapping from structlog so the caller can restore the
    previous context with reset_request_context() once the request is done.
    Background tasks spawned while bound inherit a copy of the context.
    """
    return structlog.contextvars.bind_contextvars(
        resource_key=resource_key,
        classification=classification or "unclassified",
    )


def reset_request_context(tokens: Any) -> None:
    """Restore log context saved by bind_request_context()."""
    structlog.contextvars.reset_contextvars(**tokens)


def clear_context() -> None:
    """Clear all context variables (useful for testing)."""
    structlog.contextvars.clear_contextvars()
