"""Telemetry package for observability.

This package contains structured logging configuration and the helpers
that bind per-request context (resource key, classification).
"""

from __future__ import annotations

from offline_gateway.telemetry.logging import (
    bind_request_context,
    clear_context,
    configure_logging,
    reset_request_context,
)

__all__ = [
    "bind_request_context",
    "clear_context",
    "configure_logging",
    "reset_request_context",
]
