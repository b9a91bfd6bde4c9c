"""
Monitoring module.

Structured logging with thread-local context for calibration runs.
"""

from .logging import (
    BoundLogger,
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    bind,
    clear_context,
    configure_logging,
    get_context,
    unbind,
)

__all__ = [
    "BoundLogger",
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "bind",
    "clear_context",
    "configure_logging",
    "get_context",
    "unbind",
]
