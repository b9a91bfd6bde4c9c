"""
Structured logging for smile calibration.

Provides:
- Thread-local context fields (expiry, forward, ...) attached to every record
- JSON-formatted output for log aggregation
- Human-readable console output
"""

import json
import logging
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional, Union


@dataclass
class LogContext:
    """Thread-local context for structured logging."""

    fields: Dict[str, Any] = field(default_factory=dict)

    def set(self, key: str, value: Any) -> None:
        self.fields[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def remove(self, key: str) -> None:
        self.fields.pop(key, None)

    def clear(self) -> None:
        self.fields.clear()

    def copy(self) -> Dict[str, Any]:
        return self.fields.copy()


_local = threading.local()


def get_context() -> LogContext:
    """Get the logging context of the current thread."""
    if not hasattr(_local, "context"):
        _local.context = LogContext()
    return _local.context


def bind(**kwargs) -> None:
    """Bind fields to the current logging context."""
    context = get_context()
    for key, value in kwargs.items():
        context.set(key, value)


def unbind(*keys: str) -> None:
    """Remove fields from the current logging context."""
    context = get_context()
    for key in keys:
        context.remove(key)


def clear_context() -> None:
    """Clear all fields from the current logging context."""
    get_context().clear()


class BoundLogger:
    """
    Context manager for temporarily binding log context.

    Fields bound on entry are restored to their previous values (or removed)
    on exit, so nested calibrations keep their own context.

    Example:
        >>> with BoundLogger(expiry=5.0, forward=0.04):
        ...     logger.info("calibrating")
    """

    def __init__(self, **kwargs):
        self.bindings = kwargs
        self.previous_values: Dict[str, Any] = {}

    def __enter__(self) -> "BoundLogger":
        context = get_context()
        for key, value in self.bindings.items():
            if key in context.fields:
                self.previous_values[key] = context.fields[key]
            context.set(key, value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        context = get_context()
        for key in self.bindings:
            if key in self.previous_values:
                context.set(key, self.previous_values[key])
            else:
                context.remove(key)


# LogRecord attributes that are not user supplied `extra` fields
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_context: bool = True, include_source: bool = False):
        super().__init__()
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as one JSON object."""
        result: Dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if self.include_context:
            context = get_context().copy()
            if context:
                result["context"] = context

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                result[key] = value

        if record.exc_info:
            result["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_source:
            result["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(result, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with optional colors."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        use_colors: bool = False,
        include_context: bool = True,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        super().__init__()
        self.use_colors = use_colors
        self.include_context = include_context
        self.timestamp_format = timestamp_format

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.fromtimestamp(record.created).strftime(self.timestamp_format)
        level = record.levelname

        if self.use_colors:
            level_str = f"{self.COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"

        parts = [f"{timestamp} {level_str} [{record.name}] {record.getMessage()}"]

        if self.include_context:
            context = get_context().copy()
            if context:
                parts.append("  | " + " ".join(f"{k}={v}" for k, v in context.items()))

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return "\n".join(parts)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
    file: Optional[str] = None,
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
    use_colors: bool = False,
) -> List[logging.Handler]:
    """
    Configure the `zabr_smile` logger hierarchy.

    Replaces handlers installed by a previous call, so repeated configuration
    does not duplicate output.

    Args:
        level: Log level name or number
        json_format: Emit JSON records instead of console lines
        file: Optional log file (rotated by size)
        max_bytes: Rotation size of the log file
        backup_count: Number of rotated files kept
        use_colors: Colorize console output

    Returns:
        The installed handlers
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    formatter: logging.Formatter
    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = ConsoleFormatter(use_colors=use_colors)

    package_logger = logging.getLogger("zabr_smile")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_zabr_smile_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file:
        handlers.append(
            RotatingFileHandler(file, maxBytes=max_bytes, backupCount=backup_count)
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._zabr_smile_handler = True
        package_logger.addHandler(handler)

    package_logger.setLevel(level)
    return handlers
