"""Logging setup for blobwatch.

Modules log through ``logging.getLogger(__name__)`` and attach the container
or blob a message is about as ``extra={"container": ..., "blob": ...}``.
The formatters here render those fields: JSON output nests them as objects,
human output appends them after the message.

Environment variables (used when ``setup_logging`` gets no explicit value):
    BLOBWATCH_LOG_LEVEL (fallback LOG_LEVEL), BLOBWATCH_LOG_FORMAT,
    BLOBWATCH_LOG_FILE
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

# Extras that identify what a record is about, shown first in every format
_SUBJECT_FIELDS = ("container", "blob")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _jsonable(value: Any) -> Any:
    """Expand blobwatch objects (descriptors, summaries) through ``to_dict``."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _subject_label(value: Any) -> str:
    uri = getattr(value, "uri", None)
    return str(uri) if uri else str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with container/blob extras nested."""

    def __init__(self, include_context: bool = True):
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _SUBJECT_FIELDS:
            if key in record.__dict__:
                payload[key] = _jsonable(record.__dict__[key])

        if self.include_context:
            payload["module"] = record.module
            payload["function"] = record.funcName
            payload["line"] = record.lineno

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = _jsonable(value)

        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``[LEVEL] time - logger - message [container=... blob=...]``, optionally colored."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False, include_context: bool = False):
        location = " - %(module)s.%(funcName)s:%(lineno)d" if include_context else ""
        super().__init__(
            fmt=f"[%(levelname)s] %(asctime)s - %(name)s{location} - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        subjects = [
            f"{key}={_subject_label(record.__dict__[key])}"
            for key in _SUBJECT_FIELDS
            if record.__dict__.get(key) is not None
        ]
        if subjects:
            formatted = f"{formatted} [{' '.join(subjects)}]"

        if self.use_colors:
            return f"{self.COLORS.get(record.levelname, '')}{formatted}{self.RESET}"
        return formatted


def parse_log_level(level_name: Optional[str], default: int = logging.INFO) -> int:
    """Translate a level name such as ``"debug"`` into a logging level."""
    if not level_name:
        return default
    return _LEVELS.get(level_name.strip().upper(), default)


def setup_logging(
    level: Optional[int] = None,
    format_type: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_colors: bool = False,
    include_context: bool = False
) -> None:
    """
    Configure the root logger for a blobwatch process.

    Args:
        level: Logging level (defaults to BLOBWATCH_LOG_LEVEL, LOG_LEVEL, then INFO)
        format_type: 'json', 'human' or 'simple' (defaults to BLOBWATCH_LOG_FORMAT, then 'human')
        log_file: Also write JSON records to this rotating file (defaults to BLOBWATCH_LOG_FILE)
        use_colors: Use ANSI colors in console output
        include_context: Include module/function/line in records

    Examples:
        >>> setup_logging(level=logging.DEBUG, format_type='json')
        >>> setup_logging(log_file=Path('logs/blobwatch.log'))
    """
    if level is None:
        level = parse_log_level(os.environ.get("BLOBWATCH_LOG_LEVEL") or os.environ.get("LOG_LEVEL"))
    if format_type is None:
        format_type = os.environ.get("BLOBWATCH_LOG_FORMAT", "human").lower()
    if log_file is None and os.environ.get("BLOBWATCH_LOG_FILE"):
        log_file = Path(os.environ["BLOBWATCH_LOG_FILE"])

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)

    if format_type == "json":
        formatter: logging.Formatter = JSONFormatter(include_context=include_context)
    elif format_type == "simple":
        formatter = logging.Formatter("%(levelname)s: %(message)s")
    else:
        formatter = HumanReadableFormatter(use_colors=use_colors, include_context=include_context)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # 10MB max, 5 backups; always JSON
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter(include_context=True))
        root_logger.addHandler(file_handler)


def log_exception(logger: logging.Logger, message: str, exc: Exception) -> None:
    """Log ``exc`` at error level with its traceback, type and error code."""
    logger.error(
        f"{message}: {exc}",
        exc_info=True,
        extra={
            "exception_type": type(exc).__name__,
            "error_code": getattr(exc, "error_code", None),
        },
    )


def log_performance(logger: logging.Logger, operation: str, duration_seconds: float, **metrics: Any) -> None:
    """
    Log how long an operation took, with its counters as extras.

    Example:
        >>> log_performance(logger, "poll", 1.2, containers_scanned=3, blobs_detected=12)
    """
    logger.info(
        f"Performance: {operation} completed in {duration_seconds:.2f}s",
        extra={
            "operation": operation,
            "duration_seconds": duration_seconds,
            **metrics,
        },
    )
