"""
Logging infrastructure for Recall Store.

Provides console logging plus rotating plain-text and JSON-lines log files.
"""

import json
import logging
import sys
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.core.paths import LOG_DIR

# Log format for console (human-readable)
CONSOLE_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

# Log format for file (more detail)
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Log rotation settings
MAX_LOG_SIZE_MB = 10
MAX_LOG_FILES = 5

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class StructuredLogFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                extra_fields[key] = value
            except (TypeError, ValueError):
                extra_fields[key] = str(value)

        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, use_colors: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            original_levelname = record.levelname
            color = self.COLORS.get(record.levelno, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"
            try:
                return super().format(record)
            finally:
                record.levelname = original_levelname
        return super().format(record)


def setup_logging(
    console_level: int | str = DEFAULT_CONSOLE_LEVEL,
    file_level: int | str = DEFAULT_FILE_LEVEL,
    log_dir: Path | str | None = None,
    log_file: str = "recall.log",
    structured_file: str | None = "recall.jsonl",
    use_colors: bool = True,
) -> logging.Logger:
    """
    Set up logging for the store.

    Args:
        console_level: Log level for console output
        file_level: Log level for file output
        log_dir: Directory for log files
        log_file: Name of the main log file
        structured_file: Name of the JSON log file (None to disable)
        use_colors: Use colored output in console

    Returns:
        Root logger instance
    """
    if isinstance(console_level, str):
        console_level = getattr(logging, console_level.upper())
    if isinstance(file_level, str):
        file_level = getattr(logging, file_level.upper())

    log_dir = LOG_DIR if log_dir is None else Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        ColoredConsoleFormatter(fmt=CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT, use_colors=use_colors)
    )
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_dir / log_file,
        maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
        backupCount=MAX_LOG_FILES,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    root_logger.addHandler(file_handler)

    if structured_file:
        structured_handler = RotatingFileHandler(
            log_dir / structured_file,
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=MAX_LOG_FILES,
            encoding="utf-8",
        )
        structured_handler.setLevel(file_level)
        structured_handler.setFormatter(StructuredLogFormatter())
        root_logger.addHandler(structured_handler)

    root_logger.info(
        f"Logging initialized (console: {logging.getLevelName(console_level)}, file: {logging.getLevelName(file_level)})"
    )

    return root_logger


class OperationTimer:
    """
    Context manager for timing operations and logging the result.

    Usage:
        with OperationTimer(logger, "check_space"):
            # do work
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.DEBUG,
        **extra: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.extra = extra
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time
        extra = {"operation": self.operation, "duration_seconds": self.duration, **self.extra}
        if exc_type is None:
            if self.duration < 1:
                duration_str = f"{self.duration * 1000:.1f}ms"
            else:
                duration_str = f"{self.duration:.2f}s"
            self.logger.log(self.level, f"{self.operation} completed in {duration_str}", extra=extra)
        else:
            self.logger.error(
                f"{self.operation} failed after {self.duration:.2f}s",
                exc_info=True,
                extra=extra,
            )
