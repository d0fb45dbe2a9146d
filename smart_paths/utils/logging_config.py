"""
Logging Configuration
=====================

Structured logging for Smart Paths.

Every resolution and every debounced rescan runs inside its own correlation
scope, so the console and JSON output of one request can be grepped together
even when watchdog and timer threads interleave with callers. Records may
carry ``path``, ``stage``, ``user_id``, ``operation`` and ``duration_ms``
extras; the JSON formatter emits whichever are present.
"""

import logging
import logging.handlers
import json
import sys
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional
from dataclasses import dataclass, field
import threading


ROOT_LOGGER_NAME = "smart_paths"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Thread-local storage for correlation IDs
_thread_local = threading.local()


def get_correlation_id() -> str:
    """Get the current correlation ID for the thread."""
    if not hasattr(_thread_local, 'correlation_id'):
        _thread_local.correlation_id = new_correlation_id()
    return _thread_local.correlation_id


def set_correlation_id(correlation_id: str) -> None:
    """Set a correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def new_correlation_id() -> str:
    """Generate a short correlation ID."""
    return str(uuid.uuid4())[:8]


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Run a block under a fresh (or given) correlation ID.

    The previous ID of the thread is restored on exit, so nested scopes and
    long-lived worker threads keep their own identity.
    """
    previous = getattr(_thread_local, 'correlation_id', None)
    current = correlation_id or new_correlation_id()
    _thread_local.correlation_id = current
    try:
        yield current
    finally:
        if previous is None:
            del _thread_local.correlation_id
        else:
            _thread_local.correlation_id = previous


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    EXTRA_FIELDS = ("path", "stage", "operation", "duration_ms", "user_id")

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        return json.dumps(log_data, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console formatter."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors for console output."""
        color = self.COLORS.get(record.levelname, '')
        timestamp = datetime.now().strftime('%H:%M:%S')

        msg = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
        msg += f"[{get_correlation_id()}] "
        msg += f"{record.name}: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


@dataclass
class LoggingConfig:
    """Configuration for the logging system."""
    level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: Path.home() / ".smart_paths" / "logs")
    console_output: bool = True
    file_output: bool = True
    json_format: bool = False  # Use JSON for console
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Set up the logging system.

    Args:
        config: Logging configuration. Uses defaults if not provided.

    Raises:
        ValueError: If the level name is not a standard logging level.
    """
    if config is None:
        config = LoggingConfig()

    level = config.level.upper()
    if level not in LEVELS:
        raise ValueError(f"Unknown log level: {config.level} (expected one of {', '.join(LEVELS)})")

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level))

    # Remove existing handlers
    root_logger.handlers.clear()

    if config.console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        if config.json_format:
            console_handler.setFormatter(JSONFormatter())
        else:
            console_handler.setFormatter(ConsoleFormatter())
        root_logger.addHandler(console_handler)

    if config.file_output:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = config.log_dir / "smart_paths.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Prevent propagation to root logger
    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Name of the module (typically __name__).

    Returns:
        Logger instance under the smart_paths hierarchy.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class Timer:
    """Context manager for timing operations and logging duration.

    Durations above ``slow_ms`` are logged at WARNING regardless of ``level``.
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.INFO,
        slow_ms: Optional[float] = None,
        **extra,
    ):
        """Initialize timer.

        Args:
            logger: Logger to log the duration to.
            operation: Name of the operation being timed.
            level: Level for the completion message.
            slow_ms: Threshold above which the operation is reported as slow.
            **extra: Additional record fields (e.g. ``path``).
        """
        self.logger = logger
        self.operation = operation
        self.level = level
        self.slow_ms = slow_ms
        self.extra = extra
        self.start_time = None
        self.duration_ms = 0.0

    @property
    def is_slow(self) -> bool:
        return self.slow_ms is not None and self.duration_ms > self.slow_ms

    def __enter__(self):
        """Start the timer."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop the timer and log the duration."""
        self.duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        extra = dict(self.extra, operation=self.operation, duration_ms=self.duration_ms)
        if exc_type is not None:
            self.logger.log(
                self.level,
                f"Operation failed: {self.operation} after {self.duration_ms} ms ({exc_type.__name__})",
                extra=extra,
            )
        elif self.is_slow:
            self.logger.warning(
                f"Slow operation: {self.operation} took {self.duration_ms} ms "
                f"(threshold {self.slow_ms} ms)",
                extra=extra,
            )
        else:
            self.logger.log(
                self.level,
                f"Operation completed: {self.operation} ({self.duration_ms} ms)",
                extra=extra,
            )
        return False
