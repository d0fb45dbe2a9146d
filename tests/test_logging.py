"""
Unit tests for logging configuration.
"""

import json
import logging

import pytest

from smart_paths.utils.logging_config import (
    JSONFormatter,
    LoggingConfig,
    Timer,
    correlation_scope,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)


class ListHandler(logging.Handler):
    """Keeps every record it receives."""

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    """Logger with a capturing handler attached directly."""
    logger = get_logger("tests.logging")
    handler = ListHandler()
    logger.addHandler(handler)
    old_level = logger.level
    logger.setLevel(logging.DEBUG)
    yield logger, handler
    logger.removeHandler(handler)
    logger.setLevel(old_level)


class TestCorrelation:
    """Tests for correlation ids."""

    def test_scope_restores_previous_id(self):
        """Test a scope sets a fresh id and restores the outer one."""
        set_correlation_id("outer")

        with correlation_scope() as inner:
            assert get_correlation_id() == inner
            assert inner != "outer"

        assert get_correlation_id() == "outer"

    def test_scope_accepts_explicit_id(self):
        """Test an explicit id is used as given."""
        with correlation_scope("req-42"):
            assert get_correlation_id() == "req-42"


class TestLoggers:
    """Tests for logger naming and setup."""

    def test_module_loggers_share_hierarchy(self):
        """Test names are placed under the package logger once."""
        assert get_logger("smart_paths.resolution.resolver").name == "smart_paths.resolution.resolver"
        assert get_logger("helpers").name == "smart_paths.helpers"

    def test_unknown_level_rejected(self):
        """Test a misspelled level fails loudly."""
        with pytest.raises(ValueError):
            setup_logging(LoggingConfig(level="VERBOSE", file_output=False))

    def test_file_output_is_json(self, tmp_path):
        """Test the rotating file handler writes JSON lines with extras."""
        setup_logging(LoggingConfig(level="DEBUG", log_dir=tmp_path, console_output=False))
        logger = get_logger("tests.file")

        with correlation_scope("abc123"):
            logger.info("resolved", extra={"stage": "direct", "path": "/home/u/Downloads"})
        for handler in logging.getLogger("smart_paths").handlers:
            handler.flush()

        line = (tmp_path / "smart_paths.log").read_text(encoding="utf-8").strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "resolved"
        assert data["correlation_id"] == "abc123"
        assert data["stage"] == "direct"
        assert data["path"] == "/home/u/Downloads"

        setup_logging(LoggingConfig(level="WARNING", console_output=False, file_output=False))


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_non_ascii_preserved(self):
        """Test Hangul paths are written as text, not escapes."""
        record = logging.LogRecord("smart_paths", logging.INFO, __file__, 1, "다운로드", None, None)

        assert "다운로드" in JSONFormatter().format(record)


class TestTimer:
    """Tests for the Timer context manager."""

    def test_completion_logged_at_level(self, captured):
        """Test a normal run logs at the requested level with its duration."""
        logger, handler = captured

        with Timer(logger, "scan", level=logging.DEBUG, path="/tmp/x") as timer:
            pass

        record = handler.records[-1]
        assert record.levelno == logging.DEBUG
        assert record.operation == "scan"
        assert record.path == "/tmp/x"
        assert record.duration_ms == timer.duration_ms

    def test_slow_operation_warns(self, captured):
        """Test exceeding the threshold escalates to WARNING."""
        logger, handler = captured

        with Timer(logger, "scan", level=logging.DEBUG, slow_ms=-1):
            pass

        assert handler.records[-1].levelno == logging.WARNING
        assert "Slow operation" in handler.records[-1].getMessage()

    def test_failure_logged_and_propagated(self, captured):
        """Test an exception inside the block is reported and re-raised."""
        logger, handler = captured

        with pytest.raises(OSError):
            with Timer(logger, "scan"):
                raise OSError("disk gone")

        assert "Operation failed" in handler.records[-1].getMessage()
