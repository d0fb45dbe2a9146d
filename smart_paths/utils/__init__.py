"""Utilities module for Smart Paths."""

from .logging_config import setup_logging, get_logger, LoggingConfig, Timer, correlation_scope
from .exceptions import (
    ErrorCode,
    SmartPathsError,
    ConfigurationError,
    PathNotFoundError,
    ResolutionStageError,
    WatchSetupError,
    ScanError,
    ScanPermissionError,
    CacheCorruptionError,
    DetectionError,
)
from .similarity import similarity, levenshtein_distance, normalize_text, compact_text
from .ttl_cache import TTLCache, CacheEntry, CacheStats

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingConfig",
    "Timer",
    "correlation_scope",
    "ErrorCode",
    "SmartPathsError",
    "ConfigurationError",
    "PathNotFoundError",
    "ResolutionStageError",
    "WatchSetupError",
    "ScanError",
    "ScanPermissionError",
    "CacheCorruptionError",
    "DetectionError",
    "similarity",
    "levenshtein_distance",
    "normalize_text",
    "compact_text",
    "TTLCache",
    "CacheEntry",
    "CacheStats",
]
