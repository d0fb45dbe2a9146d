"""
Custom Exceptions
=================

Defines custom exception classes for Smart Paths.
All exceptions include error codes for programmatic handling.

Most of these never reach a caller: resolution stages and directory scans
catch them and degrade to "no result". They still exist so every failure is
logged with the same structure.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error codes for programmatic error handling."""

    # General errors (1000-1099)
    UNKNOWN_ERROR = 1000
    CONFIGURATION_ERROR = 1001

    # Resolution errors (1100-1199)
    PATH_NOT_FOUND = 1100
    STAGE_FAILED = 1101

    # Watcher / scan errors (1200-1299)
    WATCH_SETUP_FAILED = 1200
    SCAN_FAILED = 1201
    SCAN_PERMISSION_DENIED = 1202

    # Cache errors (1300-1399)
    CACHE_CORRUPTION = 1300

    # Detection errors (1400-1499)
    DETECTION_FAILED = 1400
    SNAPSHOT_FAILED = 1401


class SmartPathsError(Exception):
    """Base exception for all Smart Paths errors.

    Attributes:
        message: Human-readable error message.
        error_code: Programmatic error code.
        details: Additional error context.
        cause: Original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[dict] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Programmatic error code.
            details: Additional context as key-value pairs.
            cause: Original exception if wrapping another error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return a formatted error string."""
        result = f"[{self.error_code.name}] {self.message}"
        if self.details:
            result += f" | Details: {self.details}"
        if self.cause:
            result += f" | Caused by: {type(self.cause).__name__}: {self.cause}"
        return result

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


def _details(kwargs: dict, **fields) -> dict:
    """Merge keyword context into ``details``, skipping unset fields."""
    details = kwargs.pop("details", None) or {}
    details.update({k: v for k, v in fields.items() if v is not None})
    return details


class ConfigurationError(SmartPathsError):
    """Raised when there's a configuration problem.

    Examples:
        - Invalid configuration file format
        - Threshold outside 0.0-1.0
        - Negative debounce delay
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = _details(kwargs, config_key=config_key, expected_type=expected_type)
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details, **kwargs)


class PathNotFoundError(SmartPathsError):
    """No resolution stage matched the input with enough confidence.

    Never raised to callers; the resolver attaches it as a warning to the
    fallback result.
    """

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        details = _details(kwargs, query=query)
        super().__init__(message, ErrorCode.PATH_NOT_FOUND, details, **kwargs)


class ResolutionStageError(SmartPathsError):
    """A resolution stage failed internally."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        query: Optional[str] = None,
        **kwargs
    ):
        details = _details(kwargs, stage=stage, query=query)
        super().__init__(message, ErrorCode.STAGE_FAILED, details, **kwargs)


class WatchSetupError(SmartPathsError):
    """The OS refused to set up a watch on a directory.

    Examples:
        - Directory does not exist
        - inotify watch limit reached
        - Access denied
    """

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = _details(kwargs, path=path)
        super().__init__(message, ErrorCode.WATCH_SETUP_FAILED, details, **kwargs)


class ScanError(SmartPathsError):
    """A directory could not be listed at all."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.SCAN_FAILED,
        **kwargs
    ):
        details = _details(kwargs, path=path)
        super().__init__(message, error_code, details, **kwargs)


class ScanPermissionError(ScanError):
    """A single directory entry could not be read; it is skipped."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, path, ErrorCode.SCAN_PERMISSION_DENIED, **kwargs)


class CacheCorruptionError(SmartPathsError):
    """A cache entry failed validation; treated as a miss."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        details = _details(kwargs, key=key)
        super().__init__(message, ErrorCode.CACHE_CORRUPTION, details, **kwargs)


class DetectionError(SmartPathsError):
    """Auto path detection or snapshot persistence failed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.DETECTION_FAILED,
        **kwargs
    ):
        details = _details(kwargs, path=path)
        super().__init__(message, error_code, details, **kwargs)
