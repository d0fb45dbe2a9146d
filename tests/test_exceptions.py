"""
Unit tests for the exception hierarchy.
"""

from smart_paths.utils.exceptions import (
    ErrorCode,
    ScanError,
    ScanPermissionError,
    SmartPathsError,
    WatchSetupError,
)


class TestExceptions:
    """Tests for SmartPathsError and its subclasses."""

    def test_details_skip_unset_fields(self):
        """Test only provided context ends up in details."""
        error = WatchSetupError("Directory does not exist")

        assert error.details == {}
        assert error.error_code == ErrorCode.WATCH_SETUP_FAILED

    def test_permission_error_is_scan_error(self):
        """Test entry-level failures share the scan hierarchy."""
        cause = PermissionError("denied")
        error = ScanPermissionError("Skipping unreadable entry", path="/x/y", cause=cause)

        assert isinstance(error, ScanError)
        assert isinstance(error, SmartPathsError)
        assert error.error_code == ErrorCode.SCAN_PERMISSION_DENIED
        assert error.details == {"path": "/x/y"}
        assert "PermissionError" in str(error)

    def test_to_dict(self):
        """Test serialization for structured logs."""
        data = ScanError("Cannot list directory", path="/x", details={"attempt": 2}).to_dict()

        assert data["error_type"] == "ScanError"
        assert data["error_name"] == "SCAN_FAILED"
        assert data["details"] == {"attempt": 2, "path": "/x"}
        assert data["cause"] is None
