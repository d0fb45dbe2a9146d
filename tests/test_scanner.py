"""
Unit tests for the directory scanner.
"""

import os

import pytest

from smart_paths.monitoring.scanner import FileRecord, scan_directory, sort_records
from smart_paths.utils.exceptions import ErrorCode, ScanError


class TestScanDirectory:
    """Tests for scan_directory."""

    @pytest.fixture
    def populated(self, tmp_path):
        """Directory with mixed-case files and folders."""
        (tmp_path / "b_dir").mkdir()
        (tmp_path / "A_dir").mkdir()
        (tmp_path / "c.txt").write_text("hello", encoding="utf-8")
        (tmp_path / "B.txt").write_text("", encoding="utf-8")
        return tmp_path

    def test_directories_first_then_name_order(self, populated):
        """Test directories come before files, each sorted case-insensitively."""
        records = scan_directory(str(populated))

        assert [r.name for r in records] == ["A_dir", "b_dir", "B.txt", "c.txt"]
        assert [r.is_directory for r in records] == [True, True, False, False]

    def test_record_metadata(self, populated):
        """Test sizes, paths and permission strings."""
        records = {r.name: r for r in scan_directory(str(populated))}

        assert records["c.txt"].size == 5
        assert records["c.txt"].path == os.path.join(str(populated), "c.txt")
        assert records["c.txt"].permissions.startswith("-")
        assert records["A_dir"].size == 0
        assert records["A_dir"].permissions.startswith("d")

    def test_unreadable_entry_skipped(self, tmp_path):
        """Test an entry that cannot be stat'ed is skipped, not fatal."""
        (tmp_path / "ok.txt").write_text("x", encoding="utf-8")
        os.symlink(str(tmp_path / "missing-target"), str(tmp_path / "dangling"))

        records = scan_directory(str(tmp_path))

        assert [r.name for r in records] == ["ok.txt"]

    def test_missing_directory_raises(self, tmp_path):
        """Test a directory that cannot be opened raises ScanError."""
        with pytest.raises(ScanError) as exc_info:
            scan_directory(str(tmp_path / "nope"))

        assert exc_info.value.error_code == ErrorCode.SCAN_FAILED

    def test_max_entries(self, tmp_path):
        """Test the listing is truncated at the entry bound."""
        for i in range(5):
            (tmp_path / f"f{i}.txt").write_text("", encoding="utf-8")

        assert len(scan_directory(str(tmp_path), max_entries=2)) == 2

    def test_time_budget(self, tmp_path):
        """Test an exhausted time budget returns a partial listing."""
        for i in range(5):
            (tmp_path / f"f{i}.txt").write_text("", encoding="utf-8")
        ticks = iter(range(0, 1000, 10))

        records = scan_directory(str(tmp_path), time_budget=5, clock=lambda: next(ticks))

        assert len(records) == 1

    def test_empty_directory(self, tmp_path):
        """Test an empty directory yields an empty list."""
        assert scan_directory(str(tmp_path)) == []


class TestFileRecord:
    """Tests for FileRecord helpers."""

    def test_to_dict_iso_times(self):
        """Test timestamps are rendered as ISO strings."""
        record = FileRecord(
            name="a.txt", path="/x/a.txt", is_directory=False, size=1,
            modified_at=0.0, created_at=0.0, permissions="-rw-r--r--",
        )

        data = record.to_dict()

        assert data["name"] == "a.txt"
        assert isinstance(data["modified_at"], str)
        assert "T" in data["created_at"]

    def test_sort_records(self):
        """Test sorting is stable for names differing only by case."""
        def make(name, is_dir=False):
            return FileRecord(name, "/" + name, is_dir, 0, 0.0, 0.0, "")

        ordered = sort_records([make("b"), make("B"), make("a", True)])

        assert [r.name for r in ordered] == ["a", "B", "b"]
