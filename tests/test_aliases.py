"""
Unit tests for the platform environment and alias mapping table.
"""

import pytest

from smart_paths.config import PlatformEnvironment
from smart_paths.resolution.aliases import (
    CASE_INSENSITIVE,
    COMPACT,
    EXACT,
    NEAR,
    MappingTable,
    build_default_aliases,
)

HOME = "C:\\Users\\tester"


@pytest.fixture
def wsl_env():
    return PlatformEnvironment(
        platform="wsl",
        home="/home/tester",
        username="tester",
        cwd="/home/tester",
        temp_dir="/tmp",
        windows_home="/mnt/c/Users/tester",
    )


class TestPlatformEnvironment:
    """Tests for PlatformEnvironment path helpers."""

    @pytest.mark.parametrize("path,expected", [
        ("C:\\Users\\tester", True),
        ("C:/Users/tester", True),
        ("\\\\server\\share\\docs", True),
        ("C:relative", False),
        ("notes", False),
    ])
    def test_windows_is_absolute(self, windows_env, path, expected):
        """Test drive and UNC detection."""
        assert windows_env.is_absolute(path) is expected

    def test_windows_absolutize(self, windows_env):
        """Test relative input is joined to the working directory."""
        assert windows_env.absolutize("notes") == f"{HOME}\\notes"

    def test_expand_user(self, windows_env):
        """Test both separator styles after the tilde."""
        assert windows_env.expand_user("~") == HOME
        assert windows_env.expand_user("~\\Docs") == f"{HOME}\\Docs"
        assert windows_env.expand_user("~/Docs") == f"{HOME}\\Docs"

    def test_to_wsl_path(self, windows_env):
        """Test drive letters map to /mnt mounts."""
        assert windows_env.to_wsl_path("C:\\Users\\tester\\Downloads") == "/mnt/c/Users/tester/Downloads"
        assert windows_env.to_wsl_path("D:\\") == "/mnt/d"
        assert windows_env.to_wsl_path("/already/posix") == "/already/posix"

    def test_unknown_platform_rejected(self):
        """Test invalid platform ids are refused."""
        with pytest.raises(ValueError):
            PlatformEnvironment(platform="amiga", home="/", username="u", cwd="/", temp_dir="/tmp")


class TestMappingTablePaths:
    """Tests for per-platform candidate paths."""

    def test_windows_downloads(self, windows_env):
        """Test the Windows downloads folder comes first."""
        table = MappingTable(windows_env)

        assert table.get_base_paths("downloads")[0] == f"{HOME}\\Downloads"

    def test_locale_extras_follow_platform_targets(self, windows_env):
        """Test localized OneDrive folders come after the standard one."""
        table = MappingTable(windows_env)

        assert table.get_base_paths("desktop", "ko") == [
            f"{HOME}\\Desktop",
            f"{HOME}\\OneDrive\\바탕 화면",
        ]
        assert table.get_base_paths("desktop", "en") == [
            f"{HOME}\\Desktop",
            f"{HOME}\\OneDrive\\Desktop",
        ]

    def test_unknown_locale_uses_default(self, windows_env):
        """Test an unsupported locale falls back to the default locale."""
        table = MappingTable(windows_env)

        assert table.get_base_paths("desktop", "fr") == table.get_base_paths("desktop", "ko")

    def test_onedrive_regional_suffix(self, windows_env):
        """Test OneDrive's Korean personal folder is a candidate."""
        table = MappingTable(windows_env)

        assert f"{HOME}\\OneDrive - 개인용" in table.get_base_paths("onedrive", "ko")

    def test_drive_root(self, windows_env):
        """Test drive aliases render as drive roots."""
        table = MappingTable(windows_env)

        assert table.get_base_paths("drive_d") == ["D:\\"]

    def test_temp_uses_environment(self, windows_env):
        """Test the temp alias follows the environment's temp directory."""
        table = MappingTable(windows_env)

        assert table.get_base_paths("temp") == [windows_env.temp_dir]

    def test_wsl_includes_windows_profile(self, wsl_env):
        """Test WSL sees both the Linux home and the mounted Windows profile."""
        table = MappingTable(wsl_env)

        paths = table.get_base_paths("downloads")
        assert paths[0] == "/home/tester/Downloads"
        assert "/mnt/c/Users/tester/Downloads" in paths

    def test_unknown_key(self, windows_env):
        """Test unknown keys yield no candidates."""
        assert MappingTable(windows_env).get_base_paths("nope") == []

    def test_every_entry_has_windows_targets(self, windows_env):
        """Test the default table covers Windows for every alias."""
        for entry in build_default_aliases(windows_env):
            assert entry.target_paths["windows"], entry.key


class TestMappingTableLookup:
    """Tests for alias lookup tiers."""

    @pytest.fixture
    def table(self, windows_env):
        return MappingTable(windows_env)

    def test_exact(self, table):
        """Test an exact localized name."""
        match = table.lookup("다운로드")[0]

        assert match.key == "downloads"
        assert match.kind == EXACT
        assert match.score == 1.0

    def test_case_insensitive(self, table):
        """Test case is ignored."""
        match = table.lookup("DESKTOP", "en")[0]

        assert match.key == "desktop"
        assert match.kind == CASE_INSENSITIVE

    def test_compact(self, table):
        """Test spacing differences still match."""
        match = table.lookup("카카오톡받은파일")[0]

        assert match.key == "kakaotalk"
        assert match.kind == COMPACT

    def test_near(self, table):
        """Test a one-letter typo matches near-exactly."""
        match = table.lookup("dowloads", "en")[0]

        assert match.key == "downloads"
        assert match.kind == NEAR
        assert match.score >= 0.8

    def test_no_match(self, table):
        """Test unrelated text matches nothing."""
        assert table.lookup("zzz-nonexistent-token") == []
        assert table.lookup("   ") == []

    def test_other_locale_names_still_match(self, table):
        """Test names from another locale are found after the requested one."""
        assert table.resolve_key("デスクトップ", "ko") == "desktop"


class TestMappingTableUpdates:
    """Tests for dynamic alias changes."""

    def test_add_alias(self, windows_env):
        """Test a custom alias is resolvable."""
        table = MappingTable(windows_env)

        table.add_alias("nas", {"en": ["nas", "network share"]}, ["\\\\server\\share"])

        assert "nas" in table
        assert table.resolve_key("network share", "en") == "nas"
        assert table.get_base_paths("nas") == ["\\\\server\\share"]

    def test_add_alias_unknown_platform(self, windows_env):
        """Test adding paths for an unknown platform fails."""
        with pytest.raises(ValueError):
            MappingTable(windows_env).add_alias("x", {}, ["/x"], platform="beos")

    def test_apply_detection_promotes(self, windows_env):
        """Test detected folders move to the front."""
        table = MappingTable(windows_env)

        changed = table.apply_detection({"downloads": ["D:\\Downloads"], "unknown": ["X:\\"]})

        assert changed == 1
        assert table.get_base_paths("downloads")[:2] == ["D:\\Downloads", f"{HOME}\\Downloads"]
        assert table.apply_detection({"downloads": ["D:\\Downloads"]}) == 0

    def test_get_all_aliases(self, windows_env):
        """Test the flattened name map."""
        aliases = MappingTable(windows_env).get_all_aliases()

        assert aliases["바탕화면"] == f"{HOME}\\Desktop"
        assert aliases["downloads"] == f"{HOME}\\Downloads"
