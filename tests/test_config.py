"""
Unit tests for configuration module.
"""

import pytest
from pathlib import Path
import yaml

from smart_paths.config.settings import (
    Config,
    ResolverConfig,
    WatcherConfig,
    CacheConfig,
    DetectionConfig,
    LearningConfig,
)
from smart_paths.utils.exceptions import ConfigurationError, ErrorCode


class TestResolverConfig:
    """Tests for ResolverConfig."""

    def test_default_values(self):
        """Test default configuration values."""
        config = ResolverConfig()

        assert config.cache_ttl_seconds == 300
        assert config.learned_threshold == 0.6
        assert config.heuristic_threshold == 0.7
        assert config.near_match_threshold == 0.8
        assert config.default_locale == "ko"

    def test_from_dict(self):
        """Test creation from dictionary."""
        config = ResolverConfig.from_dict({
            "cache_ttl_seconds": 60,
            "heuristic_threshold": 0.5,
            "default_locale": "en",
        })

        assert config.cache_ttl_seconds == 60
        assert config.heuristic_threshold == 0.5
        assert config.default_locale == "en"
        assert config.learned_threshold == 0.6

    def test_threshold_out_of_range(self):
        """Test thresholds above 1.0 are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            ResolverConfig.from_dict({"learned_threshold": 1.5})

        assert exc_info.value.error_code == ErrorCode.CONFIGURATION_ERROR
        assert exc_info.value.details["config_key"] == "resolver.learned_threshold"

    def test_zero_ttl_rejected(self):
        """Test the resolver cache needs a positive lifetime."""
        with pytest.raises(ConfigurationError):
            ResolverConfig.from_dict({"cache_ttl_seconds": 0})


class TestWatcherConfig:
    """Tests for WatcherConfig."""

    def test_default_values(self):
        """Test default configuration values."""
        config = WatcherConfig()

        assert config.debounce_seconds == 1.0
        assert config.stale_after_seconds == 30
        assert config.recursive is False
        assert "*.tmp" in config.ignore_patterns

    def test_from_dict(self):
        """Test creation from dictionary."""
        config = WatcherConfig.from_dict({"debounce_seconds": 2.0, "recursive": True})

        assert config.debounce_seconds == 2.0
        assert config.recursive is True

    def test_negative_debounce_rejected(self):
        """Test negative delays are rejected."""
        with pytest.raises(ConfigurationError):
            WatcherConfig.from_dict({"debounce_seconds": -1})

    def test_non_numeric_rejected(self):
        """Test non-numeric values are rejected."""
        with pytest.raises(ConfigurationError):
            WatcherConfig.from_dict({"max_scan_entries": "lots"})

    @pytest.mark.parametrize("value", ["false", "no", 0, 1])
    def test_non_boolean_recursive_rejected(self, value):
        """Test quoted or numeric flags are rejected instead of coerced."""
        with pytest.raises(ConfigurationError) as exc_info:
            WatcherConfig.from_dict({"recursive": value})

        assert exc_info.value.details["config_key"] == "watcher.recursive"

    def test_quoted_false_in_yaml_rejected(self, tmp_path):
        """Test recursive: "false" in a config file fails at load."""
        path = tmp_path / "config.yaml"
        path.write_text('watcher:\n  recursive: "false"\n', encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Config.load(path)


class TestOtherSections:
    """Tests for cache, detection and learning sections."""

    def test_cache_defaults(self):
        """Test sweep interval default."""
        assert CacheConfig().sweep_interval_seconds == 60

    def test_detection_snapshot_path(self, tmp_path):
        """Test the snapshot path joins directory and file name."""
        config = DetectionConfig.from_dict({"data_directory": str(tmp_path)})

        assert config.snapshot_path == tmp_path / "detected_paths.json"
        assert config.rescan_interval_seconds == 0

    def test_learning_backend_validated(self):
        """Test unknown learning backends are rejected."""
        with pytest.raises(ConfigurationError):
            LearningConfig.from_dict({"backend": "redis"})

    def test_learning_json_backend(self, tmp_path):
        """Test the json backend is accepted."""
        config = LearningConfig.from_dict({
            "backend": "json",
            "storage_path": str(tmp_path / "learning.json"),
        })

        assert config.backend == "json"
        assert config.storage_path == tmp_path / "learning.json"


class TestConfig:
    """Tests for main Config class."""

    def test_default_config(self):
        """Test default configuration creation."""
        config = Config()

        assert config.resolver is not None
        assert config.watcher is not None
        assert config.cache is not None
        assert config.detection is not None
        assert config.learning is not None

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing config file yields defaults."""
        config = Config.load(tmp_path / "missing.yaml")

        assert config.resolver.cache_ttl_seconds == 300

    def test_load_from_yaml(self, tmp_path):
        """Test loading from YAML file."""
        config_data = {
            "resolver": {"default_locale": "en"},
            "watcher": {"debounce_seconds": 0.5},
        }
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump(config_data), encoding="utf-8")

        config = Config.load(config_path)

        assert config.resolver.default_locale == "en"
        assert config.watcher.debounce_seconds == 0.5

    def test_invalid_yaml_raises(self, tmp_path):
        """Test malformed YAML propagates."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("resolver: [unclosed", encoding="utf-8")

        with pytest.raises(yaml.YAMLError):
            Config.load(config_path)

    def test_non_mapping_root_rejected(self, tmp_path):
        """Test a YAML list at the root is rejected."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Config.load(config_path)

    def test_save_and_reload(self, tmp_path):
        """Test saved configuration loads back with the same values."""
        config = Config()
        config.resolver.heuristic_threshold = 0.65
        config.watcher.ignore_patterns = ["*.bak"]
        config_path = tmp_path / "saved.yaml"

        config.save(config_path)
        loaded = Config.load(config_path)

        assert loaded.resolver.heuristic_threshold == 0.65
        assert loaded.watcher.ignore_patterns == ["*.bak"]

    def test_example_config_loads(self):
        """Test the shipped example configuration is valid."""
        example = Path(__file__).resolve().parent.parent / "config.example.yaml"

        config = Config.load(example)

        assert config.watcher.auto_watch_keys == WatcherConfig().auto_watch_keys
