"""
Configuration Management System
===============================

Provides dataclass-based configuration with YAML file loading support.
All settings are validated and have sensible defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Any, Dict
import yaml
import logging

from smart_paths.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _check_ratio(value: Any, key: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"{key} must be a number", config_key=key, expected_type="float", cause=e
        )
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(
            f"{key} must be between 0.0 and 1.0, got {value}",
            config_key=key, expected_type="float"
        )
    return value


def _check_non_negative(value: Any, key: str, kind: type = float):
    try:
        value = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"{key} must be a {kind.__name__}",
            config_key=key, expected_type=kind.__name__, cause=e
        )
    if value < 0:
        raise ConfigurationError(
            f"{key} must not be negative, got {value}",
            config_key=key, expected_type=kind.__name__
        )
    return value


def _check_bool(value: Any, key: str) -> bool:
    # YAML "false" or 0 must not silently become True
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"{key} must be true or false, got {value!r}",
            config_key=key, expected_type="bool"
        )
    return value


@dataclass
class ResolverConfig:
    """Path resolver configuration.

    Attributes:
        cache_ttl_seconds: Lifetime of a memoized resolution.
        learned_threshold: Minimum confidence for a learned-intent match.
        heuristic_threshold: Minimum confidence for a heuristic inference.
        near_match_threshold: Minimum similarity for a near-exact alias match.
        default_locale: Locale used when the caller supplies none.
        development_roots: Candidate folders for development keywords.
    """
    cache_ttl_seconds: float = 300.0
    learned_threshold: float = 0.6
    heuristic_threshold: float = 0.7
    near_match_threshold: float = 0.8
    default_locale: str = "ko"
    development_roots: List[str] = field(default_factory=lambda: [
        "D:\\my_app", "D:\\projects", "~/projects"
    ])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolverConfig":
        """Create ResolverConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        ttl = _check_non_negative(
            data.get("cache_ttl_seconds", defaults.cache_ttl_seconds),
            "resolver.cache_ttl_seconds"
        )
        if ttl == 0:
            raise ConfigurationError(
                "resolver.cache_ttl_seconds must be positive",
                config_key="resolver.cache_ttl_seconds", expected_type="float"
            )
        return cls(
            cache_ttl_seconds=ttl,
            learned_threshold=_check_ratio(
                data.get("learned_threshold", defaults.learned_threshold),
                "resolver.learned_threshold"
            ),
            heuristic_threshold=_check_ratio(
                data.get("heuristic_threshold", defaults.heuristic_threshold),
                "resolver.heuristic_threshold"
            ),
            near_match_threshold=_check_ratio(
                data.get("near_match_threshold", defaults.near_match_threshold),
                "resolver.near_match_threshold"
            ),
            default_locale=str(data.get("default_locale", defaults.default_locale)),
            development_roots=list(data.get("development_roots", defaults.development_roots)),
        )


@dataclass
class WatcherConfig:
    """Filesystem watcher configuration.

    Attributes:
        debounce_seconds: Quiet period before a burst of events triggers a rescan.
        stale_after_seconds: Age after which a cached listing is refreshed on read.
        recursive: Whether to watch subdirectories.
        ignore_patterns: Glob patterns for entries whose events are ignored.
        auto_watch_keys: Alias keys watched by ``watch_important_paths``.
        listing_ttl_seconds: Hard expiry of a cached listing.
        max_scan_entries: Upper bound on entries returned by one scan.
        scan_time_budget_seconds: Upper bound on time spent in one scan.
    """
    debounce_seconds: float = 1.0
    stale_after_seconds: float = 30.0
    recursive: bool = False
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp", "*.crdownload", "~$*", ".DS_Store", "Thumbs.db", "*.part"
    ])
    auto_watch_keys: List[str] = field(default_factory=lambda: [
        "desktop", "documents", "downloads", "pictures", "music", "videos"
    ])
    listing_ttl_seconds: float = 300.0
    max_scan_entries: int = 10000
    scan_time_budget_seconds: float = 5.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatcherConfig":
        """Create WatcherConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        return cls(
            debounce_seconds=_check_non_negative(
                data.get("debounce_seconds", defaults.debounce_seconds),
                "watcher.debounce_seconds"
            ),
            stale_after_seconds=_check_non_negative(
                data.get("stale_after_seconds", defaults.stale_after_seconds),
                "watcher.stale_after_seconds"
            ),
            recursive=_check_bool(data.get("recursive", defaults.recursive), "watcher.recursive"),
            ignore_patterns=list(data.get("ignore_patterns", defaults.ignore_patterns)),
            auto_watch_keys=list(data.get("auto_watch_keys", defaults.auto_watch_keys)),
            listing_ttl_seconds=_check_non_negative(
                data.get("listing_ttl_seconds", defaults.listing_ttl_seconds),
                "watcher.listing_ttl_seconds"
            ) or defaults.listing_ttl_seconds,
            max_scan_entries=_check_non_negative(
                data.get("max_scan_entries", defaults.max_scan_entries),
                "watcher.max_scan_entries", int
            ),
            scan_time_budget_seconds=_check_non_negative(
                data.get("scan_time_budget_seconds", defaults.scan_time_budget_seconds),
                "watcher.scan_time_budget_seconds"
            ),
        )


@dataclass
class CacheConfig:
    """Cache maintenance settings.

    Attributes:
        sweep_interval_seconds: How often expired entries are swept (0 disables).
    """
    sweep_interval_seconds: float = 60.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        """Create CacheConfig from dictionary."""
        if not data:
            return cls()
        return cls(
            sweep_interval_seconds=_check_non_negative(
                data.get("sweep_interval_seconds", cls.sweep_interval_seconds),
                "cache.sweep_interval_seconds"
            )
        )


@dataclass
class DetectionConfig:
    """Auto path detection settings.

    Attributes:
        enabled: Run detection when the service starts.
        data_directory: Directory holding the detection snapshot.
        snapshot_filename: Snapshot file name inside ``data_directory``.
        rescan_interval_seconds: Periodic re-detection interval (0 disables).
    """
    enabled: bool = True
    data_directory: Path = field(default_factory=lambda: Path.home() / ".smart_paths" / "data")
    snapshot_filename: str = "detected_paths.json"
    rescan_interval_seconds: float = 0.0

    @property
    def snapshot_path(self) -> Path:
        return self.data_directory / self.snapshot_filename

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionConfig":
        """Create DetectionConfig from dictionary."""
        if not data:
            return cls()

        data_dir = Path(data.get("data_directory", "~/.smart_paths/data")).expanduser()

        return cls(
            enabled=_check_bool(data.get("enabled", cls.enabled), "detection.enabled"),
            data_directory=data_dir,
            snapshot_filename=data.get("snapshot_filename", cls.snapshot_filename),
            rescan_interval_seconds=_check_non_negative(
                data.get("rescan_interval_seconds", cls.rescan_interval_seconds),
                "detection.rescan_interval_seconds"
            ),
        )


@dataclass
class LearningConfig:
    """Learned-intent storage settings.

    Attributes:
        backend: "memory" (default) or "json".
        storage_path: JSON file used by the json backend.
        max_history: Resolutions remembered per user.
    """
    backend: str = "memory"
    storage_path: Path = field(default_factory=lambda: Path.home() / ".smart_paths" / "learning.json")
    max_history: int = 100

    BACKENDS = ("memory", "json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningConfig":
        """Create LearningConfig from dictionary."""
        if not data:
            return cls()

        backend = data.get("backend", cls.backend)
        if backend not in cls.BACKENDS:
            raise ConfigurationError(
                f"learning.backend must be one of {cls.BACKENDS}, got {backend!r}",
                config_key="learning.backend", expected_type="str"
            )
        storage_path = Path(
            data.get("storage_path", "~/.smart_paths/learning.json")
        ).expanduser()

        return cls(
            backend=backend,
            storage_path=storage_path,
            max_history=_check_non_negative(
                data.get("max_history", cls.max_history), "learning.max_history", int
            ),
        )


@dataclass
class Config:
    """Main configuration container.

    Aggregates all configuration sections and provides loading from YAML.
    """
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file.

        Args:
            config_path: Path to the configuration file. If None, looks for
                        config.yaml in the current directory.

        Returns:
            Config instance with loaded settings.

        Raises:
            ConfigurationError: If a value is out of range.
            yaml.YAMLError: If config file is not valid YAML.
        """
        if config_path is None:
            config_path = Path("config.yaml")

        if not config_path.exists():
            logger.warning(f"Config file not found at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}

            logger.info(f"Loaded configuration from {config_path}")
            return cls._from_dict(data)

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping", expected_type="dict"
            )
        return cls(
            resolver=ResolverConfig.from_dict(data.get("resolver", {})),
            watcher=WatcherConfig.from_dict(data.get("watcher", {})),
            cache=CacheConfig.from_dict(data.get("cache", {})),
            detection=DetectionConfig.from_dict(data.get("detection", {})),
            learning=LearningConfig.from_dict(data.get("learning", {})),
        )

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path where to save the configuration.
        """
        data = {
            "resolver": {
                "cache_ttl_seconds": self.resolver.cache_ttl_seconds,
                "learned_threshold": self.resolver.learned_threshold,
                "heuristic_threshold": self.resolver.heuristic_threshold,
                "near_match_threshold": self.resolver.near_match_threshold,
                "default_locale": self.resolver.default_locale,
                "development_roots": self.resolver.development_roots,
            },
            "watcher": {
                "debounce_seconds": self.watcher.debounce_seconds,
                "stale_after_seconds": self.watcher.stale_after_seconds,
                "recursive": self.watcher.recursive,
                "ignore_patterns": self.watcher.ignore_patterns,
                "auto_watch_keys": self.watcher.auto_watch_keys,
                "listing_ttl_seconds": self.watcher.listing_ttl_seconds,
                "max_scan_entries": self.watcher.max_scan_entries,
                "scan_time_budget_seconds": self.watcher.scan_time_budget_seconds,
            },
            "cache": {
                "sweep_interval_seconds": self.cache.sweep_interval_seconds,
            },
            "detection": {
                "enabled": self.detection.enabled,
                "data_directory": str(self.detection.data_directory),
                "snapshot_filename": self.detection.snapshot_filename,
                "rescan_interval_seconds": self.detection.rescan_interval_seconds,
            },
            "learning": {
                "backend": self.learning.backend,
                "storage_path": str(self.learning.storage_path),
                "max_history": self.learning.max_history,
            },
        }

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

        logger.info(f"Saved configuration to {config_path}")
