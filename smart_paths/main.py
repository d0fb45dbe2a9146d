"""
Smart Paths - Service Facade
============================

Wires the resolver, alias table, learning store, directory watcher and path
detector into one service, and exposes a small command line.
"""

import json
import signal
import sys
import time
import threading
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional

from smart_paths.config import Config, PlatformEnvironment
from smart_paths.detection import AutoPathDetector, PeriodicDetector, DetectionDiff
from smart_paths.monitoring import DirectoryWatcher, FileRecord, CACHE_UPDATED
from smart_paths.resolution import (
    MappingTable,
    PathResolver,
    InMemoryLearningStore,
    JsonLearningStore,
)
from smart_paths.resolution.learning import LearningStore
from smart_paths.utils.logging_config import (
    setup_logging,
    get_logger,
    LoggingConfig,
    LEVELS,
    correlation_scope,
)
from smart_paths.utils.periodic import PeriodicTask

logger = get_logger(__name__)

MAX_WARNINGS = 50


class SmartPathService:
    """Main orchestrator for path resolution and directory listings.

    ``resolve_path`` never raises and never returns an empty list.
    ``list_directory`` returns None only when a directory cannot be read.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        env: Optional[PlatformEnvironment] = None,
        watcher: Optional[DirectoryWatcher] = None,
        detector: Optional[AutoPathDetector] = None,
    ):
        """Initialize the service.

        Args:
            config: Loaded configuration (defaults if omitted).
            env: Platform environment (detected if omitted).
            watcher: Pre-built directory watcher (for tests).
            detector: Pre-built path detector (for tests).
        """
        self.config = config or Config()
        self.env = env or PlatformEnvironment.detect()
        self._warnings: deque = deque(maxlen=MAX_WARNINGS)
        self._warnings_lock = threading.Lock()

        self.mapping = MappingTable(
            self.env,
            default_locale=self.config.resolver.default_locale,
            near_match_threshold=self.config.resolver.near_match_threshold,
        )
        self.learning = self._build_learning_store()
        self.resolver = PathResolver(
            self.env, self.mapping, learning=self.learning, config=self.config.resolver
        )
        self.watcher = watcher or DirectoryWatcher(self.config.watcher)
        self.detector = detector or AutoPathDetector(
            self.env, snapshot_path=self.config.detection.snapshot_path
        )
        self.periodic_detector = PeriodicDetector(
            self.detector,
            self.mapping,
            self.config.detection.rescan_interval_seconds,
            on_change=self._on_detection_change,
        )
        self._sweeper: Optional[PeriodicTask] = None
        self._started = False
        self._unsubscribe = None

        if self.config.detection.enabled and self.detector.load_snapshot() is not None:
            self.mapping.apply_detection(self.detector.verified_paths())

        logger.info(f"Smart paths service initialized ({self.env.platform})")

    def _build_learning_store(self) -> LearningStore:
        learning = self.config.learning
        if learning.backend == "json":
            return JsonLearningStore(learning.storage_path, max_history=learning.max_history)
        return InMemoryLearningStore(max_history=learning.max_history)

    # =====================
    # Resolution
    # =====================

    def resolve_path(self, text: str, context: Optional[Dict[str, Any]] = None) -> List[str]:
        """Resolve free text into candidate paths, best first."""
        with correlation_scope():
            try:
                result = self.resolver.resolve(text, context)
            except Exception as e:
                logger.error(f"Unexpected resolver failure for {text!r}: {e}", exc_info=True)
                self._add_warning(f"Resolution failed for {text!r}: {e}")
                return [self.env.absolutize(text) if text else self.env.cwd]

        for warning in result.warnings:
            self._add_warning(warning)
        return result.candidates

    def resolve(self, text: str, context: Optional[Dict[str, Any]] = None):
        """Full resolution result (stage, confidence, warnings)."""
        with correlation_scope():
            return self.resolver.resolve(text, context)

    def record_user_feedback(self, user_id: Optional[str], original_input: str, chosen_path: str) -> None:
        """Remember that ``original_input`` meant ``chosen_path`` for this user."""
        self.resolver.record_user_feedback(user_id, original_input, chosen_path)
        logger.info(f"Recorded feedback: {original_input!r} -> {chosen_path}")

    # =====================
    # Listings
    # =====================

    def list_directory(self, path: str) -> Optional[List[FileRecord]]:
        """Listing of ``path``; the directory is watched from then on."""
        records = self.watcher.list_directory(path)
        if records is None:
            self._add_warning(f"Cannot list directory: {path}")
        return records

    def get_real_time_files(self, path: str) -> Optional[List[FileRecord]]:
        return self.watcher.get_real_time_files(path)

    def watch(self, path: str) -> bool:
        """Watch a directory. Returns False if the watch could not be set up."""
        try:
            self.watcher.watch(path)
            return True
        except Exception as e:
            self._add_warning(str(e))
            logger.warning(f"Could not watch {path}: {e}")
            return False

    def get_watch_status(self) -> Dict[str, Any]:
        return self.watcher.get_status()

    # =====================
    # Detection
    # =====================

    def detect_paths(self, force: bool = False) -> Dict[str, List[str]]:
        """Run detection and promote the folders found in the alias table."""
        self.detector.start_detection(force=force)
        verified = self.detector.verified_paths()
        changed = self.mapping.apply_detection(verified)
        if changed:
            self.resolver.invalidate_cache()
        return verified

    def _on_detection_change(self, diff: DetectionDiff) -> None:
        self.resolver.invalidate_cache()
        for category, paths in diff.removed_paths.items():
            for path in paths:
                self._add_warning(f"Folder no longer found ({category}): {path}")

    # =====================
    # Lifecycle
    # =====================

    def _sweep_caches(self) -> None:
        expired = self.resolver.cache.sweep() + self.watcher.sweep()
        if expired:
            logger.debug(f"Swept {expired} expired cache entries")

    def start(self) -> None:
        """Detect paths, watch important folders and start background tasks."""
        if self._started:
            return
        logger.info("Starting smart paths service...")

        if self.config.detection.enabled:
            self.detect_paths()

        self.watcher.watch_important_paths(self.mapping)
        self._unsubscribe = self.watcher.subscribe(CACHE_UPDATED, self._on_cache_updated)

        interval = self.config.cache.sweep_interval_seconds
        if interval > 0:
            self._sweeper = PeriodicTask("CacheSweeper", interval, self._sweep_caches)
            self._sweeper.start()

        self.periodic_detector.start()
        self._started = True
        logger.info("Smart paths service is running")

    def stop(self) -> None:
        """Stop background tasks and release every watch."""
        logger.info("Stopping smart paths service...")
        self.periodic_detector.stop()
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.watcher.stop_all()
        self._started = False
        logger.info("Smart paths service stopped")

    def _on_cache_updated(self, payload: Dict[str, Any]) -> None:
        logger.debug(f"Listing refreshed: {payload['path']} ({payload['count']} entries)")

    # =====================
    # Diagnostics
    # =====================

    def _add_warning(self, message: str) -> None:
        with self._warnings_lock:
            self._warnings.append(message)

    @property
    def warnings(self) -> List[str]:
        """Most recent warnings, oldest first."""
        with self._warnings_lock:
            return list(self._warnings)

    def get_metrics(self) -> Dict[str, Any]:
        """Resolver, watcher and detection counters."""
        return {
            "resolver": self.resolver.get_metrics(),
            "watcher": self.watcher.get_status(),
            "detection": self.detector.summary(),
            "aliases": len(self.mapping),
        }


def _print_records(path: str, records: Optional[List[FileRecord]]) -> None:
    if records is None:
        print(f"✗ Cannot list {path}")
        return
    print(f"\n📂 {path} ({len(records)} entries):\n")
    for record in records:
        marker = "📁" if record.is_directory else "  "
        print(f"  {marker} {record.permissions} {record.size:>10} {record.name}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI support."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Smart Paths - Natural language folder resolution"
    )
    parser.add_argument('--resolve', '-r', metavar='TEXT', help='Resolve text into paths')
    parser.add_argument('--locale', '-l', help='Locale for alias names (e.g. ko, en)')
    parser.add_argument('--user', '-u', help='User id for learned preferences')
    parser.add_argument('--list', metavar='PATH', help='List a directory')
    parser.add_argument('--detect', '-d', action='store_true', help='Detect well-known folders')
    parser.add_argument('--watch', '-w', nargs='+', metavar='PATH', help='Watch directories until interrupted')
    parser.add_argument('--status', '-s', action='store_true', help='Show watch status and metrics')
    parser.add_argument('--config', '-c', type=Path, help='Path to config.yaml')
    parser.add_argument(
        '--log-level', default='WARNING', type=str.upper, choices=LEVELS,
        help='Logging level (default: WARNING)',
    )

    args = parser.parse_args(argv)

    setup_logging(LoggingConfig(level=args.log_level, file_output=False))
    config = Config.load(args.config)
    service = SmartPathService(config)

    if args.resolve is not None:
        context = {"locale": args.locale, "user_id": args.user}
        result = service.resolve(args.resolve, context)
        print(f"\n🔎 {args.resolve!r} -> {result.stage.value} ({result.confidence:.2f})\n")
        for candidate in result.candidates:
            print(f"  {candidate}")
        for warning in result.warnings:
            print(f"  ⚠ {warning}")
        return 0

    if args.list:
        records = service.list_directory(args.list)
        _print_records(args.list, records)
        service.stop()
        return 0 if records is not None else 1

    if args.detect:
        detected = service.detect_paths(force=True)
        print(f"\n🧭 Detected folders ({sum(len(v) for v in detected.values())}):\n")
        for category, paths in sorted(detected.items()):
            print(f"  {category}:")
            for path in paths:
                print(f"      → {path}")
        return 0

    if args.status:
        print(json.dumps(service.get_metrics(), indent=2, ensure_ascii=False, default=str))
        return 0

    if args.watch:
        for path in args.watch:
            if service.watch(path):
                print(f"✓ Watching {path}")
            else:
                print(f"✗ Cannot watch {path}")

        def signal_handler(sig, frame):
            service.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        service.watcher.subscribe(
            CACHE_UPDATED,
            lambda payload: print(f"↻ {payload['path']} ({payload['count']} entries)"),
        )
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            service.stop()
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
