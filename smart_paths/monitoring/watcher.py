"""
Filesystem Watcher
==================

Keeps a live, cached listing for each watched directory.

Change events from the watchdog observer are debounced per directory: every
event inside the quiet window re-arms the timer, so a burst of events yields
exactly one rescan and one ``cache_updated`` notification. Listings older
than ``stale_after_seconds`` are refreshed synchronously on the next read.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatch
from typing import Any, Callable, Dict, List, Optional

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEventHandler,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)

from smart_paths.config.settings import WatcherConfig
from smart_paths.monitoring.scanner import FileRecord, scan_directory
from smart_paths.utils.exceptions import ScanError, WatchSetupError
from smart_paths.utils.logging_config import Timer, correlation_scope, get_logger
from smart_paths.utils.ttl_cache import TTLCache

logger = get_logger(__name__)

FILE_CHANGE = "file_change"
CACHE_UPDATED = "cache_updated"
EVENTS = (FILE_CHANGE, CACHE_UPDATED)

SLOW_SCAN_MS = 500.0

RELEVANT_EVENT_TYPES = (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)


class WatchState(Enum):
    """Lifecycle of a watched directory."""
    UNWATCHED = "unwatched"
    WATCHING = "watching"
    PENDING_RESCAN = "pending_rescan"


@dataclass
class WatchedDirectory:
    """Registry entry for one watched directory.

    Attributes:
        path: Absolute directory path.
        recursive: Whether subdirectories are watched too.
        state: Current lifecycle state.
        last_scan: Wall-clock time of the last published listing.
        last_update: Wall-clock time of the last change event.
        change_count: Change events received.
        rescan_count: Rescans published after the initial listing.
        timer: Pending debounce timer, if any.
        handle: Observer watch handle.
        generation: Bumped on every event; a firing timer only acts if it
            still matches.
    """
    path: str
    recursive: bool = False
    state: WatchState = WatchState.WATCHING
    last_scan: Optional[float] = None
    last_update: Optional[float] = None
    change_count: int = 0
    rescan_count: int = 0
    timer: Optional[threading.Timer] = field(default=None, repr=False)
    handle: Any = field(default=None, repr=False)
    generation: int = 0

    def to_status(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "state": self.state.value,
            "recursive": self.recursive,
            "change_count": self.change_count,
            "rescan_count": self.rescan_count,
            "last_scan": self.last_scan,
            "last_update": self.last_update,
        }


class WatchEventHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events for one directory to the watcher."""

    def __init__(self, watcher: "DirectoryWatcher", watched_path: str):
        super().__init__()
        self.watcher = watcher
        self.watched_path = watched_path

    def on_any_event(self, event) -> None:
        """Handle any filesystem event.

        Args:
            event: Filesystem event.
        """
        if event.event_type not in RELEVANT_EVENT_TYPES:
            return
        src_path = os.fsdecode(event.src_path)
        dest_path = getattr(event, "dest_path", None)
        self.watcher.notify_change(
            self.watched_path,
            event.event_type,
            src_path,
            os.fsdecode(dest_path) if dest_path else None,
        )


class DirectoryWatcher:
    """Per-directory watches with a debounced, cached listing.

    The registry and listing cache are guarded by one re-entrant lock. Observer
    calls (schedule/unschedule) are always made outside that lock because the
    observer holds its own lock while dispatching events to us.
    """

    def __init__(
        self,
        config: Optional[WatcherConfig] = None,
        observer_factory: Callable[[], Any] = Observer,
        scanner: Callable[..., List[FileRecord]] = scan_directory,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the watcher.

        Args:
            config: Watcher configuration.
            observer_factory: Builds the watchdog observer (injectable for tests).
            scanner: Directory scanner.
            clock: Monotonic clock used for listing ages.
        """
        self.config = config or WatcherConfig()
        self._observer_factory = observer_factory
        self._scanner = scanner
        self._clock = clock
        self._observer = None
        self._lock = threading.RLock()
        self._watches: Dict[str, WatchedDirectory] = {}
        self._listings: TTLCache[str, List[FileRecord]] = TTLCache(
            ttl_seconds=self.config.listing_ttl_seconds,
            clock=clock,
            validator=lambda value: isinstance(value, list),
            name="listing-cache",
        )
        self._subscribers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {
            event: [] for event in EVENTS
        }

    @staticmethod
    def _key(path: str) -> str:
        return os.path.normcase(os.path.abspath(os.path.expanduser(path)))

    @property
    def is_running(self) -> bool:
        """Check if the observer is running."""
        return self._observer is not None and self._observer.is_alive()

    # ------------------------------------------------------------------
    # Subscriptions

    def subscribe(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Register a callback for ``file_change`` or ``cache_updated``.

        Returns:
            A function that removes the subscription.
        """
        if event not in self._subscribers:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        with self._lock:
            self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[event]:
                    self._subscribers[event].remove(callback)

        return unsubscribe

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers[event])
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Subscriber for {event} failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Watch lifecycle

    def _ensure_observer(self):
        with self._lock:
            if self._observer is None:
                observer = self._observer_factory()
                observer.start()
                self._observer = observer
                logger.info("Filesystem observer started")
            return self._observer

    def watch(self, path: str, recursive: Optional[bool] = None) -> WatchedDirectory:
        """Start watching a directory (no-op if already watched).

        Raises:
            WatchSetupError: If the directory is missing or the OS refuses
                the watch.
        """
        key = self._key(path)
        with self._lock:
            existing = self._watches.get(key)
            if existing is not None:
                return existing

        abs_path = os.path.abspath(os.path.expanduser(path))
        if not os.path.isdir(abs_path):
            raise WatchSetupError("Directory does not exist", path=abs_path)

        if recursive is None:
            recursive = self.config.recursive

        observer = self._ensure_observer()
        handler = WatchEventHandler(self, abs_path)
        try:
            handle = observer.schedule(handler, abs_path, recursive=recursive)
        except Exception as e:
            raise WatchSetupError(f"Cannot watch directory: {e}", path=abs_path, cause=e)

        watched = WatchedDirectory(path=abs_path, recursive=recursive, handle=handle)
        with self._lock:
            existing = self._watches.get(key)
            if existing is None:
                self._watches[key] = watched
        if existing is not None:
            # Lost a race with another caller; keep a single handle
            self._unschedule(handle)
            return existing

        logger.info(f"Watching directory: {abs_path}", extra={"path": abs_path})
        try:
            self._rescan(key, reason="initial")
        except ScanError as e:
            logger.warning(f"Initial scan failed: {e}")
        return watched

    def _unschedule(self, handle: Any) -> None:
        observer = self._observer
        if observer is None or handle is None:
            return
        try:
            observer.unschedule(handle)
        except (KeyError, OSError) as e:
            logger.debug(f"Unschedule failed (already gone): {e}")

    def is_watching(self, path: str) -> bool:
        with self._lock:
            return self._key(path) in self._watches

    def get_watched(self, path: str) -> Optional[WatchedDirectory]:
        with self._lock:
            return self._watches.get(self._key(path))

    def stop_watching(self, path: str) -> bool:
        """Stop one watch: release the handle, cancel its timer, drop its listing."""
        key = self._key(path)
        with self._lock:
            watched = self._watches.pop(key, None)
            if watched is None:
                return False
            if watched.timer is not None:
                watched.timer.cancel()
                watched.timer = None
            watched.generation += 1
            watched.state = WatchState.UNWATCHED
            self._listings.invalidate(key)

        self._unschedule(watched.handle)
        logger.info(f"Stopped watching: {watched.path}", extra={"path": watched.path})
        return True

    def stop_all(self) -> None:
        """Stop every watch, clear timers and caches, stop the observer."""
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
            for watched in watches:
                if watched.timer is not None:
                    watched.timer.cancel()
                    watched.timer = None
                watched.generation += 1
                watched.state = WatchState.UNWATCHED
            self._listings.clear()
            observer, self._observer = self._observer, None

        if observer is not None:
            for watched in watches:
                try:
                    observer.unschedule(watched.handle)
                except (KeyError, OSError) as e:
                    logger.debug(f"Unschedule failed (already gone): {e}")
            observer.stop()
            observer.join(timeout=5.0)
            logger.info(f"Filesystem watcher stopped ({len(watches)} watches released)")

    def watch_important_paths(self, mapping) -> List[str]:
        """Watch the first existing candidate of each configured alias key."""
        watched = []
        for key in self.config.auto_watch_keys:
            for candidate in mapping.get_base_paths(key):
                if not os.path.isdir(candidate):
                    continue
                try:
                    self.watch(candidate)
                    watched.append(candidate)
                except WatchSetupError as e:
                    logger.warning(f"Could not auto-watch {key}: {e}")
                break
        logger.info(f"Auto-watching {len(watched)} important directories")
        return watched

    # ------------------------------------------------------------------
    # Events and debounce

    def _should_ignore(self, path: Optional[str]) -> bool:
        if not path:
            return False
        name = os.path.basename(path.rstrip("/\\"))
        return any(fnmatch(name, pattern) for pattern in self.config.ignore_patterns)

    def notify_change(
        self,
        path: str,
        event_type: str = EVENT_TYPE_MODIFIED,
        src_path: Optional[str] = None,
        dest_path: Optional[str] = None,
    ) -> bool:
        """Record a change in a watched directory and (re)arm its debounce timer.

        Returns:
            True if the event was accepted.
        """
        if src_path and self._should_ignore(src_path) and (
            dest_path is None or self._should_ignore(dest_path)
        ):
            logger.debug(f"Ignoring event (matches pattern): {src_path}")
            return False

        key = self._key(path)
        with self._lock:
            watched = self._watches.get(key)
            if watched is None:
                return False
            watched.change_count += 1
            watched.last_update = time.time()
            if watched.timer is not None:
                watched.timer.cancel()
            watched.generation += 1
            timer = threading.Timer(
                self.config.debounce_seconds,
                self._on_debounce_elapsed,
                args=(key, watched.generation),
            )
            timer.daemon = True
            watched.timer = timer
            watched.state = WatchState.PENDING_RESCAN
            timer.start()

        self._emit(FILE_CHANGE, {
            "path": watched.path,
            "event_type": event_type,
            "src_path": src_path,
            "dest_path": dest_path,
        })
        return True

    def _on_debounce_elapsed(self, key: str, generation: int) -> None:
        with self._lock:
            watched = self._watches.get(key)
            if watched is None or watched.generation != generation:
                return
            watched.timer = None

        with correlation_scope():
            try:
                self._rescan(key, reason="debounce", generation=generation)
            except ScanError as e:
                logger.warning(f"Debounced rescan failed: {e}")
                with self._lock:
                    watched = self._watches.get(key)
                    if watched is not None and watched.generation == generation:
                        watched.state = WatchState.WATCHING

    # ------------------------------------------------------------------
    # Scanning and listings

    def _scan(self, path: str) -> List[FileRecord]:
        with Timer(logger, f"scan {path}", level=logging.DEBUG, slow_ms=SLOW_SCAN_MS, path=path):
            return self._scanner(
                path,
                max_entries=self.config.max_scan_entries or None,
                time_budget=self.config.scan_time_budget_seconds or None,
            )

    def _rescan(self, key: str, reason: str, generation: Optional[int] = None) -> Optional[List[FileRecord]]:
        """Scan outside the lock, publish under it.

        A debounced rescan whose generation was superseded while scanning is
        discarded; the newer timer will publish instead.

        Raises:
            ScanError: If the directory cannot be listed.
        """
        with self._lock:
            watched = self._watches.get(key)
            if watched is None:
                return None
            path = watched.path

        records = self._scan(path)

        with self._lock:
            watched = self._watches.get(key)
            if watched is None:
                return None
            if generation is not None and watched.generation != generation:
                logger.debug(f"Discarding superseded rescan of {path}")
                return None
            self._listings.set(key, records)
            watched.last_scan = time.time()
            if reason != "initial":
                watched.rescan_count += 1
            if watched.timer is None:
                watched.state = WatchState.WATCHING

        if reason != "initial":
            logger.debug(f"Rescanned {path} ({reason}): {len(records)} entries")
            self._emit(CACHE_UPDATED, {
                "path": path,
                "reason": reason,
                "count": len(records),
                "records": list(records),
            })
        return records

    def get_cached_files(self, path: str) -> Optional[List[FileRecord]]:
        """Cached listing if present and not stale; never touches the disk."""
        key = self._key(path)
        entry = self._listings.get_entry(key)
        if entry is None or entry.age(self._clock()) >= self.config.stale_after_seconds:
            return None
        return list(entry.value)

    def list_directory(self, path: str) -> Optional[List[FileRecord]]:
        """Listing for a directory, watching it on first access.

        Fresh cached listings are returned as is; stale or missing ones are
        rescanned synchronously. Returns None only if the directory cannot be
        listed at all.
        """
        cached = self.get_cached_files(path)
        if cached is not None:
            return cached

        key = self._key(path)
        try:
            self.watch(path)
            cached = self.get_cached_files(path)
            if cached is not None:
                return cached
            records = self._rescan(key, reason="stale")
            if records is not None:
                return list(records)
        except (WatchSetupError, ScanError) as e:
            logger.debug(f"Watched listing unavailable, scanning directly: {e}")
        return self._direct_scan(path)

    def get_real_time_files(self, path: str) -> Optional[List[FileRecord]]:
        """Force a fresh listing.

        Ensures a watch exists, rescans synchronously, and falls back to a
        one-off direct scan if either step fails. Returns None only when the
        direct scan fails too.
        """
        key = self._key(path)
        try:
            self.watch(path)
        except WatchSetupError as e:
            logger.warning(f"Watch setup failed, degrading to direct scan: {e}")
            return self._direct_scan(path)

        try:
            records = self._rescan(key, reason="forced")
            if records is not None:
                return list(records)
        except ScanError as e:
            logger.warning(f"Rescan failed, degrading to direct scan: {e}")
        return self._direct_scan(path)

    def _direct_scan(self, path: str) -> Optional[List[FileRecord]]:
        try:
            return self._scan(os.path.abspath(os.path.expanduser(path)))
        except ScanError as e:
            logger.warning(f"Direct scan failed: {e}")
            return None

    def sweep(self) -> int:
        """Drop expired listings."""
        return self._listings.sweep()

    def get_status(self) -> Dict[str, Any]:
        """Watch registry summary."""
        with self._lock:
            per_path = [w.to_status() for w in self._watches.values()]
            active_timers = sum(1 for w in self._watches.values() if w.timer is not None)
            return {
                "watched_count": len(self._watches),
                "cached_count": len(self._listings),
                "active_timers": active_timers,
                "per_path": per_path,
            }
