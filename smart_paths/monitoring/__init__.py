"""Monitoring module: directory scanning and debounced filesystem watching."""

from .scanner import FileRecord, scan_directory, sort_records
from .watcher import (
    DirectoryWatcher,
    WatchEventHandler,
    WatchedDirectory,
    WatchState,
    FILE_CHANGE,
    CACHE_UPDATED,
)

__all__ = [
    "FileRecord",
    "scan_directory",
    "sort_records",
    "DirectoryWatcher",
    "WatchEventHandler",
    "WatchedDirectory",
    "WatchState",
    "FILE_CHANGE",
    "CACHE_UPDATED",
]
