"""
Directory Scanner
=================

Single-level directory listing used to fill the watcher's listing cache.
Directories come first, then files, each in case-insensitive name order.
Entries that cannot be read are skipped; the directory itself being
unreadable raises ``ScanError``.
"""

import os
import stat
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, List, Optional

from smart_paths.utils.exceptions import ScanError, ScanPermissionError
from smart_paths.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """Metadata for one directory entry.

    Attributes:
        name: Entry name.
        path: Full path.
        is_directory: True for directories (symlinks are followed).
        size: Size in bytes (0 for directories).
        modified_at: Modification time (epoch seconds).
        created_at: Creation time where the OS reports one, else ctime.
        permissions: ``ls``-style mode string, e.g. "-rw-r--r--".
    """
    name: str
    path: str
    is_directory: bool
    size: int
    modified_at: float
    created_at: float
    permissions: str

    @classmethod
    def from_entry(cls, entry: os.DirEntry) -> "FileRecord":
        """Build a record from a scandir entry.

        Raises:
            OSError: If the entry cannot be stat'ed.
        """
        info = entry.stat()
        is_directory = stat.S_ISDIR(info.st_mode)
        created = getattr(info, "st_birthtime", None) or info.st_ctime
        return cls(
            name=entry.name,
            path=entry.path,
            is_directory=is_directory,
            size=0 if is_directory else info.st_size,
            modified_at=info.st_mtime,
            created_at=created,
            permissions=stat.filemode(info.st_mode),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary with ISO timestamps."""
        data = asdict(self)
        data["modified_at"] = datetime.fromtimestamp(self.modified_at).isoformat()
        data["created_at"] = datetime.fromtimestamp(self.created_at).isoformat()
        return data


def sort_records(records: List[FileRecord]) -> List[FileRecord]:
    """Directories first, then files; case-insensitive name order within each."""
    return sorted(records, key=lambda r: (not r.is_directory, r.name.casefold(), r.name))


def scan_directory(
    path: str,
    max_entries: Optional[int] = None,
    time_budget: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> List[FileRecord]:
    """List one directory.

    Args:
        path: Directory to list.
        max_entries: Stop after this many readable entries.
        time_budget: Stop after this many seconds (partial listing).
        clock: Time source for the budget.

    Returns:
        Sorted records.

    Raises:
        ScanError: If the directory itself cannot be opened.
    """
    records: List[FileRecord] = []
    skipped = 0
    deadline = clock() + time_budget if time_budget else None

    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    records.append(FileRecord.from_entry(entry))
                except OSError as e:
                    skipped += 1
                    error = ScanPermissionError(
                        "Skipping unreadable entry", path=entry.path, cause=e
                    )
                    logger.debug(str(error))
                    continue

                if max_entries and len(records) >= max_entries:
                    logger.warning(f"Scan of {path} truncated at {max_entries} entries")
                    break
                if deadline is not None and clock() > deadline:
                    logger.warning(
                        f"Scan of {path} exceeded {time_budget}s budget; "
                        f"returning {len(records)} entries"
                    )
                    break
    except OSError as e:
        raise ScanError(f"Cannot list directory: {e}", path=str(path), cause=e)

    if skipped:
        logger.debug(f"Skipped {skipped} unreadable entries in {path}")
    return sort_records(records)
