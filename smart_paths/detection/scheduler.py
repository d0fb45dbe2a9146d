"""
Periodic Re-detection
=====================

Re-runs path detection on an interval, reports which folders appeared or
disappeared, and promotes newly verified folders in the alias table.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from smart_paths.detection.detector import AutoPathDetector
from smart_paths.resolution.aliases import MappingTable
from smart_paths.utils.logging_config import get_logger
from smart_paths.utils.periodic import PeriodicTask

logger = get_logger(__name__)


@dataclass
class DetectionDiff:
    """Changes between two detection runs (category -> paths)."""
    new_paths: Dict[str, List[str]] = field(default_factory=dict)
    removed_paths: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_paths or self.removed_paths)

    def to_dict(self) -> dict:
        return {"new_paths": self.new_paths, "removed_paths": self.removed_paths}


def _pairs(paths: Dict[str, List[str]]) -> Set[Tuple[str, str]]:
    return {(category, path) for category, items in paths.items() for path in items}


def _group(pairs) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for category, path in sorted(pairs):
        grouped.setdefault(category, []).append(path)
    return grouped


class PeriodicDetector:
    """Keeps detection results and the alias table current."""

    def __init__(
        self,
        detector: AutoPathDetector,
        mapping: MappingTable,
        interval_seconds: float,
        on_change: Optional[Callable[[DetectionDiff], None]] = None,
    ):
        self.detector = detector
        self.mapping = mapping
        self.interval_seconds = interval_seconds
        self.on_change = on_change
        self._task: Optional[PeriodicTask] = None

    def run_once(self) -> DetectionDiff:
        """Detect again, diff against the previous run, refresh the table."""
        previous = _pairs(self.detector.verified_paths())
        self.detector.start_detection(force=True)
        current_paths = self.detector.verified_paths()
        current = _pairs(current_paths)

        diff = DetectionDiff(
            new_paths=_group(current - previous),
            removed_paths=_group(previous - current),
        )
        if diff.new_paths:
            self.mapping.apply_detection(diff.new_paths)
        if diff.has_changes:
            logger.info(
                f"Detection changed: {len(current - previous)} new, "
                f"{len(previous - current)} removed"
            )
            if self.on_change is not None:
                self.on_change(diff)
        return diff

    @property
    def is_running(self) -> bool:
        return self._task is not None and self._task.is_running

    def start(self) -> None:
        """Start periodic detection (no-op when the interval is 0)."""
        if self.interval_seconds <= 0:
            logger.debug("Periodic detection disabled")
            return
        if self.is_running:
            return
        self._task = PeriodicTask("PathDetector-Rescan", self.interval_seconds, self.run_once)
        self._task.start()

    def stop(self) -> None:
        if self._task is not None:
            self._task.stop()
            self._task = None
