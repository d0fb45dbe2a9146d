"""Detection module: well-known folder discovery and periodic re-detection."""

from .detector import AutoPathDetector, DetectedPath, detect_language
from .scheduler import PeriodicDetector, DetectionDiff

__all__ = [
    "AutoPathDetector",
    "DetectedPath",
    "detect_language",
    "PeriodicDetector",
    "DetectionDiff",
]
