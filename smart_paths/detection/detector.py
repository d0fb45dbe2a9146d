"""
Auto Path Detector
==================

Probes the machine for user folders, cloud-sync folders and messenger
download folders, and records what exists. Results feed the alias table and
are persisted as a JSON snapshot so a restart can reuse them.

Validation is existence-only. Every probe is isolated: one failing stat can
never abort the run.
"""

import json
import ntpath
import os
import posixpath
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from smart_paths.config.environment import DARWIN, PlatformEnvironment
from smart_paths.utils.exceptions import DetectionError, ErrorCode
from smart_paths.utils.logging_config import get_logger, Timer

logger = get_logger(__name__)

_HANGUL = re.compile(r"[가-힣]")
_LATIN = re.compile(r"[a-zA-Z]")

# Folder name -> category, English and Korean variants
STANDARD_FOLDERS: Dict[str, str] = {
    "Desktop": "desktop",
    "Documents": "documents",
    "Downloads": "downloads",
    "Pictures": "pictures",
    "Music": "music",
    "Videos": "videos",
    "바탕 화면": "desktop",
    "바탕화면": "desktop",
    "문서": "documents",
    "다운로드": "downloads",
    "사진": "pictures",
    "음악": "music",
    "비디오": "videos",
}

ONEDRIVE_FOLDERS = [
    "OneDrive",
    "OneDrive - 개인용",
    "OneDrive - Personal",
    "OneDrive - 個人用",
    "OneDrive - 个人",
]

# category -> path segments under the home directory
CLOUD_FOLDERS: Dict[str, List[List[str]]] = {
    "dropbox": [["Dropbox"]],
    "google_drive": [["Google Drive"], ["My Drive"]],
    "icloud": [["iCloudDrive"], ["iCloud Drive"]],
}

APP_FOLDERS: Dict[str, List[List[str]]] = {
    "kakaotalk": [
        ["Documents", "카카오톡 받은 파일"],
        ["Documents", "KakaoTalk Received Files"],
        ["OneDrive", "Documents", "카카오톡 받은 파일"],
        ["OneDrive", "Documents", "KakaoTalk Received Files"],
    ],
    "line": [
        ["Documents", "LINE Received Files"],
    ],
    "telegram": [
        ["Downloads", "Telegram Desktop"],
        ["Documents", "Telegram Desktop"],
    ],
}


def detect_language(path: str) -> str:
    """"ko" if the path contains Hangul, "en" if it contains Latin letters."""
    if _HANGUL.search(path):
        return "ko"
    if _LATIN.search(path):
        return "en"
    return "unknown"


def _pathmod_for(path: str):
    if re.match(r"^[A-Za-z]:", path) or path.startswith("\\\\"):
        return ntpath
    return posixpath


@dataclass
class DetectedPath:
    """A folder found on disk.

    Attributes:
        path: Absolute path.
        source: Which probe found it (standard, onedrive, cloud, app).
        language: ko / en / unknown, from the path text.
        detected_at: ISO timestamp.
    """
    path: str
    source: str
    language: str
    detected_at: str

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "source": self.source,
            "language": self.language,
            "detectedAt": self.detected_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DetectedPath":
        return cls(
            path=data["path"],
            source=data.get("source", "snapshot"),
            language=data.get("language") or detect_language(data["path"]),
            detected_at=data.get("detectedAt") or data.get("detected_at", ""),
        )


class AutoPathDetector:
    """Finds well-known folders on this machine.

    ``start_detection`` is idempotent: later calls return the first result
    unless ``force`` is set.
    """

    def __init__(
        self,
        env: PlatformEnvironment,
        snapshot_path: Optional[Path] = None,
        path_exists: Callable[[str], bool] = os.path.isdir,
        list_subdirectories: Optional[Callable[[str], List[str]]] = None,
    ):
        """Initialize the detector.

        Args:
            env: Platform environment to probe.
            snapshot_path: Where results are persisted (None disables it).
            path_exists: Existence probe (injectable for tests).
            list_subdirectories: Lists child directory names of a folder.
        """
        self.env = env
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._path_exists = path_exists
        self._list_subdirectories = list_subdirectories or _list_subdirectories
        self._detected: Dict[str, List[DetectedPath]] = {}
        self._completed = False
        self._last_run: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def completed(self) -> bool:
        return self._completed

    def _exists(self, path: str) -> bool:
        try:
            return bool(self._path_exists(path))
        except Exception as e:
            logger.debug(f"Probe failed for {path}: {e}")
            return False

    def _add(self, category: str, path: str, source: str) -> None:
        paths = self._detected.setdefault(category, [])
        if any(p.path == path for p in paths):
            return
        paths.append(DetectedPath(
            path=path,
            source=source,
            language=detect_language(path),
            detected_at=datetime.now().isoformat(),
        ))

    def _profile_bases(self) -> List[str]:
        username = self.env.username
        candidates = [
            self.env.home,
            f"C:\\Users\\{username}",
            f"/Users/{username}",
            f"/home/{username}",
        ]
        if self.env.windows_home:
            candidates.insert(1, self.env.windows_home)
        seen = set()
        bases = []
        for base in candidates:
            if base not in seen:
                seen.add(base)
                bases.append(base)
        return bases

    def _home_roots(self) -> List[str]:
        roots = [self.env.home]
        if self.env.windows_home:
            roots.append(self.env.windows_home)
        return roots

    def detect_user_folders(self) -> None:
        """Standard folders under every profile base that exists."""
        for base in self._profile_bases():
            if not self._exists(base):
                continue
            pm = _pathmod_for(base)
            for folder, category in STANDARD_FOLDERS.items():
                full_path = pm.join(base, folder)
                if self._exists(full_path):
                    self._add(category, full_path, "standard")

    def detect_onedrive(self) -> None:
        """OneDrive roots (all regional suffixes) and their standard children."""
        for home in self._home_roots():
            pm = _pathmod_for(home)
            roots = [pm.join(home, name) for name in ONEDRIVE_FOLDERS]
            if self.env.platform == DARWIN:
                roots.append(pm.join(home, "Library", "CloudStorage", "OneDrive-Personal"))
            for root in roots:
                if not self._exists(root):
                    continue
                self._add("onedrive", root, "onedrive")
                try:
                    children = self._list_subdirectories(root)
                except OSError as e:
                    logger.warning(f"OneDrive folder scan failed: {root}: {e}")
                    continue
                for name in children:
                    category = STANDARD_FOLDERS.get(name)
                    if category:
                        self._add(category, pm.join(root, name), "onedrive")

    def detect_cloud_services(self) -> None:
        """Dropbox, Google Drive and iCloud folders."""
        for home in self._home_roots():
            pm = _pathmod_for(home)
            for category, variants in CLOUD_FOLDERS.items():
                for segments in variants:
                    full_path = pm.join(home, *segments)
                    if self._exists(full_path):
                        self._add(category, full_path, "cloud")
            if self.env.platform == DARWIN:
                icloud = pm.join(home, "Library", "Mobile Documents", "com~apple~CloudDocs")
                if self._exists(icloud):
                    self._add("icloud", icloud, "cloud")

    def detect_app_folders(self) -> None:
        """Messenger download folders (KakaoTalk, LINE, Telegram)."""
        for home in self._home_roots():
            pm = _pathmod_for(home)
            for category, variants in APP_FOLDERS.items():
                for segments in variants:
                    full_path = pm.join(home, *segments)
                    if self._exists(full_path):
                        self._add(category, full_path, "app")

    def start_detection(self, force: bool = False) -> Dict[str, List[DetectedPath]]:
        """Run every probe once and persist the snapshot.

        Args:
            force: Run again even if a previous run completed.

        Returns:
            category -> detected paths.
        """
        with self._lock:
            if self._completed and not force:
                return self._copy()

            self._detected = {}
            with Timer(logger, "path detection"):
                for step in (
                    self.detect_user_folders,
                    self.detect_onedrive,
                    self.detect_cloud_services,
                    self.detect_app_folders,
                ):
                    try:
                        step()
                    except Exception as e:
                        error = DetectionError(
                            f"Detection step {step.__name__} failed", cause=e
                        )
                        logger.warning(str(error))

            self._completed = True
            self._last_run = datetime.now().isoformat()
            logger.info(
                f"Detected {sum(len(v) for v in self._detected.values())} paths "
                f"in {len(self._detected)} categories"
            )

            if self.snapshot_path is not None:
                try:
                    self.save_snapshot()
                except DetectionError as e:
                    logger.warning(str(e))

            return self._copy()

    def _copy(self) -> Dict[str, List[DetectedPath]]:
        return {category: list(paths) for category, paths in self._detected.items()}

    def get_detected_paths(self, category: Optional[str] = None):
        """All detections, or the list for one category."""
        if category is not None:
            return list(self._detected.get(category, []))
        return self._copy()

    def verified_paths(self) -> Dict[str, List[str]]:
        """category -> path strings, for refreshing the alias table."""
        return {
            category: [p.path for p in paths]
            for category, paths in self._detected.items()
        }

    def summary(self) -> Dict[str, dict]:
        """Per-category count, languages and sources."""
        result = {}
        for category, paths in self._detected.items():
            result[category] = {
                "count": len(paths),
                "languages": sorted({p.language for p in paths}),
                "sources": sorted({p.source for p in paths}),
            }
        return result

    def to_snapshot(self) -> dict:
        return {
            "detectedAt": self._last_run or datetime.now().isoformat(),
            "platform": self.env.platform,
            "username": self.env.username,
            "paths": {
                category: [p.to_dict() for p in paths]
                for category, paths in self._detected.items()
            },
            "summary": self.summary(),
        }

    def save_snapshot(self) -> Path:
        """Write the detection snapshot as JSON.

        Raises:
            DetectionError: If the snapshot cannot be written.
        """
        if self.snapshot_path is None:
            raise DetectionError(
                "No snapshot path configured", error_code=ErrorCode.SNAPSHOT_FAILED
            )
        try:
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.snapshot_path, "w", encoding="utf-8") as f:
                json.dump(self.to_snapshot(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise DetectionError(
                "Could not write detection snapshot",
                path=str(self.snapshot_path),
                error_code=ErrorCode.SNAPSHOT_FAILED,
                cause=e,
            )
        logger.debug(f"Saved detection snapshot to {self.snapshot_path}")
        return self.snapshot_path

    def load_snapshot(self) -> Optional[dict]:
        """Reload a previous snapshot. Returns its data, or None."""
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return None
        try:
            with open(self.snapshot_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            detected = {
                category: [DetectedPath.from_dict(p) for p in paths]
                for category, paths in data.get("paths", {}).items()
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            error = DetectionError(
                "Could not load detection snapshot",
                path=str(self.snapshot_path),
                error_code=ErrorCode.SNAPSHOT_FAILED,
                cause=e,
            )
            logger.warning(str(error))
            return None

        with self._lock:
            self._detected = detected
            self._last_run = data.get("detectedAt")
            self._completed = True
        logger.info(f"Loaded detection snapshot from {self.snapshot_path}")
        return data


def _list_subdirectories(path: str) -> List[str]:
    with os.scandir(path) as entries:
        return [entry.name for entry in entries if entry.is_dir()]
