"""
Platform Environment
====================

Snapshot of the process environment the resolver and detector depend on:
platform id, home directory, username, working directory and temp directory.

The snapshot carries the matching path module (``ntpath`` or ``posixpath``)
so Windows path semantics can be exercised on any host.
"""

import getpass
import ntpath
import os
import posixpath
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Optional

import logging

logger = logging.getLogger(__name__)

WINDOWS = "windows"
LINUX = "linux"
DARWIN = "darwin"
WSL = "wsl"

PLATFORMS = (WINDOWS, LINUX, DARWIN, WSL)


def _read_proc_version() -> str:
    try:
        return Path("/proc/version").read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return ""


def detect_wsl() -> bool:
    """Check whether we are running under Windows Subsystem for Linux."""
    if not sys.platform.startswith("linux"):
        return False
    if os.environ.get("WSL_DISTRO_NAME"):
        return True
    return "microsoft" in _read_proc_version().lower()


def _current_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry (containers); fall back to the home directory name
        return Path.home().name or "user"


@dataclass
class PlatformEnvironment:
    """Process environment as seen by path resolution.

    Attributes:
        platform: One of windows, linux, darwin, wsl.
        home: User home directory in the platform's native form.
        username: Login name.
        cwd: Working directory used to absolutize relative input.
        temp_dir: System temp directory.
        windows_home: Windows profile directory as seen from WSL
            (``/mnt/c/Users/<user>``); None elsewhere.
    """
    platform: str
    home: str
    username: str
    cwd: str
    temp_dir: str
    windows_home: Optional[str] = None
    pathmod: ModuleType = field(default=posixpath, repr=False)

    def __post_init__(self):
        if self.platform not in PLATFORMS:
            raise ValueError(f"Unknown platform: {self.platform}")
        if self.platform == WINDOWS:
            self.pathmod = ntpath

    @property
    def is_windows(self) -> bool:
        return self.platform == WINDOWS

    @property
    def is_wsl(self) -> bool:
        return self.platform == WSL

    @classmethod
    def detect(cls) -> "PlatformEnvironment":
        """Probe the running process."""
        if sys.platform.startswith("win"):
            platform = WINDOWS
        elif sys.platform == "darwin":
            platform = DARWIN
        elif detect_wsl():
            platform = WSL
        else:
            platform = LINUX

        username = _current_username()
        windows_home = None
        if platform == WSL:
            windows_home = f"/mnt/c/Users/{username}"

        env = cls(
            platform=platform,
            home=str(Path.home()),
            username=username,
            cwd=os.getcwd(),
            temp_dir=tempfile.gettempdir(),
            windows_home=windows_home,
        )
        logger.debug(f"Detected environment: {env}")
        return env

    @classmethod
    def windows(cls, username: str = "user", cwd: Optional[str] = None) -> "PlatformEnvironment":
        """Build a Windows environment (used for tests and previews)."""
        home = f"C:\\Users\\{username}"
        return cls(
            platform=WINDOWS,
            home=home,
            username=username,
            cwd=cwd or home,
            temp_dir=f"{home}\\AppData\\Local\\Temp",
        )

    def join(self, *parts: str) -> str:
        return self.pathmod.join(*parts)

    def expand_user(self, path: str) -> str:
        """Expand a leading ``~`` against this environment's home."""
        if path == "~":
            return self.home
        if path.startswith("~/") or path.startswith("~\\"):
            return self.pathmod.join(self.home, path[2:])
        return path

    def is_absolute(self, path: str) -> bool:
        """Absolute for this platform: POSIX root, drive letter or UNC share."""
        if self.is_windows:
            drive, rest = ntpath.splitdrive(path)
            return bool(drive) and (drive.startswith("\\\\") or rest.startswith(("\\", "/")))
        return posixpath.isabs(path)

    def absolutize(self, path: str) -> str:
        """Normalize ``path`` to absolute form relative to ``cwd``."""
        path = self.expand_user(path)
        return self.pathmod.normpath(self.pathmod.join(self.cwd, path))

    def to_wsl_path(self, windows_path: str) -> str:
        """Translate ``C:\\Users\\x`` into ``/mnt/c/Users/x``."""
        drive, rest = ntpath.splitdrive(windows_path)
        if len(drive) != 2 or drive[1] != ":":
            return windows_path
        rest = rest.replace("\\", "/").lstrip("/")
        mount = f"/mnt/{drive[0].lower()}"
        return f"{mount}/{rest}" if rest else mount
