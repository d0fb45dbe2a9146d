"""
Shared fixtures.
"""

import itertools

import pytest

from smart_paths.config import PlatformEnvironment


class FakeObserver:
    """Stands in for the watchdog observer; records scheduled watches."""

    def __init__(self):
        self.scheduled = {}
        self.started = False
        self.stopped = False
        self._ids = itertools.count(1)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.started and not self.stopped

    def schedule(self, handler, path, recursive=False):
        handle = next(self._ids)
        self.scheduled[handle] = (handler, path, recursive)
        return handle

    def unschedule(self, handle):
        del self.scheduled[handle]


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def windows_env():
    """Korean Windows user profile."""
    return PlatformEnvironment.windows(username="tester")


@pytest.fixture
def linux_env(tmp_path):
    """Linux environment rooted in a temporary home."""
    home = tmp_path / "home"
    home.mkdir()
    return PlatformEnvironment(
        platform="linux",
        home=str(home),
        username="tester",
        cwd=str(tmp_path),
        temp_dir=str(tmp_path / "tmp"),
    )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fake_observer():
    return FakeObserver()
