"""
Periodic Task
=============

Runs a callable on a fixed interval in a daemon thread until stopped.
Used for cache sweeping and periodic path re-detection.
"""

import threading
from typing import Callable, Optional

from smart_paths.utils.logging_config import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Background loop calling ``func`` every ``interval`` seconds."""

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        """Initialize the task.

        Args:
            name: Thread name, also used in log messages.
            interval: Seconds between runs; must be positive.
            func: Work to run. Exceptions are logged and the loop continues.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_count = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop."""
        if self.is_running:
            logger.warning(f"{self.name} already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=self.name)
        self._thread.start()
        logger.debug(f"{self.name} started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.debug(f"{self.name} stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.func()
                self.run_count += 1
            except Exception as e:
                logger.error(f"{self.name} run failed: {e}", exc_info=True)
