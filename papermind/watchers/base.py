"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/watchers/base.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Polling loop shared by the intake watchers. Each watcher
                runs in its own daemon thread and is stopped via an Event.
------------------------------------------------------------------------------
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from papermind.logger import get_logger

logger = get_logger("watchers")


class PollingWatcher(ABC):
    """
    Periodically calls scan_once() until stopped. A failing cycle is
    logged and the loop continues with the next interval.
    """

    name = "watcher"

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def scan_once(self) -> int:
        """Runs one poll cycle. Returns the number of ingested artifacts."""

    @abstractmethod
    def interval(self) -> float:
        """Seconds to wait between two cycles."""

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=f"papermind-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"{self.name} started")

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"{self.name} stopped")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.scan_once()
            except Exception as e:
                logger.exception(f"{self.name} cycle failed: {e}")
            self._stop_event.wait(self.interval())
