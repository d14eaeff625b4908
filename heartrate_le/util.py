"""Utility functions shared across the package."""

import logging
import threading
from queue import Queue
from typing import Callable

logger = logging.getLogger(__name__)


class DeferredExecution:
    """A thread that accepts closures to run, and runs them as they are received"""

    def __init__(self, name=None):
        self.queue: "Queue[Callable[[], None]]" = Queue()
        self.thread = threading.Thread(target=self._run, args=(), name=name, daemon=True)
        self.thread.start()

    def queueWork(self, runnable: Callable[[], None]) -> None:
        """Queue up the work"""
        self.queue.put(runnable)

    def _run(self) -> None:
        while True:
            try:
                o = self.queue.get()
                o()
            except Exception:
                logger.exception("Unexpected error in deferred execution")
