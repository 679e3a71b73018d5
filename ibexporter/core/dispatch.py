"""Background task dispatch — run off-thread, report back through the update queue."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, TypeVar

from loguru import logger

from ibexporter.core.update_queue import Command, UpdateQueue

T = TypeVar("T")

# Builds the command that applies an operation's outcome on the consumer thread.
# Exactly one of (result, error) is meaningful.
Completion = Callable[[Any, Optional[BaseException]], Command]


class Dispatcher:
    """
    Starts one short-lived worker thread per operation.

    The operation's return value or exception is never handed across the
    thread boundary directly: it is captured as data in the command built by
    *on_done* and sent to the update queue.
    """

    def __init__(self, updates: UpdateQueue) -> None:
        self._updates = updates
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def updates(self) -> UpdateQueue:
        return self._updates

    def submit(
        self,
        name: str,
        operation: Callable[[], T],
        on_done: Completion,
    ) -> threading.Thread:
        """Run *operation* on a new daemon thread."""

        def worker() -> None:
            result: T | None = None
            error: BaseException | None = None
            try:
                result = operation()
            except Exception as e:
                logger.error(f"{name} failed: {e}")
                error = e
            self._updates.send(on_done(result, error))

        thread = threading.Thread(target=worker, name=name, daemon=True)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        logger.debug(f"Dispatched {name}")
        return thread

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Join every worker started so far.  Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if thread.is_alive():
                return False
        return True
