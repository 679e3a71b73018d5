"""Event loop — the one consumer of the update queue."""

from __future__ import annotations

import threading
from typing import Callable

from loguru import logger

from ibexporter.core.update_queue import UpdateQueue


def _wake() -> None:
    """No-op command used to unblock a waiting loop."""


class EventLoop:
    """
    Drains the update queue and requests a redraw after every batch.

    Runs on one thread only.  ``run()`` blocks until ``destroy()`` is called
    from any thread; a GUI toolkit can instead call ``process(0)`` from its
    own event dispatch.
    """

    def __init__(
        self, updates: UpdateQueue, redraw: Callable[[], None] | None = None
    ) -> None:
        self._updates = updates
        self._redraw = redraw
        self._destroyed = threading.Event()

    @property
    def updates(self) -> UpdateQueue:
        return self._updates

    @property
    def destroyed(self) -> bool:
        return self._destroyed.is_set()

    def set_redraw(self, redraw: Callable[[], None] | None) -> None:
        self._redraw = redraw

    def process(self, timeout: float | None = None) -> int:
        """
        Wait up to *timeout* seconds for a command, then run it together with
        everything queued behind it.  Returns the number of commands run.
        """
        if self.destroyed:
            return 0
        if timeout == 0:
            self._updates.bind_consumer()
            count = self._updates.drain_and_run()
        else:
            first = self._updates.wait(timeout)
            if first is None:
                return 0
            self._updates.run(first)
            count = 1 + self._updates.drain_and_run()
        if count and self._redraw is not None:
            self._redraw()
        return count

    def run(self) -> None:
        """Process commands until ``destroy()``."""
        logger.debug("Event loop started")
        while not self.destroyed:
            self.process()
        logger.debug("Event loop stopped")

    def destroy(self) -> None:
        """Stop the loop.  Safe to call from any thread."""
        self._destroyed.set()
        self._updates.send(_wake)
