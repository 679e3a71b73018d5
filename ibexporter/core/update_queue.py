"""Update queue — the single channel through which shared state is mutated.

Worker threads never touch UI-relevant state.  They wrap the mutation they
want in a zero-argument *command* and ``send`` it; the one consumer thread
runs commands one at a time, in arrival order.
"""

from __future__ import annotations

import queue
import threading
from typing import Callable

from loguru import logger

Command = Callable[[], None]


class UpdateQueue:
    """
    Unbounded multi-producer / single-consumer queue of commands.

    ``send`` never blocks, so a worker reporting progress can never deadlock
    against the consumer.  Order is preserved per sender; commands from
    different senders interleave in arrival order.
    """

    def __init__(self, notify: Callable[[], None] | None = None) -> None:
        self._queue: queue.SimpleQueue[Command] = queue.SimpleQueue()
        self._notify = notify
        self._consumer: int | None = None

    # ── Producer side (any thread) ──

    def send(self, command: Command) -> None:
        """Enqueue a command and wake the consumer."""
        self._queue.put(command)
        notify = self._notify
        if notify is not None:
            notify()

    def set_notify(self, notify: Callable[[], None] | None) -> None:
        """Install the hook called after every ``send`` (e.g. a Qt wake-up)."""
        self._notify = notify

    # ── Consumer side ──

    def bind_consumer(self) -> None:
        """Make the calling thread the only one allowed to run commands."""
        ident = threading.get_ident()
        if self._consumer is not None and self._consumer != ident:
            raise RuntimeError("update queue already has a consumer thread")
        self._consumer = ident

    def wait(self, timeout: float | None = None) -> Command | None:
        """Block until a command arrives; ``None`` on timeout."""
        self.bind_consumer()
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def run(self, command: Command) -> None:
        """Run one command to completion.  A failing command never stops the loop."""
        self.bind_consumer()
        try:
            command()
        except Exception:
            logger.exception("Update command failed")

    def drain_and_run(self) -> int:
        """Run every queued command in FIFO order; return how many ran."""
        self.bind_consumer()
        count = 0
        while True:
            try:
                command = self._queue.get_nowait()
            except queue.Empty:
                return count
            self.run(command)
            count += 1

    def empty(self) -> bool:
        return self._queue.empty()
