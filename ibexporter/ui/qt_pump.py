"""Qt bridge — run the event loop's batches inside the Qt event dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Qt, Signal

if TYPE_CHECKING:
    from ibexporter.core.event_loop import EventLoop


class QtUpdatePump(QObject):
    """
    Wakes the GUI thread whenever a worker sends a command.

    ``send`` emits ``_wake`` from the worker thread; the queued connection
    delivers it on the GUI thread, which drains the update queue and
    redraws.  The GUI thread is the queue's only consumer.
    """

    _wake = Signal()

    def __init__(self, loop: EventLoop, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._loop = loop
        self._wake.connect(self._on_wake, Qt.ConnectionType.QueuedConnection)
        loop.updates.set_notify(self._wake.emit)
        # Commands sent before the pump existed
        self._wake.emit()

    def _on_wake(self) -> None:
        self._loop.process(0)

    def shutdown(self) -> None:
        """Detach from the queue and stop the loop (window destroyed)."""
        self._loop.updates.set_notify(None)
        self._loop.destroy()
