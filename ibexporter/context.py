"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ibexporter.backup.base import BackupProvider
    from ibexporter.config import Config
    from ibexporter.core.app_filter import AppFilter
    from ibexporter.core.dispatch import Dispatcher
    from ibexporter.core.event_loop import EventLoop
    from ibexporter.core.operations import BackupOperations
    from ibexporter.core.orchestrator import BackupState, Orchestrator
    from ibexporter.core.update_queue import UpdateQueue


@dataclass
class AppContext:
    """
    Central service container.

    The UI receives this at construction time.  ``state`` and the items in
    it are only mutated on the event-loop thread.
    """

    config: Config
    provider: BackupProvider

    # Concurrency core
    updates: UpdateQueue
    event_loop: EventLoop
    dispatcher: Dispatcher

    # Backup state and the operations that drive it
    app_filter: AppFilter
    orchestrator: Orchestrator
    operations: BackupOperations

    @property
    def state(self) -> BackupState:
        return self.orchestrator.state
