"""Shared fixtures — the concurrency core wired to in-memory fakes."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from fakes import FakePicker, FakeProvider

from ibexporter.core.app_filter import AppFilter
from ibexporter.core.dispatch import Dispatcher
from ibexporter.core.export import ExportEngine
from ibexporter.core.operations import BackupOperations
from ibexporter.core.orchestrator import Orchestrator
from ibexporter.core.update_queue import UpdateQueue


@dataclass
class Core:
    updates: UpdateQueue
    dispatcher: Dispatcher
    app_filter: AppFilter
    orchestrator: Orchestrator
    operations: BackupOperations
    picker: FakePicker

    def settle(self, timeout: float = 5.0) -> int:
        """Wait for every worker, then run the commands they sent."""
        total = 0
        while True:
            assert self.dispatcher.wait_idle(timeout), "worker did not finish"
            ran = self.updates.drain_and_run()
            total += ran
            if ran == 0 and self.dispatcher.active_count() == 0:
                return total


@pytest.fixture
def make_core():
    """Factory: ``make_core(provider, app_id="com.foo", progress_interval=500)``."""

    def factory(
        provider: FakeProvider | None = None,
        app_id: str = "com.foo",
        progress_interval: int = 500,
    ) -> Core:
        updates = UpdateQueue()
        updates.bind_consumer()
        dispatcher = Dispatcher(updates)
        app_filter = AppFilter(app_id)
        orchestrator = Orchestrator(provider or FakeProvider(), dispatcher, app_filter)
        picker = FakePicker()
        operations = BackupOperations(
            orchestrator.state,
            app_filter,
            dispatcher,
            engine=ExportEngine(progress_interval),
            picker=picker,
        )
        return Core(updates, dispatcher, app_filter, orchestrator, operations, picker)

    return factory
