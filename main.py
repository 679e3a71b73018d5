"""Application entry point — wires services and launches the UI."""

from __future__ import annotations

import sys

from ibexporter.backup.base import BackupProvider
from ibexporter.backup.mobilesync import MobileSyncProvider, default_backup_roots
from ibexporter.config import Config, get_config
from ibexporter.context import AppContext
from ibexporter.core.app_filter import AppFilter
from ibexporter.core.dispatch import Dispatcher
from ibexporter.core.event_loop import EventLoop
from ibexporter.core.export import ExportEngine
from ibexporter.core.operations import BackupOperations
from ibexporter.core.orchestrator import Orchestrator
from ibexporter.core.update_queue import UpdateQueue
from ibexporter.i18n import set_language
from ibexporter.logger import setup_logger


def create_context(
    config: Config | None = None, provider: BackupProvider | None = None
) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Backup reader: configured folders first, then the platform defaults
    if provider is None:
        provider = MobileSyncProvider(config.backup_roots + default_backup_roots())

    # Concurrency core
    updates = UpdateQueue()
    event_loop = EventLoop(updates)
    dispatcher = Dispatcher(updates)

    # Backup state
    app_filter = AppFilter(config.app_filter)
    orchestrator = Orchestrator(provider, dispatcher, app_filter)
    operations = BackupOperations(
        orchestrator.state,
        app_filter,
        dispatcher,
        engine=ExportEngine(config.progress_interval),
        config=config,
        name_prefix_length=config.name_prefix_length,
    )

    return AppContext(
        config=config,
        provider=provider,
        updates=updates,
        event_loop=event_loop,
        dispatcher=dispatcher,
        app_filter=app_filter,
        orchestrator=orchestrator,
        operations=operations,
    )


def main() -> int:
    """Application entry point."""
    from PySide6.QtWidgets import QApplication

    from ibexporter.ui.main_window import MainWindow
    from ibexporter.ui.theme import apply_theme

    app = QApplication(sys.argv)
    app.setApplicationName("iOS Backup Exporter")
    app.setOrganizationName("IosBackupExporter")

    config = get_config()
    setup_logger(config.data_dir / "logs")
    apply_theme(config.theme)
    set_language(config.language)

    # Wire services
    ctx = create_context(config)

    # Create and show main window, then start discovering backups
    window = MainWindow(ctx)
    window.show()
    ctx.orchestrator.start()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
