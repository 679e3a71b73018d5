"""Backup item operations — unlock, filter change and export.

All public methods run on the update-queue consumer thread (they are
called from UI event handlers, which run there).  Slow work is handed to
the dispatcher and comes back as commands.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, BinaryIO

from loguru import logger

from ibexporter.backup.base import PasswordError
from ibexporter.core.app_filter import compute_stats
from ibexporter.core.export import (
    DEFAULT_NAME_PREFIX_LENGTH,
    ExportEngine,
    ExportJob,
    export_folder_name,
)
from ibexporter.models.backup_item import (
    BackupItem,
    ExportAlreadyRunning,
    OperationRejected,
)

if TYPE_CHECKING:
    from ibexporter.backup.base import FilePicker
    from ibexporter.config import Config
    from ibexporter.core.app_filter import AppFilter
    from ibexporter.core.dispatch import Dispatcher
    from ibexporter.core.orchestrator import BackupState
    from ibexporter.core.update_queue import Command


class BackupOperations:
    """Drives the per-item state machine in response to user actions."""

    def __init__(
        self,
        state: BackupState,
        app_filter: AppFilter,
        dispatcher: Dispatcher,
        engine: ExportEngine | None = None,
        picker: FilePicker | None = None,
        config: Config | None = None,
        name_prefix_length: int = DEFAULT_NAME_PREFIX_LENGTH,
    ) -> None:
        self._state = state
        self._filter = app_filter
        self._dispatcher = dispatcher
        self._engine = engine or ExportEngine()
        self._picker = picker
        self._config = config
        self._prefix_length = name_prefix_length

    @property
    def app_filter(self) -> AppFilter:
        return self._filter

    def set_picker(self, picker: FilePicker | None) -> None:
        self._picker = picker

    def _require_consumer(self) -> None:
        self._dispatcher.updates.bind_consumer()

    # ── Unlock / load ──

    def unlock(self, item: BackupItem, password: str) -> bool:
        """
        Apply *password* and, if accepted, load the backup in the background.

        An empty password is ignored.  Returns True when a load was started.
        """
        self._require_consumer()
        if not password:
            return False
        if not item.awaiting_password:
            raise OperationRejected("backup is not waiting for a password")

        item.clear_password_error()
        try:
            item.handle.set_password(password)
        except Exception as e:
            logger.warning(f"Password rejected for {item.source.display_name}: {e}")
            item.reject_password(e)
            return False

        item.start_loading()
        self._dispatcher.submit(
            f"load-{item.source.identifier}",
            item.handle.load,
            partial(self._loaded, item),
        )
        return True

    def _loaded(self, item: BackupItem, _result: object, error: BaseException | None) -> Command:
        def apply() -> None:
            if isinstance(error, PasswordError):
                item.revert_loading()
                item.reject_password(error)
                return
            if error is not None:
                item.fail_loading(error)
                return
            # Filter read now, not when the load was dispatched
            item.finish_loading(*compute_stats(item.handle.records, self._filter.app_id))
            logger.info(
                f"Loaded {item.source.display_name}: "
                f"{item.file_count} file(s) for {self._filter.app_id}"
            )

        return apply

    # ── Filter ──

    def change_filter(self, app_id: str) -> bool:
        """Select another app; recompute statistics of every loaded backup."""
        self._require_consumer()
        if not self._filter.set(app_id):
            return False
        self.refresh_stats()
        if self._config is not None:
            self._config.app_filter = self._filter.app_id
        logger.info(f"App filter changed to {self._filter.app_id}")
        return True

    def refresh_stats(self) -> None:
        for item in self._state.items:
            if item.is_loaded:
                item.set_stats(*compute_stats(item.handle.records, self._filter.app_id))

    # ── Export ──

    def suggested_name(self, item: BackupItem) -> str:
        return export_folder_name(item.source, prefix_length=self._prefix_length) + ".zip"

    def begin_export(self, item: BackupItem, picker: FilePicker | None = None) -> bool:
        """
        Ask the file picker for a destination and start exporting into it.

        Returns False if the user cancelled or the destination could not be
        created (the item then shows the error).
        """
        self._require_consumer()
        self._check_exportable(item)
        picker = picker or self._picker
        if picker is None:
            raise OperationRejected("no destination picker configured")

        folder_name = export_folder_name(item.source, prefix_length=self._prefix_length)
        try:
            destination = picker.create_file(folder_name + ".zip")
        except Exception as e:
            logger.error(f"Failed to create file: {e}")
            item.start_export()
            item.fail_export(e)
            return False
        if destination is None:
            return False

        self.request_export(item, destination, folder_name)
        return True

    def request_export(
        self,
        item: BackupItem,
        destination: BinaryIO,
        folder_name: str | None = None,
    ) -> None:
        """
        Export the item's records for the current app into *destination*.

        The record set, app filter and file count are frozen here.  The
        worker closes *destination* when done; if the request is rejected
        the caller keeps ownership of it.
        """
        self._require_consumer()
        self._check_exportable(item)

        folder_name = folder_name or export_folder_name(
            item.source, prefix_length=self._prefix_length
        )
        job = ExportJob(
            records=tuple(item.handle.records),
            app_id=self._filter.app_id,
            file_count=item.file_count,
            folder_name=folder_name,
        )
        item.start_export()
        item.export_name = folder_name + ".zip"

        updates = self._dispatcher.updates

        def on_progress(percent: int) -> None:
            updates.send(partial(item.report_progress, percent))

        def run() -> int:
            try:
                return self._engine.export(job, destination, on_progress)
            finally:
                destination.close()

        self._dispatcher.submit(
            f"export-{item.source.identifier}", run, partial(self._exported, item)
        )

    def _check_exportable(self, item: BackupItem) -> None:
        if item.is_exporting:
            raise ExportAlreadyRunning()
        if not item.is_loaded:
            raise OperationRejected("backup is not loaded")

    def _exported(self, item: BackupItem, written: int | None, error: BaseException | None) -> Command:
        def apply() -> None:
            if error is not None:
                item.fail_export(error)
            else:
                item.finish_export(written or 0)

        return apply
