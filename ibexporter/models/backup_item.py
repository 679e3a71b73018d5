"""Backup item model — per-backup load / export state.

Load and export status are explicit tagged variants so that invalid flag
combinations ("loaded and loading", "saved with an error") cannot be
represented.  Every mutation goes through a transition method that checks
its precondition; callers run these only inside Update Queue commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from ibexporter.backup.base import BackupHandle
    from ibexporter.models.backup_source import BackupSource


class InvalidTransition(RuntimeError):
    """A state transition was attempted from a state that does not allow it."""


class OperationRejected(RuntimeError):
    """A user operation is not allowed in the item's current state."""


class ExportAlreadyRunning(OperationRejected):
    """An export was requested while another one is still running."""

    def __init__(self) -> None:
        super().__init__("export already running")


# ── Load status ──


@dataclass(frozen=True)
class NotLoaded:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Loaded:
    pass


@dataclass(frozen=True)
class LoadFailed:
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)


LoadStatus = Union[NotLoaded, Loading, Loaded, LoadFailed]


# ── Export status ──


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Exporting:
    percent: int = 0


@dataclass(frozen=True)
class Exported:
    bytes_written: int = 0


@dataclass(frozen=True)
class ExportFailed:
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)


ExportStatus = Union[Idle, Exporting, Exported, ExportFailed]


@dataclass(eq=False)
class BackupItem:
    """UI-relevant state of one discovered backup."""

    source: BackupSource
    handle: BackupHandle | None = None
    is_encrypted: bool = False
    load_status: LoadStatus = NotLoaded()
    export_status: ExportStatus = Idle()
    password_error: BaseException | None = None
    file_count: int = 0
    total_bytes: int = 0
    export_name: str = ""  # Suggested name of the last requested archive
    _status_before_load: LoadStatus = field(default=NotLoaded(), init=False, repr=False)

    # ── Derived state ──

    @property
    def is_loaded(self) -> bool:
        return isinstance(self.load_status, Loaded)

    @property
    def is_loading(self) -> bool:
        return isinstance(self.load_status, Loading)

    @property
    def is_exporting(self) -> bool:
        return isinstance(self.export_status, Exporting)

    @property
    def awaiting_password(self) -> bool:
        """Encrypted and not yet unlocked (a failed load may be retried)."""
        return (
            self.is_encrypted
            and self.handle is not None
            and isinstance(self.load_status, (NotLoaded, LoadFailed))
        )

    # ── Discovery ──

    def attach(self, handle: BackupHandle) -> None:
        if self.handle is not None:
            raise InvalidTransition("backup handle already attached")
        self.handle = handle
        self.is_encrypted = handle.is_encrypted

    def fail_open(self, error: BaseException) -> None:
        if not isinstance(self.load_status, NotLoaded):
            raise InvalidTransition(f"cannot fail open from {self.load_status}")
        self.load_status = LoadFailed(error)

    # ── Password ──

    def reject_password(self, error: BaseException) -> None:
        self.password_error = error

    def clear_password_error(self) -> None:
        self.password_error = None

    # ── Loading ──

    def start_loading(self) -> None:
        if not isinstance(self.load_status, (NotLoaded, LoadFailed)):
            raise InvalidTransition(f"cannot start loading from {self.load_status}")
        if self.handle is None:
            raise InvalidTransition("no backup handle to load")
        self._status_before_load = self.load_status
        self.load_status = Loading()

    def finish_loading(self, file_count: int, total_bytes: int) -> None:
        if not isinstance(self.load_status, Loading):
            raise InvalidTransition(f"cannot finish loading from {self.load_status}")
        self.load_status = Loaded()
        self.set_stats(file_count, total_bytes)

    def revert_loading(self) -> None:
        """Undo ``start_loading`` after the backup refused the password."""
        if not isinstance(self.load_status, Loading):
            raise InvalidTransition(f"cannot revert loading from {self.load_status}")
        self.load_status = self._status_before_load

    def fail_loading(self, error: BaseException) -> None:
        if not isinstance(self.load_status, Loading):
            raise InvalidTransition(f"cannot fail loading from {self.load_status}")
        self.load_status = LoadFailed(error)

    def set_stats(self, file_count: int, total_bytes: int) -> None:
        if not self.is_loaded:
            raise InvalidTransition("statistics are only kept for loaded backups")
        self.file_count = file_count
        self.total_bytes = total_bytes

    # ── Exporting ──

    def start_export(self) -> None:
        if self.is_exporting:
            raise ExportAlreadyRunning()
        if not self.is_loaded:
            raise InvalidTransition("cannot export a backup that is not loaded")
        self.export_status = Exporting(0)

    def report_progress(self, percent: int) -> None:
        if not isinstance(self.export_status, Exporting):
            raise InvalidTransition(f"no export running ({self.export_status})")
        percent = max(0, min(100, percent))
        # Progress never moves backwards within one run
        if percent > self.export_status.percent:
            self.export_status = Exporting(percent)

    def finish_export(self, bytes_written: int) -> None:
        if not self.is_exporting:
            raise InvalidTransition(f"cannot finish export from {self.export_status}")
        self.export_status = Exported(bytes_written)

    def fail_export(self, error: BaseException) -> None:
        if not self.is_exporting:
            raise InvalidTransition(f"cannot fail export from {self.export_status}")
        self.export_status = ExportFailed(error)
