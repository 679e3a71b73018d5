"""Backup reader contract — what the exporter core needs from a backup library.

BackupProvider  → discover backup folders and open them
BackupHandle    → one opened backup (password, load, record listing)
FilePicker      → hand out a writable destination for an export archive

The core never parses backup formats itself; concrete readers live in
``ibexporter.backup.mobilesync`` and ``ibexporter.backup.encrypted``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from ibexporter.models.backup_source import BackupSource, Record


class BackupError(Exception):
    """Base class for errors raised by a backup reader."""


class EnumerationError(BackupError):
    """The list of backups itself could not be obtained."""


class BackupOpenError(BackupError):
    """A discovered backup could not be opened."""


class PasswordError(BackupError):
    """A candidate password was rejected."""


class BackupLoadError(BackupError):
    """Loading (decrypting / indexing) an opened backup failed."""


class BackupHandle(ABC):
    """
    One opened backup.

    A handle is owned by exactly one ``BackupItem`` and is used by at most
    one worker thread at a time.
    """

    @property
    @abstractmethod
    def is_encrypted(self) -> bool:
        """Whether a password must be applied before ``load()``."""
        ...

    @abstractmethod
    def set_password(self, candidate: str) -> None:
        """Apply a password.  Local and cheap; raises ``PasswordError``."""
        ...

    @abstractmethod
    def load(self) -> None:
        """Read the record index.  May be slow; never call on the UI thread."""
        ...

    @property
    @abstractmethod
    def records(self) -> list[Record]:
        """Records read by the last successful ``load()``."""
        ...


class BackupProvider(ABC):
    """Discovers and opens backups."""

    @abstractmethod
    def enumerate(self) -> list[BackupSource]:
        """List every discoverable backup; raises ``EnumerationError``."""
        ...

    @abstractmethod
    def open(self, source: BackupSource) -> BackupHandle:
        """Open one backup; raises ``BackupOpenError``."""
        ...


class FilePicker(ABC):
    """Destination selection for export archives."""

    @abstractmethod
    def create_file(self, suggested_name: str) -> BinaryIO | None:
        """Return a writable binary stream, or ``None`` if the user cancelled."""
        ...
