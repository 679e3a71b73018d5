"""MobileSync reader — Finder / iTunes device backups on the local disk.

A backup folder contains ``Info.plist`` (device info), ``Manifest.plist``
(encryption flag, keybag) and ``Manifest.db`` (SQLite index of every file).
File content is stored under ``<fileID[:2]>/<fileID>``.
"""

from __future__ import annotations

import os
import platform
import plistlib
import sqlite3
from functools import partial
from pathlib import Path
from typing import Callable

from loguru import logger

from ibexporter.backup.base import (
    BackupHandle,
    BackupLoadError,
    BackupOpenError,
    BackupProvider,
    EnumerationError,
    PasswordError,
)
from ibexporter.models.backup_source import BackupSource, Record

# Manifest.db flag values
FLAG_FILE = 1
FLAG_DIRECTORY = 2
FLAG_SYMLINK = 4

_FILES_QUERY = (
    "SELECT fileID, domain, relativePath, flags, file FROM Files "
    "ORDER BY domain, relativePath"
)


def default_backup_roots() -> list[Path]:
    """Known MobileSync backup locations for the current platform."""
    home = Path.home()
    system = platform.system()
    if system == "Darwin":
        return [home / "Library" / "Application Support" / "MobileSync" / "Backup"]
    if system == "Windows":
        roots = []
        appdata = os.environ.get("APPDATA")
        if appdata:
            roots.append(Path(appdata) / "Apple Computer" / "MobileSync" / "Backup")
        # Microsoft Store build of iTunes
        roots.append(home / "Apple" / "MobileSync" / "Backup")
        return roots
    return [home / ".local" / "share" / "MobileSync" / "Backup"]


def _read_plist(path: Path) -> dict:
    with open(path, "rb") as f:
        data = plistlib.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} is not a dictionary")
    return data


def file_size(blob: bytes | None) -> int:
    """Extract ``Size`` from the NSKeyedArchiver blob of a Files row."""
    if not blob:
        return 0
    try:
        archive = plistlib.loads(blob)
        objects = archive["$objects"]
        root = archive["$top"]["root"]
        index = root.data if isinstance(root, plistlib.UID) else int(root)
        return int(objects[index].get("Size", 0))
    except (plistlib.InvalidFileException, KeyError, IndexError, TypeError, ValueError, AttributeError):
        return 0


def read_records(
    manifest_db: Path, opener_for: Callable[[str, str, str], Callable]
) -> list[Record]:
    """
    Read regular-file records from a (decrypted) ``Manifest.db``.

    *opener_for(file_id, domain, relative_path)* returns the zero-argument
    callable that opens the record's content.
    """
    uri = f"{manifest_db.resolve().as_uri()}?mode=ro"
    try:
        conn = sqlite3.connect(uri, uri=True)
    except sqlite3.Error as e:
        raise BackupLoadError(f"Cannot open {manifest_db.name}: {e}") from e

    records: list[Record] = []
    try:
        for file_id, domain, rel_path, flags, blob in conn.execute(_FILES_QUERY):
            if flags != FLAG_FILE:
                continue
            records.append(
                Record(
                    domain=domain,
                    path=rel_path,
                    length=file_size(blob),
                    opener=opener_for(file_id, domain, rel_path),
                )
            )
    except sqlite3.Error as e:
        raise BackupLoadError(f"Cannot read {manifest_db.name}: {e}") from e
    finally:
        conn.close()
    return records


class MobileSyncHandle(BackupHandle):
    """Unencrypted backup: records and content are read directly from disk."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._records: list[Record] = []

    @property
    def is_encrypted(self) -> bool:
        return False

    def set_password(self, candidate: str) -> None:
        raise PasswordError("backup is not encrypted")

    def load(self) -> None:
        manifest_db = self._path / "Manifest.db"
        if not manifest_db.exists():
            raise BackupLoadError(f"Manifest.db not found in {self._path}")
        self._records = read_records(manifest_db, self._opener)
        logger.debug(f"{self._path.name}: {len(self._records)} record(s)")

    def _opener(self, file_id: str, _domain: str, _rel_path: str) -> Callable:
        return partial(open, self._path / file_id[:2] / file_id, "rb")

    @property
    def records(self) -> list[Record]:
        return self._records


class MobileSyncProvider(BackupProvider):
    """Finds backup folders under one or more MobileSync roots."""

    def __init__(self, roots: list[Path] | None = None) -> None:
        self._roots = list(roots) if roots is not None else default_backup_roots()

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def enumerate(self) -> list[BackupSource]:
        sources: list[BackupSource] = []
        seen: set[Path] = set()
        for root in self._roots:
            if not root.is_dir():
                logger.debug(f"Backup root not found: {root}")
                continue
            try:
                entries = sorted(root.iterdir())
            except OSError as e:
                raise EnumerationError(f"Cannot list {root}: {e}") from e

            for entry in entries:
                if entry in seen or not (entry / "Manifest.plist").is_file():
                    continue
                seen.add(entry)
                sources.append(
                    BackupSource(
                        device_name=self._device_name(entry),
                        identifier=entry.name,
                        path=entry,
                    )
                )
        return sources

    @staticmethod
    def _device_name(path: Path) -> str:
        try:
            info = _read_plist(path / "Info.plist")
        except (OSError, ValueError, plistlib.InvalidFileException) as e:
            logger.debug(f"No usable Info.plist in {path.name}: {e}")
            return path.name
        return info.get("Device Name") or info.get("Display Name") or path.name

    def open(self, source: BackupSource) -> BackupHandle:
        if source.path is None:
            raise BackupOpenError(f"{source.display_name} has no location")
        try:
            manifest = _read_plist(source.path / "Manifest.plist")
        except (OSError, ValueError, plistlib.InvalidFileException) as e:
            raise BackupOpenError(f"Cannot read Manifest.plist: {e}") from e

        if manifest.get("IsEncrypted", False):
            from ibexporter.backup.encrypted import EncryptedBackupHandle

            return EncryptedBackupHandle(source.path)
        return MobileSyncHandle(source.path)
