"""Encrypted MobileSync backups, decrypted through ``iphone_backup_decrypt``.

Applying a password only records it; the keybag is unlocked and the
manifest decrypted in ``load()`` on a worker thread.  An incorrect password
surfaces there as ``PasswordError`` and may be retried.
"""

from __future__ import annotations

import io
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Callable

from iphone_backup_decrypt import EncryptedBackup, IncorrectPassphraseError
from iphone_backup_decrypt.utils import FilePlist, aes_decrypt_chunked, backup_file_path
from loguru import logger

from ibexporter.backup.base import BackupHandle, BackupLoadError, PasswordError
from ibexporter.backup.mobilesync import read_records
from ibexporter.models.backup_source import Record

_BLOB_QUERY = "SELECT file FROM Files WHERE fileID = ?"


class _ScratchFile(io.FileIO):
    """Decrypted content in a temporary file, removed on close."""

    def close(self) -> None:
        super().close()
        Path(self.name).unlink(missing_ok=True)


class EncryptedBackupHandle(BackupHandle):
    """
    Encrypted backup handle.

    The keybag is unlocked once, by ``load()``.  Record content is then
    decrypted straight from the backup folder with the unlocked class keys,
    looked up by ``fileID`` in the decrypted manifest copy, so export
    workers on other threads never repeat the key derivation.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._passphrase: str | None = None
        self._keybag = None
        self._records: list[Record] = []
        self._scratch = tempfile.TemporaryDirectory(prefix="ibexporter-")

    @property
    def is_encrypted(self) -> bool:
        return True

    @property
    def _manifest_db(self) -> Path:
        return Path(self._scratch.name) / "Manifest.db"

    def set_password(self, candidate: str) -> None:
        if not candidate:
            raise PasswordError("password is empty")
        self._passphrase = candidate

    def load(self) -> None:
        if self._passphrase is None:
            raise PasswordError("no password set")
        try:
            backup = EncryptedBackup(backup_directory=str(self._path), passphrase=self._passphrase)
            backup.test_decryption()
            backup.save_manifest_file(str(self._manifest_db))
        except IncorrectPassphraseError as e:
            raise PasswordError(str(e)) from e
        except Exception as e:
            raise BackupLoadError(f"Cannot decrypt backup: {e}") from e

        self._keybag = backup.keybag
        self._passphrase = None
        self._records = read_records(self._manifest_db, self._opener)
        logger.debug(f"{self._path.name}: {len(self._records)} encrypted record(s)")

    def _opener(self, file_id: str, _domain: str, _rel_path: str) -> Callable:
        def open_content() -> io.FileIO:
            return self._decrypt(file_id)

        return open_content

    def _file_plist(self, file_id: str) -> FilePlist:
        conn = sqlite3.connect(f"{self._manifest_db.resolve().as_uri()}?mode=ro", uri=True)
        try:
            row = conn.execute(_BLOB_QUERY, (file_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise FileNotFoundError(f"{file_id} is not in the manifest")
        return FilePlist(row[0])

    def _decrypt(self, file_id: str) -> io.FileIO:
        if self._keybag is None:
            raise BackupLoadError("backup is not unlocked")
        plist = self._file_plist(file_id)
        if plist.encryption_key is None:
            raise ValueError(f"{file_id} has no encryption key")
        key = self._keybag.unwrap_key_for_class(plist.protection_class, plist.encryption_key)

        fd, name = tempfile.mkstemp(prefix=f"{file_id[:8]}-", dir=self._scratch.name)
        os.close(fd)
        target = Path(name)
        try:
            aes_decrypt_chunked(
                in_filename=backup_file_path(str(self._path), file_id),
                key=key,
                out_filepath=str(target),
            )
        except Exception:
            target.unlink(missing_ok=True)
            raise
        return _ScratchFile(target, "rb")

    @property
    def records(self) -> list[Record]:
        return self._records
