"""Tests for encrypted MobileSync backups.

``EncryptedBackup`` is replaced by a stand-in that checks the passphrase and
hands out a keybag; per-file decryption runs the real library routines on
AES-encrypted fixture content.
"""

from __future__ import annotations

import shutil
import threading
from pathlib import Path

import pytest
from fakes import make_backup
from iphone_backup_decrypt import IncorrectPassphraseError

from ibexporter.backup import encrypted
from ibexporter.backup.base import BackupLoadError, PasswordError
from ibexporter.backup.encrypted import EncryptedBackupHandle
from ibexporter.backup.mobilesync import MobileSyncProvider
from ibexporter.core.app_filter import compute_stats
from ibexporter.models.backup_item import Loaded, NotLoaded

PASSPHRASE = "hunter2"
CONTENT_KEY = bytes(range(32))


class _Keybag:
    def __init__(self) -> None:
        self.unwrap_calls: list[int] = []

    def unwrap_key_for_class(self, protection_class: int, wrapped_key: bytes) -> bytes:
        assert len(wrapped_key) == 40
        self.unwrap_calls.append(protection_class)
        return CONTENT_KEY


class _StandInBackup:
    created: list[_StandInBackup] = []

    def __init__(self, *, backup_directory: str, passphrase: str | None = None, passphrase_key=None) -> None:
        self.backup_directory = Path(backup_directory)
        self.passphrase = passphrase
        self.keybag = None
        self.created.append(self)

    def test_decryption(self) -> bool:
        if self.passphrase != PASSPHRASE:
            raise IncorrectPassphraseError("Failed to decrypt keys: incorrect passphrase?")
        self.keybag = _Keybag()
        return True

    def save_manifest_file(self, output_filename: str) -> None:
        # Fixture manifests are stored in plain text
        shutil.copy(self.backup_directory / "Manifest.db", output_filename)


@pytest.fixture(autouse=True)
def stand_in(monkeypatch):
    _StandInBackup.created = []
    monkeypatch.setattr(encrypted, "EncryptedBackup", _StandInBackup)
    return _StandInBackup


@pytest.fixture
def backup_path(tmp_path: Path) -> Path:
    return make_backup(
        tmp_path / "Backup",
        "00008101-0001",
        [
            ("AppDomain-com.foo", "Documents", None),
            ("AppDomain-com.foo", "Documents/a.txt", b"0123456789"),
            ("AppDomain-com.foo", "Documents/empty", b""),
            ("AppDomain-com.bar", "b.txt", b"abcde" * 1000),
        ],
        device_name="iPad",
        content_key=CONTENT_KEY,
    )


def _loaded(path: Path) -> EncryptedBackupHandle:
    handle = EncryptedBackupHandle(path)
    handle.set_password(PASSPHRASE)
    handle.load()
    return handle


def _record(handle: EncryptedBackupHandle, rel_path: str):
    return next(r for r in handle.records if r.path == rel_path)


class TestPassword:
    def test_empty_password_rejected(self, backup_path: Path) -> None:
        with pytest.raises(PasswordError):
            EncryptedBackupHandle(backup_path).set_password("")

    def test_load_without_password(self, backup_path: Path) -> None:
        with pytest.raises(PasswordError):
            EncryptedBackupHandle(backup_path).load()

    def test_set_password_does_not_unlock(self, backup_path: Path, stand_in) -> None:
        EncryptedBackupHandle(backup_path).set_password("anything")
        assert stand_in.created == []

    def test_incorrect_password_is_password_error(self, backup_path: Path) -> None:
        handle = EncryptedBackupHandle(backup_path)
        handle.set_password("wrong")
        with pytest.raises(PasswordError):
            handle.load()
        assert handle.records == []

    def test_retry_after_incorrect_password(self, backup_path: Path) -> None:
        handle = EncryptedBackupHandle(backup_path)
        handle.set_password("wrong")
        with pytest.raises(PasswordError):
            handle.load()
        handle.set_password(PASSPHRASE)
        handle.load()
        assert len(handle.records) == 3

    def test_other_failures_are_load_errors(self, backup_path: Path) -> None:
        (backup_path / "Manifest.db").unlink()
        handle = EncryptedBackupHandle(backup_path)
        handle.set_password(PASSPHRASE)
        with pytest.raises(BackupLoadError):
            handle.load()


class TestRecords:
    def test_records_from_decrypted_manifest(self, backup_path: Path) -> None:
        handle = _loaded(backup_path)
        assert handle.is_encrypted
        paths = [(r.domain, r.path, r.length) for r in handle.records]
        assert paths == [
            ("AppDomain-com.bar", "b.txt", 5000),
            ("AppDomain-com.foo", "Documents/a.txt", 10),
            ("AppDomain-com.foo", "Documents/empty", 0),
        ]
        assert compute_stats(handle.records, "com.foo") == (2, 10)

    def test_content_decrypted(self, backup_path: Path) -> None:
        handle = _loaded(backup_path)
        with _record(handle, "Documents/a.txt").open() as f:
            assert f.read() == b"0123456789"
        with _record(handle, "b.txt").open() as f:
            assert f.read() == b"abcde" * 1000

    def test_scratch_file_removed_on_close(self, backup_path: Path) -> None:
        handle = _loaded(backup_path)
        f = _record(handle, "Documents/a.txt").open()
        scratch = Path(f.name)
        assert scratch.exists()
        f.close()
        assert not scratch.exists()

    def test_missing_content_raises_on_open(self, backup_path: Path) -> None:
        handle = _loaded(backup_path)
        rec = _record(handle, "b.txt")
        for blob_dir in backup_path.iterdir():
            if blob_dir.is_dir():
                shutil.rmtree(blob_dir)
        with pytest.raises(OSError):
            rec.open()

    def test_same_path_resolved_by_file_id(self, tmp_path: Path) -> None:
        # "_" must not act as a wildcard between similar bundle ids
        path = make_backup(
            tmp_path,
            "similar",
            [
                ("AppDomain-com.a_b", "data.txt", b"first"),
                ("AppDomain-com.axb", "data.txt", b"second"),
            ],
            content_key=CONTENT_KEY,
        )
        handle = _loaded(path)
        contents = {}
        for rec in handle.records:
            with rec.open() as f:
                contents[rec.domain] = f.read()
        assert contents == {"AppDomain-com.a_b": b"first", "AppDomain-com.axb": b"second"}

    def test_unlocked_once_for_all_threads(self, backup_path: Path, stand_in) -> None:
        handle = _loaded(backup_path)
        results: list[bytes] = []

        def read() -> None:
            with _record(handle, "Documents/a.txt").open() as f:
                results.append(f.read())

        threads = [threading.Thread(target=read) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert results == [b"0123456789"] * 4
        assert len(stand_in.created) == 1
        assert len(stand_in.created[0].keybag.unwrap_calls) == 4


class TestUnlockFlow:
    @pytest.fixture
    def core_and_item(self, backup_path: Path, make_core):
        core = make_core(MobileSyncProvider([backup_path.parent]))
        core.orchestrator.start()
        core.settle()
        [item] = core.orchestrator.state.items
        return core, item

    def test_incorrect_password_keeps_item_not_loaded(self, core_and_item) -> None:
        core, item = core_and_item
        assert item.awaiting_password

        assert core.operations.unlock(item, "wrong")
        core.settle()

        assert item.load_status == NotLoaded()
        assert isinstance(item.password_error, PasswordError)
        assert item.awaiting_password

    def test_wrong_then_right_password(self, core_and_item) -> None:
        core, item = core_and_item
        core.operations.unlock(item, "wrong")
        core.settle()

        assert core.operations.unlock(item, PASSPHRASE)
        assert item.password_error is None
        core.settle()

        assert item.load_status == Loaded()
        assert (item.file_count, item.total_bytes) == (2, 10)
