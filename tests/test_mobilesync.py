"""Tests for the MobileSync backup folder reader."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import file_blob, make_backup

from ibexporter.backup.base import BackupLoadError, BackupOpenError, EnumerationError
from ibexporter.backup.mobilesync import MobileSyncHandle, MobileSyncProvider, file_size
from ibexporter.core.app_filter import compute_stats
from ibexporter.models.backup_source import BackupSource


@pytest.fixture
def backup_root(tmp_path: Path) -> Path:
    root = tmp_path / "Backup"
    make_backup(
        root,
        "00008030-001A2B3C",
        [
            ("AppDomain-com.foo", "Documents", None),
            ("AppDomain-com.foo", "Documents/a.txt", b"0123456789"),
            ("AppDomain-com.bar", "b.txt", b"abcde"),
            ("HomeDomain", "Library/Preferences/x.plist", b"<plist/>"),
        ],
    )
    return root


class TestFileSize:
    def test_reads_size(self) -> None:
        assert file_size(file_blob(4096)) == 4096

    def test_garbage_is_zero(self) -> None:
        assert file_size(b"not a plist") == 0
        assert file_size(None) == 0


class TestProvider:
    def test_enumerate(self, backup_root: Path) -> None:
        [source] = MobileSyncProvider([backup_root]).enumerate()
        assert source.device_name == "iPhone"
        assert source.identifier == "00008030-001A2B3C"
        assert source.path == backup_root / "00008030-001A2B3C"

    def test_enumerate_skips_non_backups(self, backup_root: Path) -> None:
        (backup_root / "stray-folder").mkdir()
        (backup_root / "notes.txt").write_text("hi")
        assert len(MobileSyncProvider([backup_root]).enumerate()) == 1

    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert MobileSyncProvider([tmp_path / "nope"]).enumerate() == []

    def test_unlistable_root_raises(self, tmp_path: Path, monkeypatch) -> None:
        root = tmp_path / "Backup"
        root.mkdir()

        def broken(self):
            raise PermissionError("denied")

        monkeypatch.setattr(Path, "iterdir", broken)
        with pytest.raises(EnumerationError):
            MobileSyncProvider([root]).enumerate()

    def test_device_name_falls_back_to_folder(self, tmp_path: Path) -> None:
        make_backup(tmp_path, "abcdef", [], device_name=None)
        [source] = MobileSyncProvider([tmp_path]).enumerate()
        assert source.device_name == "abcdef"

    def test_open_unencrypted(self, backup_root: Path) -> None:
        provider = MobileSyncProvider([backup_root])
        [source] = provider.enumerate()
        handle = provider.open(source)
        assert isinstance(handle, MobileSyncHandle)
        assert not handle.is_encrypted

    def test_open_detects_encryption(self, tmp_path: Path) -> None:
        make_backup(tmp_path, "locked", [], encrypted=True)
        provider = MobileSyncProvider([tmp_path])
        [source] = provider.enumerate()
        assert provider.open(source).is_encrypted

    def test_open_without_manifest_fails(self, tmp_path: Path) -> None:
        with pytest.raises(BackupOpenError):
            MobileSyncProvider([]).open(BackupSource("x", "x", tmp_path))


class TestHandle:
    def test_load_lists_files_only(self, backup_root: Path) -> None:
        handle = MobileSyncHandle(backup_root / "00008030-001A2B3C")
        handle.load()
        paths = [(r.domain, r.path, r.length) for r in handle.records]
        assert paths == [
            ("AppDomain-com.bar", "b.txt", 5),
            ("AppDomain-com.foo", "Documents/a.txt", 10),
            ("HomeDomain", "Library/Preferences/x.plist", 8),
        ]
        assert compute_stats(handle.records, "com.foo") == (1, 10)

    def test_record_content(self, backup_root: Path) -> None:
        handle = MobileSyncHandle(backup_root / "00008030-001A2B3C")
        handle.load()
        rec = next(r for r in handle.records if r.path == "Documents/a.txt")
        with rec.open() as f:
            assert f.read() == b"0123456789"

    def test_missing_content_raises_on_open(self, backup_root: Path) -> None:
        path = backup_root / "00008030-001A2B3C"
        handle = MobileSyncHandle(path)
        handle.load()
        rec = next(r for r in handle.records if r.path == "b.txt")
        for blob_dir in path.iterdir():
            if blob_dir.is_dir():
                for f in blob_dir.iterdir():
                    f.unlink()
        with pytest.raises(OSError):
            rec.open()

    def test_load_without_manifest_db(self, tmp_path: Path) -> None:
        with pytest.raises(BackupLoadError):
            MobileSyncHandle(tmp_path).load()

    def test_password_not_applicable(self, tmp_path: Path) -> None:
        from ibexporter.backup.base import PasswordError

        with pytest.raises(PasswordError):
            MobileSyncHandle(tmp_path).set_password("x")
