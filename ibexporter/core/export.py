"""Export engine — stream one app's records into a stored ZIP archive."""

from __future__ import annotations

import posixpath
import time
import zipfile
from dataclasses import dataclass
from datetime import date
from typing import BinaryIO, Callable

from loguru import logger

from ibexporter.core.app_filter import app_domain
from ibexporter.models.backup_source import BackupSource, Record
from ibexporter.utils import sanitize_filename

DEFAULT_PROGRESS_INTERVAL = 500
DEFAULT_NAME_PREFIX_LENGTH = 8
_COPY_CHUNK = 1024 * 1024


class ExportError(Exception):
    """Fatal archive failure — the export as a whole did not succeed."""


def export_folder_name(
    source: BackupSource,
    today: date | None = None,
    prefix_length: int = DEFAULT_NAME_PREFIX_LENGTH,
) -> str:
    """
    Top-level folder of the archive: a short prefix of the backup name plus
    the date, e.g. ``00008030-20240101``.
    """
    today = today or date.today()
    name = sanitize_filename(source.identifier)[:prefix_length]
    return f"{name}-{today:%Y%m%d}"


def progress_percent(processed: int, file_count: int) -> int:
    """Approximate export progress, clamped to ``0..100``."""
    if file_count <= 0:
        return 100
    return max(0, min(100, processed * 100 // file_count))


@dataclass(frozen=True)
class ExportJob:
    """Everything an export needs, frozen when the export is requested."""

    records: tuple[Record, ...]
    app_id: str
    file_count: int
    folder_name: str


class ExportEngine:
    """
    Writes the records of one app into a ZIP archive.

    Entries are stored uncompressed: backup content is mostly already
    compressed or encrypted.  A record whose content cannot be opened is
    logged and skipped; failing to write an entry or to finish the archive
    raises ``ExportError``.
    """

    def __init__(self, progress_interval: int = DEFAULT_PROGRESS_INTERVAL) -> None:
        self._progress_interval = max(1, progress_interval)

    @property
    def progress_interval(self) -> int:
        return self._progress_interval

    def export(
        self,
        job: ExportJob,
        destination: BinaryIO,
        on_progress: Callable[[int], None] | None = None,
    ) -> int:
        """Write the archive to *destination*; return the content bytes written."""
        domain = app_domain(job.app_id)
        date_time = time.localtime()[:6]
        total = 0
        count = 0

        try:
            zf = zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_STORED)
        except (OSError, ValueError) as e:
            raise ExportError(f"Failed to create archive: {e}") from e

        try:
            for rec in job.records:
                if rec.domain != domain:
                    continue
                if rec.length == 0:
                    continue

                try:
                    src = rec.open()
                except Exception as e:
                    logger.warning(f"Error reading file: {rec.path}: {e}")
                    continue

                with src:
                    total += self._write_entry(zf, job.folder_name, rec, src, date_time)
                count += 1

                if count % self._progress_interval == 0:
                    logger.debug(f"Exported {count}/{job.file_count} records")
                    if on_progress is not None:
                        on_progress(progress_percent(count, job.file_count))
        except ExportError as e:
            logger.error(str(e))
            self._abandon(zf)
            raise

        try:
            zf.close()
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            logger.error(f"Failed to close zipfile: {e}")
            raise ExportError(f"Failed to close archive: {e}") from e

        logger.info(f"Wrote {total} bytes ({count} files) to {job.folder_name}")
        return total

    def _write_entry(
        self,
        zf: zipfile.ZipFile,
        folder_name: str,
        rec: Record,
        src: BinaryIO,
        date_time: tuple[int, ...],
    ) -> int:
        name = posixpath.join(folder_name, rec.path.lstrip("/"))
        info = zipfile.ZipInfo(name, date_time=date_time)
        info.compress_type = zipfile.ZIP_STORED
        info.file_size = rec.length

        try:
            dst = zf.open(info, "w")
        except (OSError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
            raise ExportError(f"Failed to create entry {name}: {e}") from e

        written = 0
        try:
            with dst:
                while True:
                    try:
                        chunk = src.read(_COPY_CHUNK)
                    except OSError as e:
                        # Keep what was read so far; the rest of the archive is intact
                        logger.warning(f"Read interrupted: {rec.path}: {e}")
                        break
                    if not chunk:
                        break
                    dst.write(chunk)
                    written += len(chunk)
        except (OSError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
            raise ExportError(f"Failed to write entry {name}: {e}") from e
        return written

    @staticmethod
    def _abandon(zf: zipfile.ZipFile) -> None:
        """Release an archive after a fatal error; the output is incomplete anyway."""
        try:
            zf.close()
        except (OSError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
            logger.debug(f"Discarding incomplete archive: {e}")
