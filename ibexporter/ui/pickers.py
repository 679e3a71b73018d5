"""Destination picker backed by the native save-file dialog."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from loguru import logger
from PySide6.QtWidgets import QFileDialog, QWidget

from ibexporter.backup.base import FilePicker
from ibexporter.i18n import t

if TYPE_CHECKING:
    from ibexporter.config import Config


class DialogFilePicker(FilePicker):
    """Asks the user where to save the archive; remembers the last folder."""

    def __init__(self, parent: QWidget, config: Config) -> None:
        self._parent = parent
        self._config = config

    def create_file(self, suggested_name: str) -> BinaryIO | None:
        start_dir = self._config.last_export_dir or Path.home()
        path, _ = QFileDialog.getSaveFileName(
            self._parent,
            t("export.dialog_title"),
            str(start_dir / suggested_name),
            t("export.filter"),
        )
        if not path:
            return None

        target = Path(path)
        self._config.last_export_dir = target.parent
        logger.info(f"Exporting to {target}")
        return open(target, "wb")
