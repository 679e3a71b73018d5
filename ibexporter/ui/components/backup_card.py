"""BackupCard — one discovered backup with its unlock / export controls.

Layout::

    ┌───────────────────────────────────────────────────────────┐
    │  iPhone - 00008030-001A                                   │
    │  [ Password        ] [Set Password]  loading / error      │
    │  1234 files 2.31 GB  [Export]  saving 40% / saved / error │
    └───────────────────────────────────────────────────────────┘

The card only reads ``BackupItem`` state in ``refresh()``; button handlers
call into ``BackupOperations`` on the GUI thread.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from PySide6.QtWidgets import QHBoxLayout, QVBoxLayout, QWidget
from qfluentwidgets import (
    BodyLabel,
    CaptionLabel,
    CardWidget,
    PasswordLineEdit,
    PrimaryPushButton,
    PushButton,
    StrongBodyLabel,
)
from qfluentwidgets import FluentIcon as FIF

from ibexporter.i18n import t
from ibexporter.models.backup_item import (
    BackupItem,
    Exported,
    ExportFailed,
    Exporting,
    LoadFailed,
    OperationRejected,
)
from ibexporter.ui.utils import show_error
from ibexporter.utils import format_size

if TYPE_CHECKING:
    from ibexporter.context import AppContext

_ERROR_STYLE = "color: #ff0000;"


class BackupCard(CardWidget):
    """Full-width card representing one ``BackupItem``."""

    def __init__(self, ctx: AppContext, item: BackupItem, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._item = item

        root = QVBoxLayout(self)
        root.setContentsMargins(16, 10, 16, 10)
        root.setSpacing(8)

        self._title = StrongBodyLabel(
            t("item.title", device=item.source.device_name, identifier=item.source.identifier),
            self,
        )
        root.addWidget(self._title)

        # ── Password row ──
        self._password_row = QWidget(self)
        pw_layout = QHBoxLayout(self._password_row)
        pw_layout.setContentsMargins(0, 0, 0, 0)
        self._password = PasswordLineEdit(self._password_row)
        self._password.setPlaceholderText(t("item.password"))
        self._password.setMinimumWidth(200)
        self._password.textChanged.connect(lambda _: self.refresh())
        self._password.returnPressed.connect(self._on_unlock)
        pw_layout.addWidget(self._password)
        self._unlock_btn = PushButton(t("item.set_password"), self._password_row)
        self._unlock_btn.clicked.connect(self._on_unlock)
        pw_layout.addWidget(self._unlock_btn)
        self._password_status = CaptionLabel("", self._password_row)
        pw_layout.addWidget(self._password_status)
        pw_layout.addStretch()
        root.addWidget(self._password_row)

        # ── Stats / export row ──
        self._export_row = QWidget(self)
        ex_layout = QHBoxLayout(self._export_row)
        ex_layout.setContentsMargins(0, 0, 0, 0)
        self._stats = BodyLabel("", self._export_row)
        ex_layout.addWidget(self._stats)
        self._export_btn = PrimaryPushButton(FIF.SAVE, t("item.export"), self._export_row)
        self._export_btn.clicked.connect(self._on_export)
        ex_layout.addWidget(self._export_btn)
        self._export_status = CaptionLabel("", self._export_row)
        ex_layout.addWidget(self._export_status)
        ex_layout.addStretch()
        root.addWidget(self._export_row)

        self._error = BodyLabel("", self)
        self._error.setStyleSheet(_ERROR_STYLE)
        root.addWidget(self._error)

        self.refresh()

    @property
    def item(self) -> BackupItem:
        return self._item

    # ── Rendering ──

    def refresh(self) -> None:
        item = self._item
        load_error = item.load_status if isinstance(item.load_status, LoadFailed) else None

        self._error.setVisible(load_error is not None)
        if load_error is not None:
            self._error.setText(t("item.error", error=load_error.message))

        self._password_row.setVisible(item.is_encrypted and not item.is_loaded)
        self._unlock_btn.setEnabled(item.awaiting_password and bool(self._password.text()))
        self._password.setEnabled(item.awaiting_password)
        if item.is_loading:
            self._password_status.setText(t("item.loading"))
            self._password_status.setStyleSheet("")
        elif item.password_error is not None:
            self._password_status.setText(t("item.error", error=str(item.password_error)))
            self._password_status.setStyleSheet(_ERROR_STYLE)
        else:
            self._password_status.setText("")

        self._export_row.setVisible(item.is_loaded)
        if not item.is_loaded:
            return

        has_files = item.file_count > 0
        self._export_btn.setVisible(has_files)
        self._export_btn.setEnabled(has_files and not item.is_exporting)
        if not has_files:
            self._stats.setText(t("item.no_app"))
            self._stats.setStyleSheet(_ERROR_STYLE)
            self._export_status.setText("")
            return

        self._stats.setStyleSheet("font-style: italic;")
        self._stats.setText(t("item.stats", count=item.file_count, size=format_size(item.total_bytes)))

        status = item.export_status
        if isinstance(status, Exporting):
            self._export_status.setText(t("item.saving", percent=status.percent))
            self._export_status.setStyleSheet("")
        elif isinstance(status, Exported):
            self._export_status.setText(t("item.saved"))
            self._export_status.setStyleSheet("")
        elif isinstance(status, ExportFailed):
            self._export_status.setText(t("item.error", error=status.message))
            self._export_status.setStyleSheet(_ERROR_STYLE)
        else:
            self._export_status.setText("")

    # ── Actions ──

    def _on_unlock(self) -> None:
        try:
            self._ctx.operations.unlock(self._item, self._password.text())
        except OperationRejected as e:
            logger.debug(f"Unlock ignored: {e}")
        self.refresh()

    def _on_export(self) -> None:
        try:
            self._ctx.operations.begin_export(self._item)
        except OperationRejected as e:
            show_error(self.window(), t("export.rejected"), str(e))
        self.refresh()
