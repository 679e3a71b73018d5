"""Main window — app filter on top, one card per discovered backup below."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtCore import QSize, Qt
from PySide6.QtWidgets import QHBoxLayout, QVBoxLayout, QWidget
from qfluentwidgets import (
    BodyLabel,
    FluentWindow,
    IndeterminateProgressRing,
    LineEdit,
    PushButton,
    ScrollArea,
    SubtitleLabel,
    TitleLabel,
)
from qfluentwidgets import FluentIcon as FIF

from ibexporter.i18n import t
from ibexporter.ui.components.backup_card import BackupCard
from ibexporter.ui.pickers import DialogFilePicker
from ibexporter.ui.qt_pump import QtUpdatePump
from ibexporter.ui.utils import show_success
from ibexporter.version import build_version

if TYPE_CHECKING:
    from PySide6.QtGui import QCloseEvent

    from ibexporter.context import AppContext
    from ibexporter.models.backup_item import BackupItem


_NO_ITEMS: list[BackupItem] = []


class BackupListPage(ScrollArea):
    """Title, app filter, and the backup list with its loading/error states."""

    def __init__(self, ctx: AppContext, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._cards: list[BackupCard] = []
        self._shown_items: list[BackupItem] | None = None
        self.setObjectName("backupListPage")
        self.setWidgetResizable(True)

        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(24, 16, 24, 16)
        layout.setSpacing(12)

        title = TitleLabel(t("app.title"), container)
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(title)
        version = SubtitleLabel(t("app.version", version=build_version()), container)
        version.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(version)

        # App filter
        toolbar = QHBoxLayout()
        self._filter_edit = LineEdit(container)
        self._filter_edit.setPlaceholderText(t("filter.placeholder"))
        self._filter_edit.setText(ctx.app_filter.app_id)
        self._filter_edit.setMinimumWidth(240)
        self._filter_edit.textChanged.connect(lambda _: self._update_controls())
        self._filter_edit.returnPressed.connect(self._on_change_filter)
        toolbar.addWidget(self._filter_edit)

        self._filter_btn = PushButton(t("filter.change"), container)
        self._filter_btn.clicked.connect(self._on_change_filter)
        toolbar.addWidget(self._filter_btn)
        toolbar.addStretch()

        self._reload_btn = PushButton(FIF.SYNC, t("list.reload"), container)
        self._reload_btn.clicked.connect(self._on_reload)
        toolbar.addWidget(self._reload_btn)
        layout.addLayout(toolbar)

        # Global states
        self._ring = IndeterminateProgressRing(container)
        self._ring.setFixedSize(40, 40)
        layout.addWidget(self._ring, 0, Qt.AlignmentFlag.AlignHCenter)

        self._message = BodyLabel("", container)
        self._message.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._message)

        self._cards_layout = QVBoxLayout()
        self._cards_layout.setSpacing(12)
        layout.addLayout(self._cards_layout)
        layout.addStretch()

        self.setWidget(container)
        self.refresh()

    # ── Rendering ──

    def refresh(self) -> None:
        """Redraw from state.  Called after every batch of update commands."""
        state = self._ctx.state
        self._ring.setVisible(state.loading)

        if state.loading:
            self._message.setText(t("list.loading"))
            self._message.setStyleSheet("")
        elif state.error is not None:
            self._message.setText(t("list.error", error=str(state.error)))
            self._message.setStyleSheet("color: #ff0000;")
        elif not state.items:
            self._message.setText(t("list.empty"))
            self._message.setStyleSheet("")
        else:
            self._message.setText("")
        self._message.setVisible(bool(self._message.text()))

        items = _NO_ITEMS if state.loading or state.error is not None else state.items
        if items is not self._shown_items:
            self._rebuild_cards(items)
        for card in self._cards:
            card.refresh()
        self._update_controls()

    def _rebuild_cards(self, items: list[BackupItem]) -> None:
        for card in self._cards:
            self._cards_layout.removeWidget(card)
            card.deleteLater()
        self._cards = [BackupCard(self._ctx, item, self) for item in items]
        for card in self._cards:
            self._cards_layout.addWidget(card)
        self._shown_items = items

    def _update_controls(self) -> None:
        state = self._ctx.state
        text = self._filter_edit.text().strip()
        self._filter_edit.setEnabled(not state.loading)
        self._filter_btn.setEnabled(
            not state.loading and bool(text) and text != self._ctx.app_filter.app_id
        )
        self._reload_btn.setEnabled(not self._ctx.orchestrator.running)

    # ── Actions ──

    def _on_change_filter(self) -> None:
        if self._ctx.operations.change_filter(self._filter_edit.text()):
            show_success(self.window(), t("filter.changed", app_id=self._ctx.app_filter.app_id))
        self.refresh()

    def _on_reload(self) -> None:
        self._ctx.orchestrator.start()
        self.refresh()


class MainWindow(FluentWindow):
    """Application main window."""

    def __init__(self, ctx: AppContext) -> None:
        super().__init__()
        self._ctx = ctx

        self.setWindowTitle(t("app.title"))
        self.setMinimumSize(QSize(800, 600))
        self.resize(1024, 768)

        self._page = BackupListPage(ctx, self)
        self.addSubInterface(self._page, FIF.FOLDER, t("app.title"))

        ctx.operations.set_picker(DialogFilePicker(self, ctx.config))
        ctx.event_loop.set_redraw(self._page.refresh)
        self._pump = QtUpdatePump(ctx.event_loop, self)

    def closeEvent(self, event: QCloseEvent) -> None:
        self._pump.shutdown()
        super().closeEvent(event)
