"""
Live debug log window.

Shows the in-memory log buffer and tails new entries as they are logged,
from any thread. Entries reach the GUI thread through a queued Qt signal.
"""
from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QFontDatabase
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from core.logging import LogEntry, RingBufferHandler, get_ring_buffer


class LogEntryRelay(QObject):
    """Re-emits ring buffer pushes as a Qt signal."""

    entry_logged = Signal(object)

    def push(self, entry: LogEntry) -> None:
        try:
            self.entry_logged.emit(entry)
        except RuntimeError:
            # Relay deleted while a worker thread was still logging
            pass


class DebugLogDialog(QDialog):
    def __init__(
        self,
        parent: Optional[QWidget] = None,
        buffer: Optional[RingBufferHandler] = None,
        open_logs_folder: Optional[Callable[[], bool]] = None,
    ):
        super().__init__(parent)
        self.setWindowTitle("Browser debug log")
        self.setMinimumSize(800, 450)
        self._buffer = buffer or get_ring_buffer()
        self._open_logs_folder = open_logs_folder

        layout = QVBoxLayout(self)

        self.summary_label = QLabel()
        layout.addWidget(self.summary_label)

        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setLineWrapMode(QPlainTextEdit.NoWrap)
        self.log_view.setFont(QFontDatabase.systemFont(QFontDatabase.FixedFont))
        self.log_view.setMaximumBlockCount(max(self._buffer.capacity, 1))
        layout.addWidget(self.log_view)

        buttons = QHBoxLayout()
        self.copy_button = QPushButton("Copy")
        self.copy_button.clicked.connect(self._copy_all)
        buttons.addWidget(self.copy_button)

        self.clear_button = QPushButton("Clear view")
        self.clear_button.clicked.connect(self.log_view.clear)
        buttons.addWidget(self.clear_button)

        self.open_folder_button = QPushButton("Open logs folder")
        self.open_folder_button.setEnabled(open_logs_folder is not None)
        self.open_folder_button.clicked.connect(self._on_open_folder)
        buttons.addWidget(self.open_folder_button)

        buttons.addStretch()
        close_button = QPushButton("Close")
        close_button.clicked.connect(self.accept)
        buttons.addWidget(close_button)
        layout.addLayout(buttons)

        for entry in self._buffer.entries():
            self.log_view.appendPlainText(entry.format())
        self._update_summary()

        self._relay = LogEntryRelay(self)
        self._relay.entry_logged.connect(self._append_entry, Qt.QueuedConnection)
        self._buffer.subscribe(self._relay.push)

    def _append_entry(self, entry: LogEntry) -> None:
        self.log_view.appendPlainText(entry.format())
        scrollbar = self.log_view.verticalScrollBar()
        scrollbar.setValue(scrollbar.maximum())
        self._update_summary()

    def _update_summary(self) -> None:
        self.summary_label.setText(
            f"{self.log_view.blockCount() if self.log_view.toPlainText() else 0} lines "
            f"(buffer keeps the last {self._buffer.capacity} entries)"
        )

    def _copy_all(self) -> None:
        QApplication.clipboard().setText(self.log_view.toPlainText())

    def _on_open_folder(self) -> None:
        if self._open_logs_folder is not None:
            self._open_logs_folder()

    def done(self, result: int) -> None:
        self._buffer.unsubscribe(self._relay.push)
        super().done(result)

    def closeEvent(self, event) -> None:
        self._buffer.unsubscribe(self._relay.push)
        super().closeEvent(event)
