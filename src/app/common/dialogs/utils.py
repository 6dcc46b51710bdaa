"""
Shared utility functions for dialogs.
"""
from __future__ import annotations

import json
from typing import Callable, Iterable, Optional

from PySide6.QtWidgets import QApplication, QMessageBox, QWidget


def show_error_dialog(
    parent: QWidget,
    title: str,
    message: str,
    details: str = "",
    log_provider: Optional[Callable[[], Iterable[str]]] = None,
) -> None:
    """
    Show a warning dialog with copy functionality.

    Args:
        parent: Parent widget
        title: Dialog title
        message: Short user-facing message
        details: Error details (shown in detailed text)
        log_provider: Optional callable returning recent log lines
    """
    dialog = QMessageBox(parent)
    dialog.setWindowTitle(title)
    dialog.setIcon(QMessageBox.Warning)
    dialog.setText(message)
    if details:
        dialog.setDetailedText(details)
    copy_button = dialog.addButton(parent.tr("Copy details"), QMessageBox.ActionRole)
    copy_json_button = dialog.addButton(parent.tr("Copy with log"), QMessageBox.ActionRole)
    dialog.addButton(parent.tr("Close"), QMessageBox.AcceptRole)

    copy_button.clicked.connect(lambda: QApplication.clipboard().setText(error_payload(message, details)))
    if log_provider:
        copy_json_button.clicked.connect(
            lambda: QApplication.clipboard().setText(error_report_json(title, message, details, log_provider()))
        )
    else:
        copy_json_button.setEnabled(False)
    dialog.exec()


def error_payload(message: str, details: str = "") -> str:
    if details:
        return f"{message}\n\n{details}"
    return message


def error_report_json(title: str, message: str, details: str, logs: Optional[Iterable[str]]) -> str:
    return json.dumps(
        {
            "title": title,
            "message": message,
            "details": details,
            "logs": list(logs or []),
        },
        indent=2,
    )
