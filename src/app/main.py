from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from PySide6.QtCore import QThreadPool
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from browser.launcher import BrowserController
from core.app_version import get_app_version
from core.config import AppConfig, load_app_config
from core.logging import configure_logging, get_logger, get_ring_buffer
from core.paths import get_base_dir

from .common.dialogs.debug_log import DebugLogDialog
from .common.dialogs.utils import show_error_dialog
from .services.bridge import LauncherBridge
from .services.workers import LaunchCourseTask, ResetProfileTask

LOGGER = get_logger("app.main")


def load_cookie_file(path: Path) -> List[Dict[str, Any]]:
    """
    Read exported cookies from JSON.

    Accepts either a list of cookie objects or ``{"cookies": [...]}``.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("cookies", [])
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path.name} does not contain a list of cookie objects")
    return data


class LauncherWindow(QMainWindow):
    def __init__(self, config: AppConfig, bridge: LauncherBridge) -> None:
        super().__init__()
        self.config = config
        self.bridge = bridge
        self.thread_pool = QThreadPool.globalInstance()
        self.cookies: List[Dict[str, Any]] = []
        self._debug_dialog: Optional[DebugLogDialog] = None

        self.setWindowTitle(f"{config.profile.app_name} {get_app_version()}")
        self.resize(640, 260)

        central = QWidget()
        layout = QVBoxLayout(central)

        course_group = QGroupBox("Course")
        form = QFormLayout(course_group)
        self.url_edit = QLineEdit(config.transfer.default_url)
        form.addRow("URL", self.url_edit)

        cookie_row = QHBoxLayout()
        self.cookie_label = QLabel("No cookies loaded")
        cookie_row.addWidget(self.cookie_label, 1)
        self.cookie_button = QPushButton("Load cookies...")
        self.cookie_button.clicked.connect(self._choose_cookie_file)
        cookie_row.addWidget(self.cookie_button)
        form.addRow("Session", cookie_row)
        layout.addWidget(course_group)

        buttons = QHBoxLayout()
        self.launch_button = QPushButton("Open course")
        self.launch_button.setDefault(True)
        self.launch_button.clicked.connect(self.launch_course)
        buttons.addWidget(self.launch_button)

        self.close_button = QPushButton("Close browser")
        self.close_button.clicked.connect(self._close_browser)
        buttons.addWidget(self.close_button)

        self.reset_button = QPushButton("Reset profile")
        self.reset_button.clicked.connect(self._reset_profile)
        buttons.addWidget(self.reset_button)

        buttons.addStretch()
        self.debug_button = QPushButton("Debug log")
        self.debug_button.clicked.connect(self.show_debug_log)
        buttons.addWidget(self.debug_button)

        self.logs_button = QPushButton("Open logs folder")
        self.logs_button.clicked.connect(self.bridge.open_brave_logs_directory)
        buttons.addWidget(self.logs_button)
        layout.addLayout(buttons)

        self.status_label = QLabel("Ready")
        layout.addWidget(self.status_label)

        self.setCentralWidget(central)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _choose_cookie_file(self) -> None:
        filename, _ = QFileDialog.getOpenFileName(self, "Load cookies", "", "JSON files (*.json)")
        if filename:
            self.set_cookie_file(Path(filename))

    def set_cookie_file(self, path: Path) -> bool:
        try:
            self.cookies = load_cookie_file(path)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Cannot load cookies from %s: %s", path, exc)
            QMessageBox.warning(self, "Load cookies", f"Could not read {path.name}:\n{exc}")
            return False
        self.cookie_label.setText(f"{len(self.cookies)} cookies from {path.name}")
        LOGGER.info("Loaded %d cookies from %s", len(self.cookies), path)
        return True

    def launch_course(self) -> None:
        url = self.url_edit.text().strip() or self.config.transfer.default_url
        self.launch_button.setEnabled(False)
        self.reset_button.setEnabled(False)
        self.status_label.setText("Opening course...")

        task = LaunchCourseTask(self.bridge, url, self.cookies)
        task.signals.progress.connect(self._on_launch_progress)
        task.signals.result.connect(self._on_launch_result)
        task.signals.error.connect(self._on_task_error)
        task.signals.finished.connect(self._on_launch_finished)
        self.thread_pool.start(task)

    def _on_launch_progress(self, _percent: int, message: str) -> None:
        self.status_label.setText(message)

    def _on_launch_finished(self) -> None:
        self.launch_button.setEnabled(True)
        self.reset_button.setEnabled(True)

    def _on_launch_result(self, result: Dict[str, Any]) -> None:
        if result.get("success"):
            self.status_label.setText("Browser started")
            return
        self.status_label.setText("Could not open course")
        show_error_dialog(
            self,
            "Could not open course",
            "Could not open course. The application is still usable; check the debug log for details.",
            details=result.get("error") or "",
            log_provider=lambda: [entry.format() for entry in get_ring_buffer().entries()],
        )

    def _on_task_error(self, message: str, tb: str) -> None:
        self.status_label.setText("Could not open course")
        show_error_dialog(self, "Could not open course", message, details=tb)

    def _close_browser(self) -> None:
        if self.bridge.close_browser():
            self.status_label.setText("Browser closed")
        else:
            self.status_label.setText("No browser running")

    def _reset_profile(self) -> None:
        answer = QMessageBox.question(
            self,
            "Reset profile",
            "Delete the browser profile? The protected-content permission will be asked again.",
        )
        if answer != QMessageBox.Yes:
            return
        task = ResetProfileTask(self.bridge)
        task.signals.result.connect(self._on_reset_result)
        self.thread_pool.start(task)

    def _on_reset_result(self, removed: bool) -> None:
        self.status_label.setText("Profile reset" if removed else "Profile not reset")

    def show_debug_log(self) -> DebugLogDialog:
        if self._debug_dialog is None:
            self._debug_dialog = DebugLogDialog(self, open_logs_folder=self.bridge.open_brave_logs_directory)
            self._debug_dialog.finished.connect(self._on_debug_closed)
        self._debug_dialog.show()
        self._debug_dialog.raise_()
        return self._debug_dialog

    def _on_debug_closed(self, _result: int) -> None:
        self._debug_dialog = None

    def closeEvent(self, event) -> None:
        if self.bridge.get_browser_status().get("is_active"):
            LOGGER.info("Main window closing, shutting down browser")
            self.bridge.close_browser()
        super().closeEvent(event)


def main() -> int:
    base_dir = get_base_dir()
    config = load_app_config(base_dir)

    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)
    configure_logging(
        config.logs_dir,
        level=log_level,
        max_bytes=config.logging.max_mb * 1024 * 1024,
        retention=config.logging.retention,
        ring_buffer_size=config.logging.ring_buffer_size,
    )
    LOGGER.info("%s %s starting", config.profile.app_name, get_app_version())
    LOGGER.debug("Configuration: %s", config.to_json())

    controller = BrowserController.from_config(config)
    bridge = LauncherBridge(controller, config.logs_dir)

    app = QApplication(sys.argv)
    window = LauncherWindow(config, bridge)
    window.show()
    return app.exec()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
