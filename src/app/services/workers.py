from __future__ import annotations

import traceback
from typing import Any, Dict, Iterable, List, Optional

from PySide6.QtCore import QObject, QRunnable, Signal, Slot

from app.services.bridge import LauncherBridge
from core.logging import get_logger

_worker_logger = get_logger("app.services.workers")


# -----------------------------------------------------------------------------
# Task Signals and Base Classes
# -----------------------------------------------------------------------------

class TaskSignals(QObject):
    progress = Signal(int, str)
    result = Signal(object)
    error = Signal(str, str)
    finished = Signal()


class BaseTask(QRunnable):
    """Base QRunnable that emits signals for progress, result, and errors."""

    def __init__(self) -> None:
        super().__init__()
        self.signals = TaskSignals()

    def report_progress(self, percent: int, message: str) -> None:
        try:
            self.signals.progress.emit(percent, message)
        except RuntimeError:
            # Signal receiver deleted (window closed)
            pass

    @Slot()
    def run(self) -> None:  # noqa: D401
        try:
            result = self.run_task()
        except Exception as exc:
            tb = traceback.format_exc()
            _worker_logger.exception("%s failed", type(self).__name__)
            self._safe_emit_error(str(exc), tb)
        else:
            self._safe_emit_result(result)
        finally:
            self._safe_emit_finished()

    def _safe_emit_result(self, result: Any) -> None:
        try:
            self.signals.result.emit(result)
        except RuntimeError:
            _worker_logger.debug("Result signal not emitted - receiver deleted")

    def _safe_emit_error(self, error: str, traceback_str: str) -> None:
        try:
            self.signals.error.emit(error, traceback_str)
        except RuntimeError:
            _worker_logger.warning("Error signal not emitted - receiver deleted: %s", error)

    def _safe_emit_finished(self) -> None:
        try:
            self.signals.finished.emit()
        except RuntimeError:
            _worker_logger.debug("Finished signal not emitted - receiver deleted")

    def run_task(self) -> Any:
        raise NotImplementedError


# -----------------------------------------------------------------------------
# Browser tasks
# -----------------------------------------------------------------------------

class LaunchCourseTask(BaseTask):
    """Run the (possibly slow, extraction included) launch off the UI thread."""

    def __init__(self, bridge: LauncherBridge, url: str, cookies: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        super().__init__()
        self.bridge = bridge
        self.url = url
        self.cookies: List[Dict[str, Any]] = list(cookies or [])

    def run_task(self) -> Dict[str, Any]:
        self.report_progress(0, "Opening course...")
        result = self.bridge.chrome_launch_course(self.url, self.cookies)
        self.report_progress(100, "Browser started" if result["success"] else "Launch failed")
        return result


class ResetProfileTask(BaseTask):
    def __init__(self, bridge: LauncherBridge) -> None:
        super().__init__()
        self.bridge = bridge

    def run_task(self) -> bool:
        return self.bridge.reset_brave_profile()
