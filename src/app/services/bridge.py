"""
Request/response surface exposed to the host UI.

Each method mirrors one host request (``chrome-launch-course``,
``get-brave-logging-info``, ``open-brave-logs-directory``, ...) and returns
plain data. Nothing here raises into the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from PySide6.QtCore import QUrl
from PySide6.QtGui import QDesktopServices

from browser.launcher import BrowserController
from core.logging import get_logger, get_logging_info

LOGGER = get_logger("app.services.bridge")


def _open_with_desktop(path: Path) -> bool:
    return QDesktopServices.openUrl(QUrl.fromLocalFile(str(path)))


class LauncherBridge:
    """Thin adapter between UI requests and the ``BrowserController``."""

    def __init__(
        self,
        controller: BrowserController,
        logs_dir: Path,
        *,
        opener: Callable[[Path], bool] = _open_with_desktop,
    ) -> None:
        self.controller = controller
        self.logs_dir = logs_dir
        self._open = opener

    def chrome_launch_course(self, url: str, cookies: Optional[Iterable[Dict[str, Any]]] = None) -> Dict[str, Any]:
        LOGGER.info("chrome-launch-course requested: %s", url)
        success = self.controller.launch(url, cookies)
        return {
            "success": success,
            "error": None if success else (self.controller.last_error or "Unknown error"),
        }

    def get_brave_logging_info(self) -> Dict[str, Any]:
        info = get_logging_info()
        if not info.get("log_dir"):
            info["log_dir"] = str(self.logs_dir)
        return info

    def open_brave_logs_directory(self) -> bool:
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error("Cannot create logs directory %s: %s", self.logs_dir, exc)
            return False
        opened = bool(self._open(self.logs_dir))
        if not opened:
            LOGGER.warning("Desktop could not open %s", self.logs_dir)
        return opened

    def close_browser(self) -> bool:
        return self.controller.close()

    def reset_brave_profile(self) -> bool:
        return self.controller.reset_profile()

    def get_browser_status(self) -> Dict[str, Any]:
        return self.controller.get_status()
