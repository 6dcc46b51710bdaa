"""Tests for the host-facing launcher bridge."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from app.services.bridge import LauncherBridge
from browser.launcher import BrowserController


@pytest.fixture()
def controller():
    mock = MagicMock(spec=BrowserController)
    mock.last_error = None
    return mock


def test_launch_course_success(controller, tmp_path):
    controller.launch.return_value = True
    bridge = LauncherBridge(controller, tmp_path / "logs")
    cookies = [{"name": "access_token", "value": "abc"}]

    result = bridge.chrome_launch_course("https://www.udemy.com/course/foo/learn/", cookies)

    assert result == {"success": True, "error": None}
    controller.launch.assert_called_once_with("https://www.udemy.com/course/foo/learn/", cookies)


def test_launch_course_failure_reports_last_error(controller, tmp_path):
    controller.launch.return_value = False
    controller.last_error = "Packaged Brave browser not found"
    bridge = LauncherBridge(controller, tmp_path / "logs")

    result = bridge.chrome_launch_course("https://www.udemy.com")

    assert result["success"] is False
    assert result["error"] == "Packaged Brave browser not found"


def test_open_logs_directory_creates_it(controller, tmp_path):
    opened = []
    logs_dir = tmp_path / "Udemigo" / "logs"
    bridge = LauncherBridge(controller, logs_dir, opener=lambda path: opened.append(path) or True)

    assert bridge.open_brave_logs_directory() is True
    assert logs_dir.is_dir()
    assert opened == [logs_dir]


def test_open_logs_directory_reports_desktop_failure(controller, tmp_path):
    bridge = LauncherBridge(controller, tmp_path / "logs", opener=lambda path: False)

    assert bridge.open_brave_logs_directory() is False


def test_logging_info_falls_back_to_configured_dir(controller, tmp_path, monkeypatch):
    monkeypatch.setattr(
        "app.services.bridge.get_logging_info",
        lambda: {"enabled": False, "log_dir": None, "current_file": None, "files": []},
    )
    bridge = LauncherBridge(controller, tmp_path / "logs")

    info = bridge.get_brave_logging_info()

    assert info["log_dir"] == str(tmp_path / "logs")
    assert info["enabled"] is False


def test_logging_info_from_active_logger(controller, tmp_path):
    from core.logging import configure_logging

    configure_logging(tmp_path / "logs", retention=3)
    bridge = LauncherBridge(controller, Path("/unused"))

    info = bridge.get_brave_logging_info()

    assert info["enabled"] is True
    assert info["log_dir"] == str(tmp_path / "logs")
    assert info["retention"] == 3
    assert len(info["files"]) == 1


def test_status_close_and_reset_delegate(controller, tmp_path):
    controller.get_status.return_value = {"is_active": False}
    controller.close.return_value = True
    controller.reset_profile.return_value = True
    bridge = LauncherBridge(controller, tmp_path)

    assert bridge.get_browser_status() == {"is_active": False}
    assert bridge.close_browser() is True
    assert bridge.reset_brave_profile() is True
