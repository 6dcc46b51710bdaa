"""Tests for config.yml loading and path resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.config import FORCED_PATH_ENV, load_app_config
from core.paths import get_app_data_root, get_logs_dir, get_resources_root


def _write_config(base_dir: Path, text: str) -> None:
    config_dir = base_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.yml").write_text(text, encoding="utf-8")


def test_defaults_without_config_file(tmp_path):
    config = load_app_config(tmp_path, environ={"APPDATA": str(tmp_path / "appdata")})

    assert config.browser.flavor == "brave"
    assert config.browser.forced_path is None
    assert config.browser.window_size == (1200, 800)
    assert config.transfer.target_host == "udemy.com"
    assert config.transfer.freshness_window_s == 3600
    assert config.transfer.safety_timeout_ms == 8000
    assert config.logging.max_mb == 5
    assert config.logging.retention == 5
    assert config.profile.profile_folder == "BraveProfile"
    assert config.logs_dir == tmp_path / "appdata" / "Udemigo" / "logs"


def test_yaml_overrides(tmp_path):
    _write_config(
        tmp_path,
        """
logging:
  level: DEBUG
  retention: 2
browser:
  flavor: chrome
  window_size: [1600, 900]
transfer:
  freshness_window_s: 60
  safety_timeout_ms: 5000
profile:
  app_name: CourseBox
""",
    )

    config = load_app_config(tmp_path, environ={"APPDATA": str(tmp_path)})

    assert config.logging.level == "DEBUG"
    assert config.logging.retention == 2
    assert config.browser.flavor == "chrome"
    assert config.browser.window_size == (1600, 900)
    assert config.browser.window_position == (100, 100)
    assert config.transfer.freshness_window_s == 60
    assert config.transfer.safety_timeout_ms == 5000
    assert config.logs_dir == tmp_path / "CourseBox" / "logs"


def test_environment_forces_browser_path(tmp_path):
    _write_config(tmp_path, "browser:\n  forced_path: /from/config/brave\n")

    from_file = load_app_config(tmp_path, environ={})
    from_env = load_app_config(tmp_path, environ={FORCED_PATH_ENV: "/from/env/brave"})

    assert from_file.browser.forced_path == Path("/from/config/brave")
    assert from_env.browser.forced_path == Path("/from/env/brave")


def test_non_mapping_config_rejected(tmp_path):
    _write_config(tmp_path, "- just\n- a list\n")

    with pytest.raises(ValueError):
        load_app_config(tmp_path, environ={})


def test_safety_timeout_must_be_positive(tmp_path):
    _write_config(tmp_path, "transfer:\n  safety_timeout_ms: 0\n")

    with pytest.raises(ValueError, match="safety_timeout_ms"):
        load_app_config(tmp_path, environ={})


def test_to_json_round_trips_paths(tmp_path):
    config = load_app_config(tmp_path, environ={FORCED_PATH_ENV: "/opt/brave/brave"})

    data = json.loads(config.to_json())

    assert data["browser"]["forced_path"] == str(Path("/opt/brave/brave"))
    assert data["transfer"]["target_host"] == "udemy.com"


def test_app_data_root_precedence(tmp_path, monkeypatch):
    assert get_app_data_root({"APPDATA": "/a", "LOCALAPPDATA": "/b"}) == Path("/a")
    assert get_app_data_root({"LOCALAPPDATA": "/b"}) == Path("/b")

    monkeypatch.setattr(Path, "home", staticmethod(lambda: tmp_path))
    assert get_app_data_root({}) == tmp_path / ".config"
    assert get_logs_dir("Udemigo", {}) == tmp_path / ".config" / "Udemigo" / "logs"


def test_resources_root_only_when_frozen(tmp_path, monkeypatch):
    assert get_resources_root() is None

    (tmp_path / "resources").mkdir()
    monkeypatch.setattr("sys.frozen", True, raising=False)
    monkeypatch.setattr("sys.executable", str(tmp_path / "Udemigo.exe"))

    assert get_resources_root() == (tmp_path / "resources").resolve()
