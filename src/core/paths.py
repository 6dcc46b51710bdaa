"""
Path resolution for packaged and development layouts.

Packaged builds (PyInstaller) keep bundled browsers in a ``resources``
directory beside the executable, outside the ``_MEIPASS`` archive. Source
checkouts keep them at the repository root.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping, Optional

APP_NAME = "Udemigo"


def is_frozen() -> bool:
    return bool(getattr(sys, "frozen", False))


def get_dev_root() -> Path:
    """Repository root (two levels up from this file)."""
    return Path(__file__).resolve().parents[2]


def get_resources_root() -> Optional[Path]:
    """Return the packaged resources directory, or None when running from source.

    Prefers ``<exe dir>/resources`` and falls back to the executable directory
    itself. Never returns the ``_MEIPASS`` extraction directory: it is
    recreated on every start and cannot hold extracted browsers.
    """
    if not is_frozen():
        return None
    exe_dir = Path(sys.executable).resolve().parent
    resources = exe_dir / "resources"
    if resources.is_dir():
        return resources
    return exe_dir


def get_base_dir() -> Path:
    """Directory holding ``config/`` and ``bundled-browsers/``."""
    return get_resources_root() or get_dev_root()


def get_app_data_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Platform app-data root: ``%APPDATA%``, then ``%LOCALAPPDATA%``, then ``~/.config``."""
    env = os.environ if environ is None else environ
    for key in ("APPDATA", "LOCALAPPDATA"):
        value = env.get(key)
        if value:
            return Path(value)
    return Path.home() / ".config"


def get_app_data_dir(app_name: str = APP_NAME, environ: Optional[Mapping[str, str]] = None) -> Path:
    return get_app_data_root(environ) / app_name


def get_logs_dir(app_name: str = APP_NAME, environ: Optional[Mapping[str, str]] = None) -> Path:
    return get_app_data_dir(app_name, environ) / "logs"
