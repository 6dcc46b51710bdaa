import logging
from pathlib import Path

import pytest

from core.logging import ROOT_LOGGER_NAME, get_ring_buffer


@pytest.fixture()
def app_data_root(tmp_path: Path, monkeypatch) -> Path:
    """Point the platform app-data root at a temporary directory."""
    root = tmp_path / "appdata"
    root.mkdir()
    monkeypatch.setenv("APPDATA", str(root))
    monkeypatch.delenv("LOCALAPPDATA", raising=False)
    return root


@pytest.fixture(autouse=True)
def reset_app_logging():
    """Detach handlers installed by configure_logging() after each test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler is not get_ring_buffer():
            handler.close()
    logger.setLevel(logging.NOTSET)
    get_ring_buffer().clear()
