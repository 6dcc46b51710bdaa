"""
Pytest configuration and fixtures for the GUI test suite.

Provides Qt application setup shared by all GUI tests.
"""
import os
import sys
import pytest

# Ensure offscreen rendering for GUI tests by default
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

# Import Qt before any application code to set platform
from PySide6.QtWidgets import QApplication
from PySide6.QtCore import Qt


@pytest.fixture(scope='session')
def qapp():
    """
    Session-wide QApplication instance.

    Creates a single QApplication for all GUI tests to share,
    preventing "QApplication already exists" errors.
    """
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
        app.setAttribute(Qt.AA_ShareOpenGLContexts, True)

    yield app

    # Note: We don't call app.quit() because pytest-qt manages the lifecycle


@pytest.fixture(scope='function')
def qtbot(qapp, request):
    """
    Function-scoped qtbot fixture that works with our session qapp.

    This ensures each test gets a fresh qtbot but shares the QApplication.
    """
    from pytestqt.qtbot import QtBot
    from PySide6.QtWidgets import QWidget

    bot = QtBot(request)
    yield bot

    if hasattr(bot, '_widgets'):
        for widget in bot._widgets:
            try:
                if isinstance(widget, QWidget) and not widget.isHidden():
                    widget.close()
                widget.deleteLater()
            except RuntimeError:
                # Widget already deleted
                pass

    qapp.processEvents()


def pytest_collection_modifyitems(config, items):
    """Default all GUI tests to gui_offscreen unless explicitly marked."""
    for item in items:
        if "tests/gui" not in str(item.fspath).replace(os.sep, "/"):
            continue
        if item.get_closest_marker("gui_live") or item.get_closest_marker("gui_offscreen"):
            continue
        item.add_marker(pytest.mark.gui_offscreen)
