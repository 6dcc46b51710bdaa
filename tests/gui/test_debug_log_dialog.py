"""Tests for the live debug log window."""
from __future__ import annotations

import logging
import threading

import pytest

from app.common.dialogs.debug_log import DebugLogDialog
from core.logging import RingBufferHandler


@pytest.fixture()
def buffer():
    handler = RingBufferHandler(capacity=50)
    logger = logging.getLogger("tests.debug_dialog")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


def test_dialog_shows_buffered_entries(qtbot, buffer):
    logging.getLogger("tests.debug_dialog").info("before open")

    dialog = DebugLogDialog(buffer=buffer)
    qtbot.addWidget(dialog)

    assert "before open" in dialog.log_view.toPlainText()
    assert "last 50 entries" in dialog.summary_label.text()


def test_dialog_tails_new_entries_from_worker_threads(qtbot, buffer):
    dialog = DebugLogDialog(buffer=buffer)
    qtbot.addWidget(dialog)

    worker = threading.Thread(target=lambda: logging.getLogger("tests.debug_dialog").warning("from worker"))
    worker.start()
    worker.join()

    qtbot.waitUntil(lambda: "from worker" in dialog.log_view.toPlainText(), timeout=2000)


def test_closing_dialog_unsubscribes(qtbot, buffer):
    dialog = DebugLogDialog(buffer=buffer)
    qtbot.addWidget(dialog)
    dialog.show()

    dialog.accept()
    logging.getLogger("tests.debug_dialog").info("after close")
    qtbot.wait(50)

    assert "after close" not in dialog.log_view.toPlainText()
    assert buffer._subscribers == []


def test_open_logs_folder_button(qtbot, buffer):
    calls = []
    dialog = DebugLogDialog(buffer=buffer, open_logs_folder=lambda: calls.append(True) or True)
    qtbot.addWidget(dialog)

    dialog.open_folder_button.click()

    assert calls == [True]


def test_open_logs_folder_disabled_without_callback(qtbot, buffer):
    dialog = DebugLogDialog(buffer=buffer)
    qtbot.addWidget(dialog)

    assert dialog.open_folder_button.isEnabled() is False
