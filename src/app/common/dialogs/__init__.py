"""
Common dialogs package.

    from app.common.dialogs import DebugLogDialog, show_error_dialog
"""
from __future__ import annotations

from .debug_log import DebugLogDialog, LogEntryRelay
from .utils import error_payload, error_report_json, show_error_dialog

__all__ = [
    "DebugLogDialog",
    "LogEntryRelay",
    "error_payload",
    "error_report_json",
    "show_error_dialog",
]
