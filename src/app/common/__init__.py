"""Shared UI components used by the launcher window."""

from app.common.dialogs import DebugLogDialog, show_error_dialog

__all__ = [
    "DebugLogDialog",
    "show_error_dialog",
]
