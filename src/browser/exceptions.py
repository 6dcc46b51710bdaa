"""
Exceptions for the bundled-browser launcher.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class BrowserError(Exception):
    """Base exception for launcher errors."""
    pass


class BrowserNotFoundError(BrowserError):
    """Raised when no bundled browser binary exists after lookup and extraction."""

    def __init__(
        self,
        flavor: str,
        checked: int = 0,
        remediation: str = "",
        cause: Optional[Exception] = None,
    ):
        self.flavor = flavor
        self.checked = checked
        self.remediation = remediation
        self.cause = cause
        message = (
            f"Packaged {flavor} browser not found ({checked} locations checked). "
            "System installations are intentionally never used."
        )
        if cause is not None:
            message += f"\nExtraction failed: {cause}"
        if remediation:
            message += f"\n{remediation}"
        super().__init__(message)


class ToolMissingError(BrowserError):
    """Raised when the external archive tool is not installed."""

    def __init__(self, tool_name: str, install_hint: str = ""):
        self.tool_name = tool_name
        self.install_hint = install_hint
        message = f"Required tool '{tool_name}' not found"
        if install_hint:
            message += f"\n{install_hint}"
        super().__init__(message)


class ExtractionError(BrowserError):
    """Raised when archive extraction fails or yields no executable."""

    def __init__(
        self,
        message: str,
        archive: Optional[Path] = None,
        exit_code: Optional[int] = None,
        output: str = "",
        tree: str = "",
    ):
        self.archive = archive
        self.exit_code = exit_code
        self.output = output
        self.tree = tree
        details = message
        if exit_code is not None:
            details += f" (exit code {exit_code})"
        if output:
            details += f"\nTool output:\n{output}"
        if tree:
            details += f"\nExtracted contents:\n{tree}"
        super().__init__(details)


class SpawnError(BrowserError):
    """Raised when the browser process cannot be started."""

    def __init__(self, executable: Path, cause: OSError):
        self.executable = executable
        self.cause = cause
        self.kind, self.hint = classify_spawn_error(cause)
        super().__init__(f"Failed to start {executable} [{self.kind}]: {cause}\n{self.hint}")


def classify_spawn_error(exc: OSError):
    """Map an OSError from process creation to ``(kind, remediation hint)``."""
    code = exc.errno
    if isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
        return "ENOENT", "The browser executable was removed after it was located. Restart the application to re-extract it."
    if isinstance(exc, PermissionError) or code == errno.EACCES:
        return "EACCES", "The browser executable is not executable. Check file permissions (chmod +x) or antivirus quarantine."
    return "OTHER", "Check the debug log for details."


@dataclass(frozen=True)
class CleanupWarning:
    """A sensitive item that could not be removed. Logged, never raised."""

    path: Path
    reason: str
