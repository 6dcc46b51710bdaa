"""
Privacy sweep of the persistent profile after the browser exits.

Deletes the sensitive per-session state under ``<profile>/Default`` and the
per-launch extension directory. ``Preferences`` and ``Local State`` are never
touched: they hold the protected-content grant that must survive.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from core.logging import get_logger

from .exceptions import CleanupWarning

LOGGER = get_logger("browser.cleanup")

DEFAULT_SUBDIR = "Default"

SENSITIVE_FILES = (
    "History",
    "Cookies",
    "Web Data",
    "Login Data",
    "Top Sites",
    "Visited Links",
    "Current Session",
    "Last Session",
    "Current Tabs",
    "Last Tabs",
)

SENSITIVE_DIRS = (
    "Cache",
    "Code Cache",
    "GPUCache",
    "Session Storage",
    "Local Storage",
    "IndexedDB",
    "Service Worker",
    # chrome.storage.local of the transfer extension; its "already set" flag
    # must not outlive the cookies deleted above.
    "Local Extension Settings",
)

# SQLite rollback journals left next to the databases above.
JOURNAL_SUFFIX = "-journal"


@dataclass
class CleanupReport:
    removed: List[Path] = field(default_factory=list)
    warnings: List[CleanupWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


class CleanupSweeper:
    """Best-effort removal of transient browser data. Never raises."""

    def __init__(
        self,
        files: tuple = SENSITIVE_FILES,
        directories: tuple = SENSITIVE_DIRS,
    ) -> None:
        self.files = files
        self.directories = directories

    def cleanup(self, profile_path: Optional[Path], extension_path: Optional[Path] = None) -> CleanupReport:
        report = CleanupReport()
        if profile_path is not None:
            LOGGER.info("Cleaning sensitive browser data from %s", profile_path)
            default_dir = Path(profile_path) / DEFAULT_SUBDIR
            for name in self.files:
                self._remove_file(default_dir / name, report)
                self._remove_file(default_dir / f"{name}{JOURNAL_SUFFIX}", report)
            for name in self.directories:
                self._remove_dir(default_dir / name, report)

        if extension_path is not None:
            self._remove_dir(Path(extension_path), report)

        LOGGER.info(
            "Cleanup finished: %d removed, %d warnings (preferences preserved)",
            len(report.removed),
            len(report.warnings),
        )
        return report

    def _remove_file(self, path: Path, report: CleanupReport) -> None:
        if not path.exists():
            return
        try:
            os.unlink(path)
        except OSError as exc:
            self._warn(path, exc, report)
            return
        LOGGER.info("Deleted: %s", path)
        report.removed.append(path)

    def _remove_dir(self, path: Path, report: CleanupReport) -> None:
        if not path.exists():
            return
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                os.unlink(path)
        except OSError as exc:
            self._warn(path, exc, report)
            return
        LOGGER.info("Deleted directory: %s", path)
        report.removed.append(path)

    @staticmethod
    def _warn(path: Path, exc: OSError, report: CleanupReport) -> None:
        warning = CleanupWarning(path=path, reason=str(exc))
        LOGGER.warning("Could not delete %s: %s", path, exc)
        report.warnings.append(warning)
