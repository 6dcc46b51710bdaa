"""
Bundled browser orchestration.

Usage:
    from browser import BrowserController

    controller = BrowserController.from_config(config)
    controller.launch("https://www.udemy.com/course/foo/learn/", cookies)
"""

from .cleanup import CleanupReport, CleanupSweeper
from .exceptions import (
    BrowserError,
    BrowserNotFoundError,
    CleanupWarning,
    ExtractionError,
    SpawnError,
    ToolMissingError,
)
from .extraction import ArchiveExtractor, ExtractionJob
from .flavors import BRAVE, CHROME, BrowserFlavor, get_flavor
from .launcher import BrowserController, LaunchSession, SessionState
from .locator import CandidatePath, ExecutableLocator, Provenance
from .profile import BrowserProfile, ProfileManager
from .transfer import CookieRecord, SessionTransferBuilder, TransferArtifacts

__all__ = [
    "ArchiveExtractor",
    "BRAVE",
    "BrowserController",
    "BrowserError",
    "BrowserFlavor",
    "BrowserNotFoundError",
    "BrowserProfile",
    "CHROME",
    "CandidatePath",
    "CleanupReport",
    "CleanupSweeper",
    "CleanupWarning",
    "CookieRecord",
    "ExecutableLocator",
    "ExtractionError",
    "ExtractionJob",
    "LaunchSession",
    "ProfileManager",
    "Provenance",
    "SessionState",
    "SessionTransferBuilder",
    "SpawnError",
    "ToolMissingError",
    "TransferArtifacts",
    "get_flavor",
]
