"""Bundled browser variants and their on-disk conventions."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

BUNDLE_DIR = "bundled-browsers"


@dataclass(frozen=True)
class BrowserFlavor:
    """
    File-system conventions of one bundled Chromium browser.

    ``primary`` and ``fallback`` are relative to ``bundled-browsers/`` and are
    keyed by ``"windows"`` / ``"posix"``.
    """

    name: str
    display_name: str
    executable_names: Dict[str, str]
    primary: Dict[str, Tuple[str, ...]]
    fallback: Dict[str, Tuple[str, ...]]
    platforms: FrozenSet[str] = field(default_factory=lambda: frozenset({"windows", "posix"}))

    def executable_name(self, platform_key: str) -> str:
        return self.executable_names[platform_key]

    def supports(self, platform_key: str) -> bool:
        return platform_key in self.platforms

    def extracted_dirs(self, bundle_root: Path):
        """Directories holding binaries unpacked from an archive."""
        return (
            bundle_root / self.name / f"{self.name}-extracted",
            bundle_root / f"{self.name}-extracted",
        )

    def archive_dirs(self, bundle_root: Path):
        return (bundle_root / self.name, bundle_root)


def platform_key(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    return "windows" if platform.startswith("win") else "posix"


BRAVE = BrowserFlavor(
    name="brave",
    display_name="Brave",
    executable_names={"windows": "brave.exe", "posix": "brave"},
    primary={
        "windows": ("brave", "brave", "brave", "brave.exe"),
        "posix": ("brave", "brave"),
    },
    fallback={
        "windows": ("brave", "brave.exe"),
        "posix": ("brave", "brave", "brave"),
    },
)

# The Chrome bundle only ships for Windows.
CHROME = BrowserFlavor(
    name="chrome",
    display_name="Chrome",
    executable_names={"windows": "chrome.exe", "posix": "chrome"},
    primary={"windows": ("chrome", "chrome", "chrome.exe")},
    fallback={"windows": ("chrome", "chrome.exe")},
    platforms=frozenset({"windows"}),
)

FLAVORS: Dict[str, BrowserFlavor] = {flavor.name: flavor for flavor in (BRAVE, CHROME)}


def get_flavor(name: str) -> BrowserFlavor:
    try:
        return FLAVORS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown browser flavor: {name!r} (expected one of {sorted(FLAVORS)})") from None
