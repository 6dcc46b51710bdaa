from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Callable, Dict, List, Optional, Sequence

from .logging import get_logger

LOGGER = get_logger("core.tool_discovery")

SEVEN_ZIP = "7z"

INSTALL_HINTS: Dict[str, Dict[str, str]] = {
    SEVEN_ZIP: {
        "windows": "Install 7-Zip from https://www.7-zip.org/ and restart the application.",
        "posix": (
            "Install 7-Zip:\n"
            "  Ubuntu/Debian: sudo apt install p7zip-full\n"
            "  Fedora: sudo dnf install p7zip p7zip-plugins\n"
            "  Arch: sudo pacman -S p7zip\n"
            "  macOS: brew install p7zip"
        ),
    },
}

WhichFunc = Callable[[str], Optional[str]]


@dataclass(slots=True)
class ToolInfo:
    """Description of an external tool present on the system."""

    name: str
    path: Optional[Path]
    version: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.path is not None


class ToolStrategy:
    """Per-platform way of turning a tool name into candidate executables."""

    platform_key = "posix"

    def __init__(self, which: WhichFunc = shutil.which) -> None:
        self._which = which

    def candidates(self, name: str) -> List[str]:
        raise NotImplementedError

    def resolve(self, name: str) -> Optional[Path]:
        for candidate in self.candidates(name):
            found = self._probe(candidate)
            LOGGER.debug("Probing %s candidate %s: %s", name, candidate, found or "not found")
            if found:
                return found
        return None

    def _probe(self, candidate: str) -> Optional[Path]:
        path = Path(candidate)
        if path.is_absolute() or PureWindowsPath(candidate).is_absolute():
            return path if path.is_file() else None
        found = self._which(candidate)
        return Path(found) if found else None

    def install_hint(self, name: str) -> str:
        return INSTALL_HINTS.get(name, {}).get(self.platform_key, "")


class WindowsToolStrategy(ToolStrategy):
    """Well-known install locations first, then the bare command on PATH."""

    platform_key = "windows"

    WELL_KNOWN: Dict[str, Sequence[str]] = {
        SEVEN_ZIP: (
            r"C:\Program Files\7-Zip\7z.exe",
            r"C:\Program Files (x86)\7-Zip\7z.exe",
        ),
    }

    def candidates(self, name: str) -> List[str]:
        return [*self.WELL_KNOWN.get(name, ()), f"{name}.exe", name]


class PosixToolStrategy(ToolStrategy):
    """PATH lookup only; the tool has to be installed by the package manager."""

    ALIASES: Dict[str, Sequence[str]] = {
        SEVEN_ZIP: ("7z", "7za", "7zz"),
    }

    def candidates(self, name: str) -> List[str]:
        return list(self.ALIASES.get(name, (name,)))


def default_strategy(platform: Optional[str] = None, which: WhichFunc = shutil.which) -> ToolStrategy:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsToolStrategy(which)
    return PosixToolStrategy(which)


class ExternalToolResolver:
    """
    Resolve external command-line tools through a pluggable platform strategy.

    Explicit overrides (from config) win over strategy lookup when the file exists.
    """

    def __init__(
        self,
        strategy: Optional[ToolStrategy] = None,
        overrides: Optional[Dict[str, Path]] = None,
    ) -> None:
        self.strategy = strategy or default_strategy()
        self.overrides = dict(overrides or {})

    def find(self, name: str) -> ToolInfo:
        override = self.overrides.get(name)
        if override is not None:
            if override.is_file():
                LOGGER.debug("Using override for tool %s: %s", name, override)
                return ToolInfo(name=name, path=override)
            LOGGER.warning("Override for tool %s does not exist: %s", name, override)
        path = self.strategy.resolve(name)
        if path:
            LOGGER.info("Resolved tool %s: %s", name, path)
        else:
            LOGGER.warning("Tool %s not found", name)
        return ToolInfo(name=name, path=path)

    def install_hint(self, name: str) -> str:
        return self.strategy.install_hint(name)
