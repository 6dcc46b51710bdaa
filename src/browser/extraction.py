"""
Unpack a bundled browser from a ``.7z`` archive with the external 7-Zip tool.

The archive ships next to the application (``bundled-browsers/*.7z``, name
containing the browser name). It is unpacked once into
``<archive dir>/<flavor>-extracted`` and the executable is searched for
recursively, since installer layouts nest the binary a few levels deep.
"""

from __future__ import annotations

import os
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from core.logging import get_logger
from core.tool_discovery import SEVEN_ZIP, ExternalToolResolver

from .exceptions import ExtractionError, ToolMissingError
from .flavors import BRAVE, BrowserFlavor, platform_key

LOGGER = get_logger("browser.extraction")

ARCHIVE_SUFFIX = ".7z"
OUTPUT_TAIL_LINES = 20

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass(frozen=True)
class ExtractionJob:
    """A single archive extraction request."""

    archive_path: Path
    target_directory: Path
    tool_command: Path

    def command(self) -> List[str]:
        return [
            str(self.tool_command),
            "x",
            str(self.archive_path),
            f"-o{self.target_directory}",
            "-y",
        ]


def find_executable(root: Path, executable_name: str, max_depth: int = 4) -> Optional[Path]:
    """
    Breadth-first search for ``executable_name`` (case-insensitive) below ``root``.

    Files in a directory are checked before its sub-directories, so the
    shallowest match wins. ``max_depth`` counts directory levels below ``root``.
    """
    target = executable_name.lower()
    level: List[Path] = [root]
    for _depth in range(max_depth + 1):
        next_level: List[Path] = []
        for directory in level:
            try:
                entries = sorted(directory.iterdir(), key=lambda p: p.name)
            except OSError:
                continue
            for entry in entries:
                if entry.name.lower() == target and entry.is_file():
                    return entry
            next_level.extend(entry for entry in entries if entry.is_dir() and not entry.is_symlink())
        if not next_level:
            break
        level = next_level
    return None


def directory_tree(root: Path, max_depth: int = 3, max_entries: int = 200) -> str:
    """Indented listing of ``root`` for error messages."""
    lines: List[str] = []

    def walk(directory: Path, depth: int) -> None:
        if len(lines) >= max_entries:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        except OSError as exc:
            lines.append("  " * depth + f"<unreadable: {exc}>")
            return
        for entry in entries:
            if len(lines) >= max_entries:
                lines.append("  " * depth + "...")
                return
            lines.append("  " * depth + (entry.name + "/" if entry.is_dir() else entry.name))
            if entry.is_dir() and depth < max_depth:
                walk(entry, depth + 1)

    if not root.exists():
        return f"{root} (missing)"
    lines.append(f"{root}/")
    walk(root, 1)
    return "\n".join(lines)


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class ArchiveExtractor:
    """Locate and unpack the browser archive."""

    def __init__(
        self,
        flavor: BrowserFlavor = BRAVE,
        resolver: Optional[ExternalToolResolver] = None,
        *,
        platform: Optional[str] = None,
        max_depth: int = 4,
        runner: Runner = subprocess.run,
    ) -> None:
        self.flavor = flavor
        self.platform_key = platform_key(platform)
        self.resolver = resolver or ExternalToolResolver()
        self.max_depth = max_depth
        self._run = runner

    def find_archive(self, directories: Iterable[Path]) -> Optional[Path]:
        """First ``*.7z`` whose name contains the flavor name, scanning ``directories`` in order."""
        needle = self.flavor.name.lower()
        for directory in directories:
            try:
                if not directory.is_dir():
                    continue
                names = sorted(os.listdir(directory))
            except OSError:
                continue
            for name in names:
                lowered = name.lower()
                if lowered.endswith(ARCHIVE_SUFFIX) and needle in lowered and (directory / name).is_file():
                    archive = directory / name
                    LOGGER.info("%s archive found: %s", self.flavor.display_name, archive)
                    return archive
        return None

    def target_directory(self, archive: Path) -> Path:
        return archive.parent / f"{self.flavor.name}-extracted"

    def _resolve_tool(self) -> Path:
        info = self.resolver.find(SEVEN_ZIP)
        if not info.available:
            raise ToolMissingError(SEVEN_ZIP, self.resolver.install_hint(SEVEN_ZIP))
        return info.path  # type: ignore[return-value]

    def prepare(self, archive: Path) -> ExtractionJob:
        tool = self._resolve_tool()
        return ExtractionJob(archive_path=archive, target_directory=self.target_directory(archive), tool_command=tool)

    def extract(self, archive: Path) -> Path:
        """
        Unpack ``archive`` and return the browser executable inside it.

        Raises:
            ToolMissingError: 7-Zip is not installed
            ExtractionError: the tool failed or no executable was produced
        """
        job = self.prepare(archive)
        return self.run(job)

    def run(self, job: ExtractionJob) -> Path:
        job.target_directory.mkdir(parents=True, exist_ok=True)
        cmd = job.command()
        LOGGER.info("Extracting %s with: %s", job.archive_path.name, " ".join(cmd))
        try:
            result = self._run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            # PATH changed between lookup and use.
            raise ToolMissingError(SEVEN_ZIP, self.resolver.install_hint(SEVEN_ZIP)) from exc
        except OSError as exc:
            raise ExtractionError(f"Could not run {job.tool_command}: {exc}", archive=job.archive_path) from exc

        output_tail = _tail(result.stdout or "", OUTPUT_TAIL_LINES)
        if result.returncode != 0:
            raise ExtractionError(
                f"Extraction of {job.archive_path.name} failed",
                archive=job.archive_path,
                exit_code=result.returncode,
                output=output_tail,
                tree=directory_tree(job.target_directory),
            )

        exe_name = self.flavor.executable_name(self.platform_key)
        executable = find_executable(job.target_directory, exe_name, self.max_depth)
        if executable is None:
            raise ExtractionError(
                f"No {exe_name} found after extracting {job.archive_path.name}",
                archive=job.archive_path,
                exit_code=result.returncode,
                tree=directory_tree(job.target_directory),
            )

        if self.platform_key == "posix":
            try:
                make_executable(executable)
            except OSError as exc:
                LOGGER.warning("Could not set executable bit on %s: %s", executable, exc)

        LOGGER.info("%s extracted: %s", self.flavor.display_name, executable)
        return executable


def _tail(text: str, lines: int) -> str:
    parts: Sequence[str] = text.strip().splitlines()
    return "\n".join(parts[-lines:])
