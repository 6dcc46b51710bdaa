"""
Bundled browser executable lookup.

Candidates are checked in a fixed order; the first existing regular file
wins. Packaged locations (resources directory of a frozen build) come before
development locations (repository checkout), and ready-to-run layouts come
before binaries previously unpacked from an archive. When nothing matches,
the archive extractor is asked to unpack one.

System-wide browser installations are never considered.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from core.logging import get_logger
from core.paths import get_dev_root, get_resources_root

from .exceptions import BrowserNotFoundError, ExtractionError, ToolMissingError
from .extraction import find_executable
from .flavors import BRAVE, BUNDLE_DIR, BrowserFlavor, platform_key

if TYPE_CHECKING:
    from .extraction import ArchiveExtractor

LOGGER = get_logger("browser.locator")


class Provenance(str, Enum):
    """Where a candidate path comes from."""

    FORCED = "forced"
    PACKAGED_PRIMARY = "packaged-primary"
    PACKAGED_FALLBACK = "packaged-fallback"
    DEV_PRIMARY = "dev-primary"
    DEV_FALLBACK = "dev-fallback"
    PACKAGED_EXTRACTED = "packaged-extracted"
    DEV_EXTRACTED = "dev-extracted"


@dataclass(frozen=True)
class CandidatePath:
    path: Path
    provenance: Provenance


class ExecutableLocator:
    """Resolve the bundled browser binary, extracting it from an archive if needed."""

    def __init__(
        self,
        flavor: BrowserFlavor = BRAVE,
        *,
        packaged_root: Optional[Path] = None,
        dev_root: Optional[Path] = None,
        forced_path: Optional[Path] = None,
        extractor: Optional["ArchiveExtractor"] = None,
        platform: Optional[str] = None,
        max_depth: int = 4,
    ) -> None:
        self.flavor = flavor
        self.packaged_root = packaged_root if packaged_root is not None else get_resources_root()
        self.dev_root = dev_root if dev_root is not None else get_dev_root()
        self.forced_path = forced_path
        self.extractor = extractor
        self.platform_key = platform_key(platform)
        self.max_depth = max_depth

    # ------------------------------------------------------------------
    # Candidate list
    # ------------------------------------------------------------------

    def _roots(self):
        roots = []
        if self.packaged_root is not None:
            roots.append(("packaged", self.packaged_root / BUNDLE_DIR))
        roots.append(("dev", self.dev_root / BUNDLE_DIR))
        return roots

    def candidates(self) -> List[CandidatePath]:
        """Fixed-order list of direct executable locations (forced path first)."""
        result: List[CandidatePath] = []
        if self.forced_path is not None:
            result.append(CandidatePath(Path(self.forced_path), Provenance.FORCED))
        if not self.flavor.supports(self.platform_key):
            return result
        primary = self.flavor.primary.get(self.platform_key, ())
        fallback = self.flavor.fallback.get(self.platform_key, ())
        for label, bundle_root in self._roots():
            if primary:
                result.append(CandidatePath(bundle_root.joinpath(*primary), Provenance(f"{label}-primary")))
            if fallback:
                result.append(CandidatePath(bundle_root.joinpath(*fallback), Provenance(f"{label}-fallback")))
        return result

    def extracted_dirs(self) -> List[CandidatePath]:
        result: List[CandidatePath] = []
        for label, bundle_root in self._roots():
            for directory in self.flavor.extracted_dirs(bundle_root):
                result.append(CandidatePath(directory, Provenance(f"{label}-extracted")))
        return result

    def archive_dirs(self) -> List[Path]:
        dirs: List[Path] = []
        for _label, bundle_root in self._roots():
            dirs.extend(self.flavor.archive_dirs(bundle_root))
        return dirs

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @staticmethod
    def _check(candidate: CandidatePath) -> bool:
        try:
            exists = candidate.path.exists()
            is_file = exists and candidate.path.is_file()
        except OSError as exc:
            LOGGER.debug("  [%s] %s -> error: %s", candidate.provenance.value, candidate.path, exc)
            return False
        LOGGER.debug(
            "  [%s] %s -> %s",
            candidate.provenance.value,
            candidate.path,
            "found" if is_file else ("not a file" if exists else "missing"),
        )
        return is_file

    def find_existing(self) -> Optional[CandidatePath]:
        """Return the first ready-to-run binary without extracting anything."""
        LOGGER.info("Looking for bundled %s browser", self.flavor.display_name)

        if self.forced_path is not None:
            forced = CandidatePath(Path(self.forced_path), Provenance.FORCED)
            if self._check(forced):
                LOGGER.info("Using forced browser path: %s", forced.path)
                return forced
            LOGGER.warning("Forced browser path does not exist, ignoring: %s", forced.path)

        for candidate in self.candidates():
            if candidate.provenance is Provenance.FORCED:
                continue
            if self._check(candidate):
                LOGGER.info("Bundled browser found (%s): %s", candidate.provenance.value, candidate.path)
                return candidate

        exe_name = self.flavor.executable_name(self.platform_key)
        for directory in self.extracted_dirs():
            if not directory.path.is_dir():
                LOGGER.debug("  [%s] %s -> missing", directory.provenance.value, directory.path)
                continue
            found = find_executable(directory.path, exe_name, self.max_depth)
            LOGGER.debug("  [%s] %s -> %s", directory.provenance.value, directory.path, found or "no executable")
            if found:
                LOGGER.info("Previously extracted browser found: %s", found)
                return CandidatePath(found, directory.provenance)
        return None

    def locate(self) -> Path:
        """
        Resolve the browser executable.

        Returns:
            Path to an existing executable file

        Raises:
            BrowserNotFoundError: nothing bundled and no archive could be
                unpacked; a failed extraction is chained as ``__cause__``
        """
        found = self.find_existing()
        if found is not None:
            return found.path
        return self.extract_bundled()

    def extract_bundled(self) -> Path:
        """
        Unpack the bundled archive after ``find_existing`` came up empty.

        ``ToolMissingError`` and ``ExtractionError`` are wrapped in
        ``BrowserNotFoundError`` so callers see a single failure type.
        """
        LOGGER.info(self.describe_bundle())
        checked = len(self.candidates()) + len(self.extracted_dirs())

        if self.extractor is not None and self.flavor.supports(self.platform_key):
            archive = self.extractor.find_archive(self.archive_dirs())
            if archive is not None:
                LOGGER.info("No extracted browser yet, unpacking %s", archive)
                try:
                    return self.extractor.extract(archive)
                except (ToolMissingError, ExtractionError) as exc:
                    LOGGER.error("Could not extract %s: %s", archive, exc)
                    raise BrowserNotFoundError(
                        self.flavor.display_name, checked, self.remediation(), cause=exc
                    ) from exc

        raise BrowserNotFoundError(self.flavor.display_name, checked, self.remediation())

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def remediation(self) -> str:
        bundle_root = self._roots()[0][1]
        primary = self.flavor.primary.get(self.platform_key)
        steps = [f"To bundle {self.flavor.display_name}:"]
        if primary:
            steps.append(f"  1. Copy the browser files so that {bundle_root.joinpath(*primary)} exists")
        else:
            steps.append(f"  1. {self.flavor.display_name} is not bundled for this platform")
        steps.append(
            f"  2. Or place a {self.flavor.name}*.7z archive in {bundle_root} "
            "(it is extracted automatically on first launch)"
        )
        steps.append("  3. Restart the application")
        return "\n".join(steps)

    def is_bundled(self) -> bool:
        """True when a ready-to-run (direct or previously extracted) binary exists."""
        return self.find_existing() is not None

    def describe_bundle(self) -> str:
        """One-line summary of the bundle state for the debug log."""
        ready = any(c.path.is_file() for c in self.candidates())
        if ready:
            return f"Bundled {self.flavor.display_name} detected, no separate install needed"
        has_archive = self.extractor is not None and self.extractor.find_archive(self.archive_dirs()) is not None
        if has_archive:
            return f"{self.flavor.display_name} archive detected, it will be extracted on first use if needed"
        return f"{self.flavor.display_name} not bundled yet; see {self._roots()[0][1]}"
