"""
Bundled browser launcher.

``BrowserController.launch`` runs locate -> (extract) -> profile ->
(transfer) -> spawn strictly in sequence and reports success as a boolean:
success means "process started", not "page loaded". Session state lives in
an immutable ``LaunchSession`` that is replaced on every transition.
"""

from __future__ import annotations

import os
import subprocess
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.config import BrowserConfig, ProfileConfig, TransferConfig
from core.logging import get_logger

from .cleanup import CleanupReport, CleanupSweeper
from .exceptions import BrowserError, SpawnError
from .extraction import ArchiveExtractor
from .flavors import get_flavor, platform_key
from .locator import ExecutableLocator
from .profile import ProfileManager
from .transfer import SessionTransferBuilder

LOGGER = get_logger("browser.launcher")

WIDEVINE_DIRS = ("widevine_cdm", "WidevineCdm")
WIDEVINE_LIBS = {
    "windows": ("win_x64", "widevinecdm.dll"),
    "posix": ("linux_x64", "libwidevinecdm.so"),
}
WIDEVINE_SYSTEM_PATHS = {
    "windows": (
        r"C:\Program Files\BraveSoftware\Brave-Browser\Application\widevine_cdm\_platform_specific\win_x64\widevinecdm.dll",
        r"C:\Program Files (x86)\BraveSoftware\Brave-Browser\Application\widevine_cdm\_platform_specific\win_x64\widevinecdm.dll",
    ),
    "posix": (
        "/opt/google/chrome/WidevineCdm/_platform_specific/linux_x64/libwidevinecdm.so",
        "/usr/lib/chromium-browser/libwidevinecdm.so",
    ),
}

# Background throttling must stay off: video keeps playing when unfocused.
PLUGIN_FLAGS = (
    "--enable-widevine-cdm",
    "--enable-plugins",
    "--enable-npapi",
    "--allow-outdated-plugins",
    "--always-authorize-plugins",
    "--disable-plugin-power-saver",
    "--enable-plugin-installation",
)
APP_WINDOW_FLAGS = (
    "--disable-features=VizDisplayCompositor",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
    "--disable-features=TranslateUI,BlinkGenPropertyTrees",
    "--disable-plugins-discovery",
    "--hide-scrollbars",
)
KIOSK_FLAGS = (
    "--disable-new-tab-first-run",
    "--disable-default-apps",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-translate",
    "--disable-background-mode",
    "--disable-add-to-shelf",
    "--disable-first-run-ui",
)

Popen = Callable[..., Any]


class SessionState(str, Enum):
    IDLE = "idle"
    LOCATING = "locating"
    EXTRACTING = "extracting"
    PROFILING = "profiling"
    TRANSFERRING = "transferring"
    SPAWNING = "spawning"
    ACTIVE = "active"
    CLOSING = "closing"


@dataclass(frozen=True)
class LaunchSession:
    """Snapshot of one launch. Transitions produce a new record."""

    state: SessionState = SessionState.IDLE
    pid: Optional[int] = None
    process: Any = field(default=None, repr=False, compare=False)
    is_active: bool = False
    profile_path: Optional[Path] = None
    extension_path: Optional[Path] = None
    target_url: Optional[str] = None
    start_url: Optional[str] = None
    args: Tuple[str, ...] = ()

    def transition(self, state: SessionState, **changes: Any) -> "LaunchSession":
        return replace(self, state=state, **changes)


_profile_locks: Dict[str, threading.Lock] = {}
_profile_locks_guard = threading.Lock()


def profile_lock(profile_path: Path) -> threading.Lock:
    """Process-wide lock serializing work on one profile directory."""
    key = os.path.normcase(os.path.abspath(str(profile_path)))
    with _profile_locks_guard:
        lock = _profile_locks.get(key)
        if lock is None:
            lock = _profile_locks[key] = threading.Lock()
        return lock


def widevine_candidates(browser_path: Path, platform: Optional[str] = None) -> List[Path]:
    key = platform_key(platform)
    arch, lib = WIDEVINE_LIBS[key]
    browser_dir = Path(browser_path).parent
    candidates = [browser_dir / name / "_platform_specific" / arch / lib for name in WIDEVINE_DIRS]
    candidates.extend(Path(p) for p in WIDEVINE_SYSTEM_PATHS[key])
    return candidates


def get_widevine_path(browser_path: Path, platform: Optional[str] = None) -> str:
    """First existing CDM library next to the browser, else the platform default."""
    key = platform_key(platform)
    for candidate in widevine_candidates(browser_path, platform):
        if candidate.exists():
            LOGGER.info("Widevine CDM found: %s", candidate)
            return str(candidate)
    default = WIDEVINE_SYSTEM_PATHS[key][0]
    LOGGER.info("Widevine CDM not found next to the browser, using default path %s", default)
    return default


def build_args(
    browser_path: Path,
    profile_path: Path,
    start_url: str,
    extension_path: Optional[Path] = None,
    *,
    browser_config: Optional[BrowserConfig] = None,
    platform: Optional[str] = None,
) -> List[str]:
    """Command-line flags for an app-mode window on the persistent profile."""
    cfg = browser_config or BrowserConfig()
    width, height = cfg.window_size
    left, top = cfg.window_position
    args = [
        f"--user-data-dir={profile_path}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-features=TranslateUI",
        "--allow-running-insecure-content",
        f"--widevine-cdm-path={get_widevine_path(browser_path, platform)}",
        f"--widevine-cdm-version={cfg.widevine_cdm_version}",
        *PLUGIN_FLAGS,
        f"--app={start_url}",
        *APP_WINDOW_FLAGS,
        f"--window-size={width},{height}",
        f"--window-position={left},{top}",
        *KIOSK_FLAGS,
    ]
    if extension_path is not None:
        args.append(f"--load-extension={extension_path}")
    return args


class BrowserController:
    """
    Owns at most one browser process at a time.

    ``launch`` never raises; failures are logged, kept in ``last_error`` and
    reported as ``False``. A launch while a session is in progress or active
    is refused.
    """

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        transfer_config: Optional[TransferConfig] = None,
        profile_config: Optional[ProfileConfig] = None,
        *,
        locator: Optional[ExecutableLocator] = None,
        profile_manager: Optional[ProfileManager] = None,
        transfer_builder: Optional[SessionTransferBuilder] = None,
        sweeper: Optional[CleanupSweeper] = None,
        popen: Popen = subprocess.Popen,
        platform: Optional[str] = None,
        watch: bool = True,
    ) -> None:
        self.browser_config = browser_config or BrowserConfig()
        self.transfer_config = transfer_config or TransferConfig()
        self.profile_config = profile_config or ProfileConfig()
        self.platform = platform
        self.platform_key = platform_key(platform)

        if locator is None:
            flavor = get_flavor(self.browser_config.flavor)
            extractor = ArchiveExtractor(flavor, platform=platform, max_depth=self.browser_config.extraction_depth)
            locator = ExecutableLocator(
                flavor,
                forced_path=self.browser_config.forced_path,
                extractor=extractor,
                platform=platform,
                max_depth=self.browser_config.extraction_depth,
            )
        self.locator = locator
        self.profile_manager = profile_manager or ProfileManager(
            self.profile_config.app_name,
            self.profile_config.profile_folder,
            self.transfer_config.target_host,
        )
        self.transfer_builder = transfer_builder or SessionTransferBuilder(
            self.transfer_config.target_host,
            freshness_window_s=self.transfer_config.freshness_window_s,
            safety_timeout_ms=self.transfer_config.safety_timeout_ms,
            redirect_countdown_s=self.transfer_config.redirect_countdown_s,
            app_name=self.profile_config.app_name,
        )
        self.sweeper = sweeper or CleanupSweeper()
        self._popen = popen
        self._watch = watch

        self._state_lock = threading.Lock()
        self._session = LaunchSession()
        self._watcher: Optional[threading.Thread] = None
        self.last_error: Optional[str] = None
        self.last_cleanup: Optional[CleanupReport] = None

    @classmethod
    def from_config(cls, config, **kwargs: Any) -> "BrowserController":
        return cls(config.browser, config.transfer, config.profile, **kwargs)

    @property
    def session(self) -> LaunchSession:
        return self._session

    def _transition(self, state: SessionState, **changes: Any) -> LaunchSession:
        with self._state_lock:
            previous = self._session.state
            self._session = self._session.transition(state, **changes)
            session = self._session
        LOGGER.debug("Session %s -> %s", previous.value, state.value)
        return session

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    def launch(self, url: Optional[str] = None, cookies: Optional[Iterable[Any]] = None) -> bool:
        """Open ``url`` in the bundled browser, transferring ``cookies`` first if given."""
        target_url = url or self.transfer_config.default_url
        with self._state_lock:
            if self._session.state is not SessionState.IDLE:
                state = self._session.state
                message = f"A browser session is already {state.value}"
                self.last_error = message
                LOGGER.warning("Launch refused: %s", message)
                return False
            self._session = LaunchSession(
                state=SessionState.LOCATING,
                profile_path=self._session.profile_path,
                target_url=target_url,
            )
        self.last_error = None
        cookie_list = list(cookies) if cookies else []
        LOGGER.info("Launching browser for %s (%d cookies)", target_url, len(cookie_list))

        try:
            process = self._prepare_and_spawn(target_url, cookie_list)
        except BrowserError as exc:
            LOGGER.error("Could not open course: %s", exc)
            self._fail(exc)
            return False
        except Exception as exc:
            LOGGER.exception("Unexpected error while launching browser")
            self._fail(exc)
            return False

        if self._watch:
            self._start_watcher(process)
        return True

    def _fail(self, exc: Exception) -> None:
        self.last_error = str(exc)
        with self._state_lock:
            self._session = LaunchSession(profile_path=self._session.profile_path)

    def _prepare_and_spawn(self, target_url: str, cookies: List[Any]):
        with profile_lock(self.profile_manager.primary_path):
            browser_path = self._locate()

            self._transition(SessionState.PROFILING)
            profile_path = self.profile_manager.get_or_create_profile()
            profile = self.profile_manager.profile
            self.profile_manager.log_first_run_notice(profile.is_first_run if profile else False)

            extension_path: Optional[Path] = None
            start_url = target_url
            if cookies:
                self._transition(SessionState.TRANSFERRING, profile_path=profile_path)
                artifacts = self.transfer_builder.build(cookies, profile_path, target_url)
                extension_path = artifacts.extension_path
                start_url = artifacts.loading_page_url
                LOGGER.info("Starting on loading page %s, then %s", start_url, target_url)
            else:
                LOGGER.info("No cookies supplied, opening %s directly", target_url)

            args = build_args(
                browser_path,
                profile_path,
                start_url,
                extension_path,
                browser_config=self.browser_config,
                platform=self.platform,
            )
            self._transition(
                SessionState.SPAWNING,
                profile_path=profile_path,
                extension_path=extension_path,
                start_url=start_url,
                args=tuple(args),
            )
            process = self._spawn(browser_path, args)
            self._transition(SessionState.ACTIVE, pid=process.pid, process=process, is_active=True)
        return process

    def _locate(self) -> Path:
        found = self.locator.find_existing()
        if found is not None:
            return found.path
        self._transition(SessionState.EXTRACTING)
        return self.locator.extract_bundled()

    def _spawn(self, browser_path: Path, args: List[str]):
        kwargs: Dict[str, Any] = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
        }
        if self.platform_key == "windows":
            kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0x00000008) | getattr(
                subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200
            )
        else:
            kwargs["start_new_session"] = True

        LOGGER.info("Spawning %s with %d flags", browser_path, len(args))
        try:
            process = self._popen([str(browser_path), *args], **kwargs)
        except OSError as exc:
            error = SpawnError(browser_path, exc)
            LOGGER.error("Browser spawn failed (%s): %s", error.kind, error.hint)
            raise error from exc
        LOGGER.info("Browser started, PID %s", process.pid)
        return process

    # ------------------------------------------------------------------
    # Exit handling
    # ------------------------------------------------------------------

    def _start_watcher(self, process) -> None:
        self._watcher = threading.Thread(
            target=self._watch_process,
            args=(process,),
            name=f"browser-watch-{process.pid}",
            daemon=True,
        )
        self._watcher.start()

    def _watch_process(self, process) -> None:
        try:
            code = process.wait()
        except OSError as exc:
            LOGGER.warning("Lost track of browser process %s: %s", process.pid, exc)
            code = None
        LOGGER.info("Browser closed with code %s", code)
        self._finish(process)

    def _finish(self, process) -> Optional[CleanupReport]:
        """Run the privacy sweep once per process and return to idle."""
        with profile_lock(self.profile_manager.primary_path):
            with self._state_lock:
                session = self._session
                if session.process is not process or session.state is SessionState.IDLE:
                    return None
                self._session = session.transition(SessionState.CLOSING, is_active=False)
            report = self.sweeper.cleanup(session.profile_path, session.extension_path)
            self.last_cleanup = report
            with self._state_lock:
                self._session = LaunchSession(profile_path=session.profile_path)
        LOGGER.debug("Session closing -> idle")
        return report

    def close(self) -> bool:
        """Kill the browser without waiting for it to exit, then sweep the profile."""
        session = self._session
        if session.process is None or not session.is_active:
            LOGGER.info("No active browser to close")
            return False
        try:
            session.process.kill()
            LOGGER.info("Browser PID %s killed", session.pid)
        except OSError as exc:
            LOGGER.warning("Error killing browser PID %s: %s", session.pid, exc)
        self._finish(session.process)
        return True

    def reset_profile(self) -> bool:
        """Delete the persistent profile. Refused unless the controller is idle."""
        with profile_lock(self.profile_manager.primary_path):
            with self._state_lock:
                state = self._session.state
                if state is not SessionState.IDLE:
                    LOGGER.warning("Profile reset refused: browser session is %s", state.value)
                    return False
                removed = self.profile_manager.reset()
                self._session = replace(self._session, profile_path=None)
        return removed

    def get_status(self) -> Dict[str, Any]:
        session = self._session
        return {
            "is_active": session.is_active,
            "has_process": session.process is not None,
            "pid": session.pid,
            "state": session.state.value,
            "profile_path": str(session.profile_path) if session.profile_path else None,
            "extension_path": str(session.extension_path) if session.extension_path else None,
            "target_url": session.target_url,
        }
