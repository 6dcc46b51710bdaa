"""
Persistent browser profile management.

The profile lives under the app-data root (not the temp directory) so the
protected-content (Widevine) grant survives restarts. Everything transient
is cleared on exit; ``site_settings`` is the one thing kept.
"""

from __future__ import annotations

import json
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from core.logging import get_logger
from core.paths import APP_NAME, get_app_data_root

LOGGER = get_logger("browser.profile")

DEFAULT_PROFILE_FOLDER = "BraveProfile"
PREFERENCES_RELATIVE = Path("Default") / "Preferences"
LOCAL_STATE_NAME = "Local State"


@dataclass(frozen=True)
class BrowserProfile:
    profile_path: Path
    is_first_run: bool
    preferences_written: bool


def build_preferences(target_host: str = "udemy.com", profile_name: str = f"{APP_NAME} Learning Profile") -> Dict[str, Any]:
    """Seed preferences: keep plugin/site grants, clear everything else on exit."""
    origin = f"https://www.{target_host},*"
    return {
        "profile": {
            "name": profile_name,
            "is_supervised": False,
            "content_settings": {
                "exceptions": {
                    "plugins": {
                        origin: {"setting": 1},
                    },
                },
            },
        },
        "browser": {
            "clear_data_on_exit": True,
            "clear_plugins_data_on_exit": False,
        },
        "plugins": {
            "always_authorize": True,
            "plugins_list": [
                {"enabled": True, "name": "Widevine Content Decryption Module"},
            ],
        },
        "security": {
            "disable_password_manager": True,
            "disable_autofill": True,
            "disable_bookmark_sync": True,
        },
        "privacy": {
            "clear_on_exit": {
                "cookies": True,
                "cache": True,
                "browsing_history": True,
                "download_history": True,
                "form_data": True,
                "passwords": True,
                "site_settings": False,
            },
        },
    }


def preferences_path(profile_path: Path) -> Path:
    return profile_path / PREFERENCES_RELATIVE


def is_first_run(profile_path: Path) -> bool:
    """True iff neither ``Default/Preferences`` nor ``Local State`` exists yet."""
    return not preferences_path(profile_path).exists() and not (profile_path / LOCAL_STATE_NAME).exists()


class ProfileManager:
    """Create, reuse and reset the persistent profile directory."""

    def __init__(
        self,
        app_name: str = APP_NAME,
        profile_folder: str = DEFAULT_PROFILE_FOLDER,
        target_host: str = "udemy.com",
        *,
        app_data_root: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.app_name = app_name
        self.profile_folder = profile_folder
        self.target_host = target_host
        self.app_data_root = app_data_root if app_data_root is not None else get_app_data_root(environ)
        self.profile_path: Optional[Path] = None
        self._profile: Optional[BrowserProfile] = None

    @property
    def primary_path(self) -> Path:
        return self.app_data_root / self.app_name / self.profile_folder

    @property
    def profile(self) -> Optional[BrowserProfile]:
        return self._profile

    def get_or_create_profile(self) -> Path:
        """Return the profile directory, creating and seeding it on first use."""
        path = self.primary_path
        try:
            created = not path.exists()
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            fallback = Path(tempfile.gettempdir()) / f"{self.app_name.lower()}-brave-fallback-{int(time.time() * 1000)}"
            LOGGER.warning("Cannot create persistent profile at %s (%s); using temporary profile %s", path, exc, fallback)
            fallback.mkdir(parents=True, exist_ok=True)
            path, created = fallback, True

        first_run = is_first_run(path)
        written = False
        if created:
            LOGGER.info("Persistent profile created: %s", path)
            written = self.seed_preferences(path)
        else:
            LOGGER.info("Using existing persistent profile: %s", path)

        self.profile_path = path
        self._profile = BrowserProfile(profile_path=path, is_first_run=first_run, preferences_written=written)
        return path

    def seed_preferences(self, profile_path: Path) -> bool:
        prefs = preferences_path(profile_path)
        try:
            prefs.parent.mkdir(parents=True, exist_ok=True)
            prefs.write_text(
                json.dumps(build_preferences(self.target_host, f"{self.app_name} Learning Profile"), indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            LOGGER.error("Failed to write profile preferences %s: %s", prefs, exc)
            return False
        LOGGER.info("Profile preferences seeded: %s", prefs)
        return True

    def is_first_run(self, profile_path: Optional[Path] = None) -> bool:
        path = profile_path or self.profile_path or self.primary_path
        return is_first_run(path)

    def log_first_run_notice(self, first_run: bool) -> None:
        """One-time onboarding text about the protected-content prompt."""
        if first_run:
            LOGGER.info(
                "First launch with this profile: when the first video plays the browser may ask to "
                "install and enable the Widevine content protection plugin. Accept once; the grant "
                "is kept for future sessions."
            )
        else:
            LOGGER.info("Existing profile, Widevine should already be enabled")

    def reset(self) -> bool:
        """Delete the whole profile directory; the next launch recreates it."""
        path = self.profile_path or self.primary_path
        if not path.exists():
            LOGGER.info("No persistent profile to reset at %s", path)
            self.profile_path = None
            self._profile = None
            return False
        LOGGER.info("Resetting persistent profile %s", path)
        try:
            shutil.rmtree(path)
        except OSError as exc:
            LOGGER.error("Failed to reset profile %s: %s", path, exc)
            return False
        finally:
            self.profile_path = None
            self._profile = None
        LOGGER.info("Persistent profile removed; a new one is created on next launch")
        return True
