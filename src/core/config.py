from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .paths import APP_NAME, get_logs_dir

FORCED_PATH_ENV = "UDEMIGO_BROWSER_PATH"


@dataclass(slots=True)
class LoggingConfig:
    """Logging configuration from config.yml."""

    level: str = "INFO"
    max_mb: int = 5
    retention: int = 5
    ring_buffer_size: int = 1000


@dataclass(slots=True)
class BrowserConfig:
    """Bundled browser lookup and launch settings."""

    flavor: str = "brave"
    forced_path: Optional[Path] = None
    extraction_depth: int = 4
    window_size: Tuple[int, int] = (1200, 800)
    window_position: Tuple[int, int] = (100, 100)
    widevine_cdm_version: str = "4.10.2710.0"


@dataclass(slots=True)
class TransferConfig:
    """Cookie transfer and loading page settings."""

    target_host: str = "udemy.com"
    default_url: str = "https://www.udemy.com"
    freshness_window_s: int = 3600
    safety_timeout_ms: int = 8000
    redirect_countdown_s: int = 3


@dataclass(slots=True)
class ProfileConfig:
    """Where the persistent browser profile lives under the app-data root."""

    app_name: str = APP_NAME
    profile_folder: str = "BraveProfile"


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration resolved from disk."""

    base_dir: Path
    logs_dir: Path
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    profile: ProfileConfig = field(default_factory=ProfileConfig)

    def to_json(self) -> str:
        """Serialize the configuration into a JSON string for diagnostics."""
        data = {
            "base_dir": str(self.base_dir),
            "logs_dir": str(self.logs_dir),
            "logging": asdict(self.logging),
            "browser": {
                **asdict(self.browser),
                "forced_path": str(self.browser.forced_path) if self.browser.forced_path else None,
            },
            "transfer": asdict(self.transfer),
            "profile": asdict(self.profile),
        }
        return json.dumps(data, indent=2, sort_keys=True)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle) or {}
        if not isinstance(content, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level.")
        return content


def _pair(value: Any, default: Tuple[int, int]) -> Tuple[int, int]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return int(value[0]), int(value[1])
    return default


def load_app_config(base_dir: Path, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load application configuration from disk, providing sensible defaults."""
    env = os.environ if environ is None else environ

    config_yaml = base_dir / "config" / "config.yml"
    config_overrides = _load_yaml(config_yaml)

    profile_cfg = config_overrides.get("profile", {})
    profile_config = ProfileConfig(
        app_name=profile_cfg.get("app_name", APP_NAME),
        profile_folder=profile_cfg.get("profile_folder", "BraveProfile"),
    )

    logging_cfg = config_overrides.get("logging", {})
    logging_config = LoggingConfig(
        level=logging_cfg.get("level", "INFO"),
        max_mb=logging_cfg.get("max_mb", 5),
        retention=logging_cfg.get("retention", 5),
        ring_buffer_size=logging_cfg.get("ring_buffer_size", 1000),
    )

    browser_cfg = config_overrides.get("browser", {})
    forced = env.get(FORCED_PATH_ENV) or browser_cfg.get("forced_path")
    defaults = BrowserConfig()
    browser_config = BrowserConfig(
        flavor=browser_cfg.get("flavor", defaults.flavor),
        forced_path=Path(forced).expanduser() if forced else None,
        extraction_depth=browser_cfg.get("extraction_depth", defaults.extraction_depth),
        window_size=_pair(browser_cfg.get("window_size"), defaults.window_size),
        window_position=_pair(browser_cfg.get("window_position"), defaults.window_position),
        widevine_cdm_version=str(browser_cfg.get("widevine_cdm_version", defaults.widevine_cdm_version)),
    )

    transfer_cfg = config_overrides.get("transfer", {})
    transfer_config = TransferConfig(
        target_host=transfer_cfg.get("target_host", "udemy.com"),
        default_url=transfer_cfg.get("default_url", "https://www.udemy.com"),
        freshness_window_s=int(transfer_cfg.get("freshness_window_s", 3600)),
        safety_timeout_ms=int(transfer_cfg.get("safety_timeout_ms", 8000)),
        redirect_countdown_s=int(transfer_cfg.get("redirect_countdown_s", 3)),
    )
    if transfer_config.safety_timeout_ms <= 0:
        raise ValueError("transfer.safety_timeout_ms must be positive")

    # Logs go to the app-data root, never beside the executable: packaged
    # installs are frequently read-only.
    logs_dir = get_logs_dir(profile_config.app_name, env)

    return AppConfig(
        base_dir=base_dir,
        logs_dir=logs_dir,
        logging=logging_config,
        browser=browser_config,
        transfer=transfer_config,
        profile=profile_config,
    )
