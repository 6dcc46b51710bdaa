"""
Session transfer artifacts: loading page and cookie-injection extension.

The extension is regenerated on every launch. Cookie data never appears in
generated script source; it is written to ``transfer.json`` inside the
extension directory and fetched by the background service worker.
"""

from __future__ import annotations

import hashlib
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.logging import get_logger

LOGGER = get_logger("browser.transfer")

LOADING_PAGE_NAME = "loading.html"
EXTENSION_DIR_NAME = "cookie-extension"
PAYLOAD_NAME = "transfer.json"
STORAGE_KEY = "udemigo_cookie_transfer"
EXTENSION_SCRIPTS = ("background.js", "content.js", "kiosk.js")


def get_templates_dir() -> Path:
    return Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class CookieRecord:
    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = True
    http_only: bool = False
    expires_at: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_domain: str = ".udemy.com") -> "CookieRecord":
        """Build from a renderer cookie dict (camelCase or snake_case keys)."""
        if not data.get("name"):
            raise ValueError("cookie without a name")
        expires = data.get("expiresAt", data.get("expirationDate", data.get("expires_at")))
        http_only = data.get("httpOnly", data.get("http_only", False))
        return cls(
            name=str(data["name"]),
            value=str(data.get("value", "")),
            domain=str(data.get("domain") or default_domain),
            path=str(data.get("path") or "/"),
            secure=bool(data.get("secure", True)),
            http_only=bool(http_only),
            expires_at=float(expires) if expires not in (None, "") else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "secure": self.secure,
            "httpOnly": self.http_only,
        }
        if self.expires_at is not None:
            data["expirationDate"] = self.expires_at
        return data


@dataclass(frozen=True)
class TransferArtifacts:
    loading_page_path: Path
    extension_path: Path
    payload_path: Path
    fingerprint: str

    @property
    def loading_page_url(self) -> str:
        return self.loading_page_path.resolve().as_uri()


def normalize_cookies(cookies: Iterable[Any], default_domain: str = ".udemy.com") -> List[CookieRecord]:
    records: List[CookieRecord] = []
    for cookie in cookies:
        if isinstance(cookie, CookieRecord):
            records.append(cookie)
        else:
            records.append(CookieRecord.from_mapping(cookie, default_domain))
    return records


def cookie_fingerprint(cookies: Sequence[CookieRecord]) -> str:
    """Order-independent digest of the cookie set (name, domain, path, value)."""
    canonical = sorted((c.name, c.domain, c.path, c.value) for c in cookies)
    return hashlib.sha256(json.dumps(canonical, separators=(",", ":")).encode("utf-8")).hexdigest()


def is_transfer_fresh(
    stored: Optional[Mapping[str, Any]],
    fingerprint: str,
    now_ms: float,
    window_ms: float,
) -> bool:
    """
    Decide whether a previous transfer can be reused.

    Python twin of ``isFresh`` in ``templates/background.js``; the two must
    change together. The stored flag must be set, carry the same cookie
    fingerprint, and be younger than the freshness window.
    """
    if not stored or not stored.get("set"):
        return False
    if stored.get("fingerprint") != fingerprint:
        return False
    timestamp = stored.get("timestamp") or 0
    return 0 <= now_ms - float(timestamp) < window_ms


def host_patterns(target_host: str) -> List[str]:
    return [f"*://*.{target_host}/*", f"*://{target_host}/*"]


def build_manifest(target_host: str, app_name: str = "Udemigo") -> Dict[str, Any]:
    """Manifest V3 for the throwaway cookie transfer extension."""
    patterns = host_patterns(target_host)
    return {
        "manifest_version": 3,
        "name": f"{app_name} Cookie Transfer",
        "version": "1.0",
        "description": "Transfers the signed-in session into this browser profile",
        "permissions": ["cookies", "storage", "activeTab", "tabs"],
        "host_permissions": patterns,
        "background": {"service_worker": "background.js"},
        "content_scripts": [
            {
                "matches": patterns,
                "js": ["content.js"],
                "run_at": "document_start",
            },
            {
                "matches": patterns,
                "js": ["kiosk.js"],
                "run_at": "document_start",
                "world": "MAIN",
            },
            {
                "matches": ["file:///*"],
                "include_globs": [f"*{LOADING_PAGE_NAME}*"],
                "js": ["content.js"],
                "run_at": "document_start",
            },
        ],
    }


class SessionTransferBuilder:
    """Render the loading page and the cookie transfer extension into a profile."""

    def __init__(
        self,
        target_host: str = "udemy.com",
        *,
        freshness_window_s: int = 3600,
        safety_timeout_ms: int = 8000,
        redirect_countdown_s: int = 3,
        app_name: str = "Udemigo",
        templates_dir: Optional[Path] = None,
    ) -> None:
        self.target_host = target_host
        self.freshness_window_s = freshness_window_s
        self.safety_timeout_ms = safety_timeout_ms
        self.redirect_countdown_s = redirect_countdown_s
        self.app_name = app_name
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or get_templates_dir())),
            autoescape=select_autoescape(["html"]),
            keep_trailing_newline=True,
        )

    def build(self, cookies: Iterable[Any], profile_path: Path, target_url: str) -> TransferArtifacts:
        records = normalize_cookies(cookies, default_domain=f".{self.target_host}")
        fingerprint = cookie_fingerprint(records)
        LOGGER.info("Preparing transfer of %d cookies (fingerprint %s)", len(records), fingerprint[:12])

        loading_page = self.write_loading_page(profile_path, len(records), target_url)
        extension_path = profile_path / EXTENSION_DIR_NAME
        payload = self.write_extension(extension_path, records, target_url, fingerprint)
        return TransferArtifacts(
            loading_page_path=loading_page,
            extension_path=extension_path,
            payload_path=payload,
            fingerprint=fingerprint,
        )

    def render_loading_page(self, total_count: int, target_url: str) -> str:
        template = self.env.get_template(LOADING_PAGE_NAME)
        return template.render(
            app_name=self.app_name,
            total_count=total_count,
            target_url=target_url,
            safety_timeout_ms=self.safety_timeout_ms,
            countdown_s=self.redirect_countdown_s,
        )

    def write_loading_page(self, profile_path: Path, total_count: int, target_url: str) -> Path:
        path = profile_path / LOADING_PAGE_NAME
        path.write_text(self.render_loading_page(total_count, target_url), encoding="utf-8")
        LOGGER.info("Loading page written: %s", path)
        return path

    def payload(self, records: Sequence[CookieRecord], target_url: str, fingerprint: str) -> Dict[str, Any]:
        return {
            "cookies": [record.to_dict() for record in records],
            "cookieUrl": f"https://www.{self.target_host}",
            "targetUrl": target_url,
            "coursePath": course_base_path(target_url),
            "targetHost": self.target_host,
            "fingerprint": fingerprint,
            "freshnessWindowMs": self.freshness_window_s * 1000,
        }

    def write_extension(
        self,
        extension_path: Path,
        records: Sequence[CookieRecord],
        target_url: str,
        fingerprint: str,
    ) -> Path:
        if extension_path.exists():
            shutil.rmtree(extension_path)
        extension_path.mkdir(parents=True)

        manifest = build_manifest(self.target_host, self.app_name)
        (extension_path / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")

        context = {
            "storage_key": STORAGE_KEY,
            "payload_name": PAYLOAD_NAME,
            "loading_page_name": LOADING_PAGE_NAME,
            "target_host": self.target_host,
        }
        for script in EXTENSION_SCRIPTS:
            rendered = self.env.get_template(script).render(**context)
            (extension_path / script).write_text(rendered, encoding="utf-8")

        payload_path = extension_path / PAYLOAD_NAME
        payload_path.write_text(
            json.dumps(self.payload(records, target_url, fingerprint), indent=2),
            encoding="utf-8",
        )
        LOGGER.info("Cookie transfer extension written: %s", extension_path)
        return payload_path


def course_base_path(url: str) -> str:
    """Path prefix shared by every page of the course behind ``url``."""
    path = urlparse(url).path or "/"
    return path.split("/learn/")[0]
