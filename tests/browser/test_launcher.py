"""End-to-end tests for BrowserController with a fake process spawner."""
from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from browser.cleanup import CleanupSweeper
from browser.launcher import (
    BrowserController,
    LaunchSession,
    SessionState,
    build_args,
    get_widevine_path,
    profile_lock,
)
from browser.locator import CandidatePath, Provenance
from browser.profile import preferences_path
from tests.fixtures.browser import bundle_path, make_file

COURSE_URL = "https://www.udemy.com/course/foo/learn/"
COOKIES = [{"name": "access_token", "value": "abc", "domain": ".udemy.com"}]


@pytest.fixture()
def browser_exe(dev_root: Path) -> Path:
    return make_file(bundle_path(dev_root, "brave", "brave"))


@pytest.fixture()
def controller_factory(locator_factory, profile_manager, fake_popen):
    def _create(**kwargs) -> BrowserController:
        kwargs.setdefault("locator", locator_factory())
        kwargs.setdefault("profile_manager", profile_manager)
        kwargs.setdefault("popen", fake_popen)
        kwargs.setdefault("platform", "linux")
        kwargs.setdefault("watch", False)
        return BrowserController(**kwargs)

    return _create


def _flags(args, prefix):
    return [a for a in args if a.startswith(prefix)]


def test_launch_with_cookies_end_to_end(controller_factory, browser_exe, fake_popen, app_data_root):
    controller = controller_factory()

    assert controller.launch(COURSE_URL, COOKIES) is True

    profile = app_data_root / "Udemigo" / "BraveProfile"
    extension = profile / "cookie-extension"
    loading_page = profile / "loading.html"
    assert profile.is_dir()
    for name in ("manifest.json", "background.js", "content.js"):
        assert (extension / name).is_file()
    assert "abc" in (extension / "transfer.json").read_text(encoding="utf-8")
    assert "const totalCount = 1;" in loading_page.read_text(encoding="utf-8")

    cmd = fake_popen.last.args
    assert cmd[0] == str(browser_exe)
    assert _flags(cmd, "--load-extension=") == [f"--load-extension={extension}"]
    assert _flags(cmd, "--app=") == [f"--app={loading_page.resolve().as_uri()}"]
    assert f"--user-data-dir={profile}" in cmd
    assert "--widevine-cdm-version=4.10.2710.0" in cmd
    assert "--disable-background-timer-throttling" in cmd
    assert "--window-size=1200,800" in cmd


def test_launch_without_cookies_opens_course_directly(controller_factory, browser_exe, fake_popen):
    controller = controller_factory()

    assert controller.launch(COURSE_URL) is True

    cmd = fake_popen.last.args
    assert _flags(cmd, "--app=") == [f"--app={COURSE_URL}"]
    assert _flags(cmd, "--load-extension=") == []
    assert controller.get_status()["extension_path"] is None


def test_default_url_used_when_none_given(controller_factory, browser_exe, fake_popen):
    controller_factory().launch(None)

    assert _flags(fake_popen.last.args, "--app=") == ["--app=https://www.udemy.com"]


def test_spawn_is_detached_with_discarded_stdio(controller_factory, browser_exe, fake_popen):
    controller_factory().launch(COURSE_URL)

    kwargs = fake_popen.last.kwargs
    assert kwargs["start_new_session"] is True
    assert kwargs["stdin"] is subprocess.DEVNULL
    assert kwargs["stdout"] is subprocess.DEVNULL
    assert kwargs["stderr"] is subprocess.DEVNULL


def test_status_after_launch(controller_factory, browser_exe, fake_popen):
    controller = controller_factory()
    controller.launch(COURSE_URL, COOKIES)

    status = controller.get_status()

    assert status["is_active"] is True
    assert status["has_process"] is True
    assert status["pid"] == fake_popen.last.pid
    assert status["state"] == "active"
    assert status["target_url"] == COURSE_URL
    assert status["extension_path"].endswith("cookie-extension")


def test_second_launch_refused_while_active(controller_factory, browser_exe, fake_popen):
    controller = controller_factory()
    assert controller.launch(COURSE_URL) is True

    assert controller.launch(COURSE_URL) is False

    assert len(fake_popen.calls) == 1
    assert "already active" in controller.last_error


def test_extraction_happens_once_across_launches(controller_factory, dev_root, seven_zip, fake_popen):
    make_file(bundle_path(dev_root, "brave-1.60.7z"), "7z")
    controller = controller_factory()

    assert controller.launch(COURSE_URL) is True
    controller.close()
    assert controller.launch(COURSE_URL) is True

    assert len(seven_zip.calls) == 1
    assert fake_popen.calls[0].args[0] == fake_popen.calls[1].args[0]


def test_close_sweeps_profile_but_keeps_preferences(controller_factory, browser_exe, fake_popen):
    controller = controller_factory()
    controller.launch(COURSE_URL, COOKIES)
    profile = Path(controller.get_status()["profile_path"])
    default = profile / "Default"
    make_file(default / "Cookies", "sqlite")
    make_file(default / "History", "sqlite")
    make_file(default / "Cache" / "data_0", "cache")
    prefs_before = preferences_path(profile).read_bytes()

    assert controller.close() is True

    assert fake_popen.last.killed is True
    assert not (default / "Cookies").exists()
    assert not (default / "History").exists()
    assert not (default / "Cache").exists()
    assert not (profile / "cookie-extension").exists()
    assert preferences_path(profile).read_bytes() == prefs_before
    status = controller.get_status()
    assert status["is_active"] is False
    assert status["state"] == "idle"
    assert controller.last_cleanup is not None


def test_close_without_session_is_noop(controller_factory):
    assert controller_factory().close() is False


def test_process_exit_triggers_cleanup_once(controller_factory, browser_exe, fake_popen):
    sweeper = MagicMock(spec=CleanupSweeper)
    controller = controller_factory(sweeper=sweeper, watch=True)
    controller.launch(COURSE_URL, COOKIES)

    fake_popen.last.finish(0)
    controller._watcher.join(timeout=5)
    controller.close()

    assert not controller._watcher.is_alive()
    sweeper.cleanup.assert_called_once()
    assert controller.session.state is SessionState.IDLE
    assert controller.launch(COURSE_URL) is True


def test_spawn_failure_returns_false(controller_factory, tmp_path):
    missing = tmp_path / "deleted" / "brave"
    locator = MagicMock()
    locator.find_existing.return_value = CandidatePath(missing, Provenance.DEV_PRIMARY)
    controller = controller_factory(locator=locator, popen=subprocess.Popen)

    assert controller.launch(COURSE_URL, COOKIES) is False

    assert "ENOENT" in controller.last_error
    assert controller.get_status()["is_active"] is False
    assert controller.session.state is SessionState.IDLE


def test_permission_error_is_classified(controller_factory, browser_exe):
    def denied(cmd, **kwargs):
        raise PermissionError(13, "Permission denied", cmd[0])

    controller = controller_factory(popen=denied)

    assert controller.launch(COURSE_URL) is False
    assert "EACCES" in controller.last_error
    assert "chmod" in controller.last_error


def test_browser_not_found_returns_false(controller_factory):
    controller = controller_factory()

    assert controller.launch(COURSE_URL) is False
    assert "not found" in controller.last_error
    assert controller.session.state is SessionState.IDLE


def test_missing_7z_reported_as_not_found(controller_factory, dev_root, locator_factory):
    from browser.extraction import ArchiveExtractor
    from browser.flavors import BRAVE
    from core.tool_discovery import ExternalToolResolver, PosixToolStrategy

    make_file(bundle_path(dev_root, "brave-1.60.7z"), "7z")
    resolver = ExternalToolResolver(PosixToolStrategy(which=lambda name: None))
    locator = locator_factory(extractor=ArchiveExtractor(BRAVE, resolver, platform="linux"))
    controller = controller_factory(locator=locator)

    assert controller.launch(COURSE_URL) is False
    assert controller.last_error.startswith("Packaged Brave browser not found")
    assert "Required tool '7z' not found" in controller.last_error
    assert controller.session.state is SessionState.IDLE


def test_bundle_scanned_once_when_extracting(controller_factory, dev_root, locator_factory, seven_zip):
    make_file(bundle_path(dev_root, "brave-1.60.7z"), "7z")
    locator = locator_factory()
    scans = []
    find_existing = locator.find_existing

    def counting_find_existing():
        scans.append(True)
        return find_existing()

    locator.find_existing = counting_find_existing
    controller = controller_factory(locator=locator)

    assert controller.launch(COURSE_URL) is True
    assert len(scans) == 1
    assert len(seven_zip.calls) == 1


def test_unexpected_error_never_escapes(controller_factory, browser_exe):
    builder = MagicMock()
    builder.build.side_effect = RuntimeError("template exploded")
    controller = controller_factory(transfer_builder=builder)

    assert controller.launch(COURSE_URL, COOKIES) is False
    assert controller.last_error == "template exploded"


def test_reset_profile_refused_while_active(controller_factory, browser_exe):
    controller = controller_factory()
    controller.launch(COURSE_URL)

    assert controller.reset_profile() is False
    controller.close()
    assert controller.reset_profile() is True
    assert controller.get_status()["profile_path"] is None


def test_reset_during_launch_keeps_live_profile(controller_factory, browser_exe, locator_factory):
    entered = threading.Event()
    release = threading.Event()
    locator = locator_factory()
    find_existing = locator.find_existing

    def slow_find_existing():
        entered.set()
        release.wait(5)
        return find_existing()

    locator.find_existing = slow_find_existing
    controller = controller_factory(locator=locator)
    results = {}

    launcher = threading.Thread(target=lambda: results.__setitem__("launch", controller.launch(COURSE_URL, COOKIES)))
    launcher.start()
    assert entered.wait(5)
    resetter = threading.Thread(target=lambda: results.__setitem__("reset", controller.reset_profile()))
    resetter.start()
    release.set()
    launcher.join(5)
    resetter.join(5)

    assert results == {"launch": True, "reset": False}
    status = controller.get_status()
    assert status["state"] == "active"
    assert status["profile_path"] is not None
    assert (Path(status["extension_path"]) / "manifest.json").is_file()

    profile = Path(status["profile_path"])
    make_file(profile / "Default" / "Cookies", "sqlite")
    controller.close()
    assert not (profile / "Default" / "Cookies").exists()
    assert preferences_path(profile).is_file()


def test_session_transitions_are_new_records():
    idle = LaunchSession()
    locating = idle.transition(SessionState.LOCATING, target_url=COURSE_URL)

    assert idle.state is SessionState.IDLE
    assert idle.target_url is None
    assert locating.state is SessionState.LOCATING
    assert locating.target_url == COURSE_URL


def test_profile_lock_shared_per_path(tmp_path):
    assert profile_lock(tmp_path / "a") is profile_lock(tmp_path / "a")
    assert profile_lock(tmp_path / "a") is not profile_lock(tmp_path / "b")


def test_widevine_found_next_to_browser(tmp_path):
    browser = make_file(tmp_path / "brave" / "brave")
    cdm = make_file(tmp_path / "brave" / "WidevineCdm" / "_platform_specific" / "linux_x64" / "libwidevinecdm.so")

    assert get_widevine_path(browser, platform="linux") == str(cdm)


def test_build_args_single_app_and_extension(tmp_path):
    args = build_args(tmp_path / "brave", tmp_path / "profile", "file:///x/loading.html", tmp_path / "ext", platform="linux")

    assert len(_flags(args, "--app=")) == 1
    assert len(_flags(args, "--load-extension=")) == 1
    assert args[0] == f"--user-data-dir={tmp_path / 'profile'}"
