"""Automation strategy runner.

Each call spawns exactly one collaborator process (PowerShell or osascript),
waits for it under a hard timeout and parses the last non-empty stdout line:

    <url>|<title>|<process>      success
    ERROR|<message>|<token>      the script could not extract a URL
    NOT_BROWSER|<name>|<token>   the foreground window is not a browser

Nothing here retries. Keystroke automation mutates the clipboard and the
keyboard focus, so repeating it blindly is unsafe; falling back to another
strategy is the orchestrator's decision.
"""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
import time
from collections.abc import Generator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .classifier import classify, clean_title, looks_private
from .clipboard import ClipboardBackend, ClipboardGuard
from .config import SCRIPTS_DIR, ExtractorConfig
from .errors import ClipboardUnavailable, CollaboratorUnavailable
from .redaction import redact_url
from .types import (
    REASON_CLIPBOARD_UNAVAILABLE,
    REASON_INTERPRETER_MISSING,
    REASON_NO_SCRIPT,
    REASON_PLATFORM,
    REASON_SCRIPT_ERROR,
    BrowserInfo,
    BrowserType,
    ExtractionMethod,
    StrategyOutcome,
    WindowDescriptor,
    WindowPosition,
)

_LOGGER = logging.getLogger("browser_info.automation")

VALID_SCHEMES = frozenset({"http", "https", "file"})

# One automation process at a time, process-wide: they all share the
# clipboard and the keyboard focus.
_AUTOMATION_LOCK = threading.Lock()


@contextmanager
def automation_slot() -> Generator[None, None, None]:
    with _AUTOMATION_LOCK:
        yield


def validate_url(raw: str | None) -> str | None:
    """Return the URL if it is an http/https/file URL, else None."""
    url = (raw or "").strip()
    if not url or any(ch.isspace() for ch in url):
        return None
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    if scheme not in VALID_SCHEMES:
        return None
    if scheme in ("http", "https") and not parts.hostname:
        return None
    if scheme == "file" and not parts.path:
        return None
    return url


def last_contract_line(stdout: str) -> str:
    for line in reversed((stdout or "").splitlines()):
        cleaned = line.strip().lstrip("\ufeff")
        if cleaned:
            return cleaned
    return ""


def parse_contract_line(
    line: str,
    *,
    method: ExtractionMethod,
    window: WindowDescriptor | None = None,
    browser_type: BrowserType = BrowserType.UNKNOWN,
) -> StrategyOutcome:
    fields = (line or "").split("|")
    if len(fields) != 3:
        return StrategyOutcome.protocol_error(
            f"expected 3 pipe-delimited fields, got {len(fields)}", method=method
        )
    head, title, process = (f.strip() for f in fields)

    if head == "NOT_BROWSER":
        return StrategyOutcome.not_a_browser(title, method=method)
    if head == "ERROR":
        return StrategyOutcome.unsupported(REASON_SCRIPT_ERROR, title or process, method=method)

    url = validate_url(head)
    if url is None:
        return StrategyOutcome.protocol_error(f"unparsable url: {head[:200]!r}", method=method)

    detected = classify(process)
    if detected is BrowserType.UNKNOWN:
        detected = browser_type
    raw_title = window.title if window is not None else ""
    info = BrowserInfo(
        url=url,
        title=clean_title(title) or clean_title(raw_title),
        browser_type=detected,
        window_position=window.position if window is not None else WindowPosition(),
        is_incognito=looks_private(raw_title),
        method_used=method,
        process_id=window.process_id if window is not None else 0,
    )
    return StrategyOutcome.success(info, method=method)


def _popen_kwargs() -> dict[str, Any]:
    if sys.platform == "win32":
        return {"creationflags": getattr(subprocess, "CREATE_NO_WINDOW", 0)}
    return {}


class AutomationRunner:
    def __init__(self, timeout: float = 2.0) -> None:
        self.timeout = float(timeout)

    def run(
        self,
        command: list[str],
        *,
        method: ExtractionMethod,
        window: WindowDescriptor | None = None,
        browser_type: BrowserType = BrowserType.UNKNOWN,
    ) -> StrategyOutcome:
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **_popen_kwargs(),
            )
        except OSError as exc:
            return StrategyOutcome.unsupported(REASON_INTERPRETER_MISSING, str(exc), method=method)

        try:
            out, err = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            with suppress(Exception):
                proc.communicate(timeout=1.0)
            _LOGGER.info("automation_timeout cmd=%s timeout=%.1fs", command[0], self.timeout)
            return StrategyOutcome.timeout(f"automation process exceeded {self.timeout:.1f}s", method=method)

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace").strip()
        if stderr:
            _LOGGER.debug("automation_stderr cmd=%s stderr=%s", command[0], stderr[-500:])

        line = last_contract_line(stdout)
        if not line:
            return StrategyOutcome.protocol_error(f"no output (exit code {proc.returncode})", method=method)

        outcome = parse_contract_line(line, method=method, window=window, browser_type=browser_type)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        if outcome.ok and outcome.info is not None:
            _LOGGER.debug("automation_ok url=%s elapsed_ms=%d", redact_url(outcome.info.url), elapsed_ms)
        return outcome


# ---------------------------------------------------------------------------
# Collaborator commands
# ---------------------------------------------------------------------------

_MAC_APP_NAMES = {
    BrowserType.CHROME: "Google Chrome",
    BrowserType.EDGE: "Microsoft Edge",
    BrowserType.BRAVE: "Brave Browser",
    BrowserType.VIVALDI: "Vivaldi",
}

_APPLESCRIPT_CLEAN = """on clean(s)
    set AppleScript's text item delimiters to "|"
    set parts to text items of s
    set AppleScript's text item delimiters to " "
    set s to parts as text
    set AppleScript's text item delimiters to ""
    return s
end clean
"""


def applescript_for(browser_type: BrowserType) -> str | None:
    """Inline AppleScript printing the contract line for `browser_type`."""
    token = browser_type.value
    if browser_type is BrowserType.SAFARI:
        body = f"""tell application "Safari"
    if (count of documents) = 0 then return "ERROR|no Safari window|{token}"
    return (URL of front document) & "|" & my clean(name of front document) & "|{token}"
end tell"""
        return _APPLESCRIPT_CLEAN + body
    app = _MAC_APP_NAMES.get(browser_type)
    if app is None:
        return None
    body = f"""tell application "{app}"
    if (count of windows) = 0 then return "ERROR|no {app} window|{token}"
    set t to active tab of front window
    return (URL of t) & "|" & my clean(title of t) & "|{token}"
end tell"""
    return _APPLESCRIPT_CLEAN + body


def _powershell_file(config: ExtractorConfig, script: str) -> list[str]:
    return [config.powershell, "-ExecutionPolicy", "Bypass", "-NoProfile", "-NonInteractive", "-File", script]


def native_command(config: ExtractorConfig, platform: str | None = None) -> list[str]:
    """Keystroke-simulation collaborator for the current platform.

    Raises CollaboratorUnavailable when no script exists for the platform.
    """
    platform = platform or sys.platform
    if platform == "win32":
        script = config.native_script or str(SCRIPTS_DIR / "windows_get_url.ps1")
        return _powershell_file(config, _require_script(script))
    if platform == "darwin":
        script = config.native_script or str(SCRIPTS_DIR / "macos_keystroke_get_url.applescript")
        return [config.osascript, _require_script(script)]
    raise CollaboratorUnavailable(REASON_PLATFORM, f"no keystroke automation for platform {platform}")


def platform_command(
    config: ExtractorConfig, browser_type: BrowserType, platform: str | None = None
) -> list[str]:
    """Accessibility/AppleScript collaborator. Never touches the clipboard."""
    platform = platform or sys.platform
    if platform == "win32":
        script = config.platform_script or str(SCRIPTS_DIR / "windows_uia_get_url.ps1")
        return _powershell_file(config, _require_script(script))
    if platform == "darwin":
        if config.platform_script:
            return [config.osascript, _require_script(config.platform_script)]
        source = applescript_for(browser_type)
        if source is None:
            raise CollaboratorUnavailable(
                REASON_NO_SCRIPT, f"{browser_type.display_name} has no AppleScript URL support"
            )
        return [config.osascript, "-e", source]
    raise CollaboratorUnavailable(REASON_PLATFORM, f"no platform script for platform {platform}")


def _require_script(path: str) -> str:
    if not Path(path).is_file():
        raise CollaboratorUnavailable(REASON_NO_SCRIPT, f"script not found: {path}")
    return path


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class NativeAutomationStrategy:
    """Keystroke automation (focus address bar, copy) under a clipboard guard."""

    method = ExtractionMethod.NATIVE_AUTOMATION

    def __init__(
        self,
        config: ExtractorConfig,
        *,
        runner: AutomationRunner | None = None,
        clipboard: ClipboardBackend | None = None,
        platform: str | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or AutomationRunner(timeout=config.automation_timeout)
        self.clipboard = clipboard
        self.platform = platform

    def extract(self, window: WindowDescriptor, browser_type: BrowserType) -> StrategyOutcome:
        try:
            command = native_command(self.config, self.platform)
        except CollaboratorUnavailable as exc:
            return StrategyOutcome.unsupported(exc.reason, str(exc), method=self.method)

        with automation_slot():
            try:
                with ClipboardGuard(self.clipboard):
                    return self.runner.run(command, method=self.method, window=window, browser_type=browser_type)
            except ClipboardUnavailable as exc:
                return StrategyOutcome.unsupported(REASON_CLIPBOARD_UNAVAILABLE, str(exc), method=self.method)


class PlatformScriptStrategy:
    """UI Automation (Windows) or AppleScript (macOS) address-bar query."""

    method = ExtractionMethod.PLATFORM_SCRIPT

    def __init__(
        self,
        config: ExtractorConfig,
        *,
        runner: AutomationRunner | None = None,
        platform: str | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or AutomationRunner(timeout=config.automation_timeout)
        self.platform = platform

    def extract(self, window: WindowDescriptor, browser_type: BrowserType) -> StrategyOutcome:
        try:
            command = platform_command(self.config, browser_type, self.platform)
        except CollaboratorUnavailable as exc:
            return StrategyOutcome.unsupported(exc.reason, str(exc), method=self.method)

        with automation_slot():
            return self.runner.run(command, method=self.method, window=window, browser_type=browser_type)


__all__ = [
    "VALID_SCHEMES",
    "AutomationRunner",
    "NativeAutomationStrategy",
    "PlatformScriptStrategy",
    "applescript_for",
    "automation_slot",
    "last_contract_line",
    "native_command",
    "parse_contract_line",
    "platform_command",
    "validate_url",
]
