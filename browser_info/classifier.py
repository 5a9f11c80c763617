"""Browser classification from process names, plus window-title helpers.

Classification is an exact, case-insensitive lookup. Partial matching is
deliberately absent: `chrome_proxy.exe` or `msedgewebview2.exe` must not be
reported as a browser.
"""

from __future__ import annotations

from .types import BrowserType

_PROCESS_NAMES: dict[str, BrowserType] = {
    # Chrome
    "chrome": BrowserType.CHROME,
    "chrome.exe": BrowserType.CHROME,
    "google chrome": BrowserType.CHROME,
    "chromium": BrowserType.CHROME,
    "chromium.exe": BrowserType.CHROME,
    "chromium-browser": BrowserType.CHROME,
    # Firefox
    "firefox": BrowserType.FIREFOX,
    "firefox.exe": BrowserType.FIREFOX,
    "firefox-bin": BrowserType.FIREFOX,
    # Edge
    "msedge": BrowserType.EDGE,
    "msedge.exe": BrowserType.EDGE,
    "microsoft edge": BrowserType.EDGE,
    # Safari
    "safari": BrowserType.SAFARI,
    # Brave
    "brave": BrowserType.BRAVE,
    "brave.exe": BrowserType.BRAVE,
    "brave browser": BrowserType.BRAVE,
    # Opera
    "opera": BrowserType.OPERA,
    "opera.exe": BrowserType.OPERA,
    # Vivaldi
    "vivaldi": BrowserType.VIVALDI,
    "vivaldi.exe": BrowserType.VIVALDI,
}

# Longest first so "Google Chrome (Incognito)" wins over "Google Chrome".
_TITLE_SUFFIXES = (
    " - Google Chrome (Incognito)",
    " - Google Chrome",
    " - Chromium",
    " — Mozilla Firefox Private Browsing",
    " - Mozilla Firefox Private Browsing",
    " — Mozilla Firefox",
    " - Mozilla Firefox",
    " - [InPrivate] - Microsoft\u200b Edge",
    " - [InPrivate] - Microsoft Edge",
    " - Microsoft\u200b Edge",
    " - Microsoft Edge",
    " - Brave",
    " - Opera",
    " - Vivaldi",
)

_PRIVATE_MARKERS = ("incognito", "inprivate", "private browsing")


def classify(process_name: str | None) -> BrowserType:
    return _PROCESS_NAMES.get((process_name or "").strip().lower(), BrowserType.UNKNOWN)


def is_browser(process_name: str | None) -> bool:
    return classify(process_name) is not BrowserType.UNKNOWN


def clean_title(title: str | None) -> str:
    """Strip the browser chrome suffix from a window title."""
    raw = (title or "").strip()
    for suffix in _TITLE_SUFFIXES:
        if raw.endswith(suffix):
            return raw[: -len(suffix)].strip()
    return raw


def looks_private(title: str | None) -> bool:
    """Best-effort private-mode detection from a raw window title."""
    low = (title or "").lower()
    return any(marker in low for marker in _PRIVATE_MARKERS)


__all__ = ["classify", "clean_title", "is_browser", "looks_private"]
