"""Foreground-window probes.

The orchestrator only relies on `WindowProbe.query()`: a fresh
`WindowDescriptor` for the focused top-level window, or None when there is
none. Probes never raise.

Platform bindings (pywin32, pyobjc) are imported on first query so the
package imports everywhere.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Protocol

import psutil

from .types import WindowDescriptor, WindowPosition

_LOGGER = logging.getLogger("browser_info.window_probe")


class WindowProbe(Protocol):
    def query(self) -> WindowDescriptor | None: ...


class NullWindowProbe:
    """No foreground-window support on this platform."""

    def query(self) -> WindowDescriptor | None:
        return None


class StaticWindowProbe:
    def __init__(self, window: WindowDescriptor | None) -> None:
        self.window = window

    def query(self) -> WindowDescriptor | None:
        return self.window


def process_name(pid: int) -> str:
    if pid <= 0:
        return ""
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return ""


class _PlatformProbe:
    def query(self) -> WindowDescriptor | None:
        try:
            return self._query()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("window_probe_failed probe=%s: %s", type(self).__name__, exc)
            return None

    def _query(self) -> WindowDescriptor | None:
        raise NotImplementedError


class Win32WindowProbe(_PlatformProbe):
    """Foreground window via win32gui/win32process, process name via psutil."""

    def _query(self) -> WindowDescriptor | None:
        import win32gui
        import win32process

        hwnd = win32gui.GetForegroundWindow()
        if not hwnd:
            return None

        _, pid = win32process.GetWindowThreadProcessId(hwnd)
        left, top, right, bottom = win32gui.GetWindowRect(hwnd)
        return WindowDescriptor(
            handle=int(hwnd),
            title=win32gui.GetWindowText(hwnd) or "",
            process_id=int(pid),
            position=WindowPosition(
                x=float(left), y=float(top), width=float(right - left), height=float(bottom - top)
            ),
            process_name=process_name(int(pid)),
        )


class MacWindowProbe(_PlatformProbe):
    """Frontmost application via NSWorkspace; its front window via CGWindowList.

    Window titles need the Screen Recording permission on recent macOS; without
    it the title is empty and only the application is known.
    """

    def _query(self) -> WindowDescriptor | None:
        from AppKit import NSWorkspace

        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None
        pid = int(app.processIdentifier())
        name = str(app.localizedName() or "") or process_name(pid)

        window = self._front_window(pid)
        bounds = window.get("kCGWindowBounds") or {}
        return WindowDescriptor(
            handle=int(window.get("kCGWindowNumber") or 0),
            title=str(window.get("kCGWindowName") or ""),
            process_id=pid,
            position=WindowPosition(
                x=float(bounds.get("X", 0)),
                y=float(bounds.get("Y", 0)),
                width=float(bounds.get("Width", 0)),
                height=float(bounds.get("Height", 0)),
            ),
            process_name=name,
        )

    @staticmethod
    def _front_window(pid: int) -> dict[str, Any]:
        from Quartz import (
            CGWindowListCopyWindowInfo,
            kCGNullWindowID,
            kCGWindowListExcludeDesktopElements,
            kCGWindowListOptionOnScreenOnly,
        )

        options = kCGWindowListOptionOnScreenOnly | kCGWindowListExcludeDesktopElements
        # Front-to-back order; layer 0 holds normal application windows.
        for info in CGWindowListCopyWindowInfo(options, kCGNullWindowID) or []:
            if info.get("kCGWindowOwnerPID") == pid and info.get("kCGWindowLayer", 0) == 0:
                return dict(info)
        return {}


def default_probe(platform: str | None = None) -> WindowProbe:
    platform = platform or sys.platform
    if platform == "win32":
        return Win32WindowProbe()
    if platform == "darwin":
        return MacWindowProbe()
    return NullWindowProbe()


__all__ = [
    "MacWindowProbe",
    "NullWindowProbe",
    "StaticWindowProbe",
    "Win32WindowProbe",
    "WindowProbe",
    "default_probe",
    "process_name",
]
