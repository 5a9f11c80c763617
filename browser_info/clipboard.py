"""Scoped clipboard snapshot/restore.

Keystroke automation copies the address bar through the system clipboard,
which is shared by every process on the desktop. `ClipboardGuard` takes a
snapshot on entry and writes it back on every exit path.

Only text contents are preserved; that is the model pyperclip exposes.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Protocol

import pyperclip

from .errors import ClipboardUnavailable

_LOGGER = logging.getLogger("browser_info.clipboard")


class ClipboardBackend(Protocol):
    def paste(self) -> str: ...

    def copy(self, text: str) -> None: ...


class PyperclipBackend:
    def paste(self) -> str:
        return pyperclip.paste()

    def copy(self, text: str) -> None:
        pyperclip.copy(text)


class ClipboardGuard:
    def __init__(self, backend: ClipboardBackend | None = None) -> None:
        self.backend: ClipboardBackend = backend or PyperclipBackend()
        self._snapshot: str | None = None
        self.restored = False

    def __enter__(self) -> ClipboardGuard:
        try:
            snapshot = self.backend.paste()
        except Exception as exc:  # noqa: BLE001
            raise ClipboardUnavailable(str(exc)) from exc
        self._snapshot = snapshot if isinstance(snapshot, str) else ""
        self.restored = False
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.restore()
        return False

    def restore(self) -> None:
        if self._snapshot is None or self.restored:
            return
        try:
            self.backend.copy(self._snapshot)
            self.restored = True
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("clipboard_restore_failed: %s", exc)


__all__ = ["ClipboardBackend", "ClipboardGuard", "PyperclipBackend"]
