"""
Data model shared by the probe, the strategies and the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BrowserType(Enum):
    CHROME = "chrome"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"
    BRAVE = "brave"
    OPERA = "opera"
    VIVALDI = "vivaldi"
    UNKNOWN = "unknown"

    @property
    def is_chromium(self) -> bool:
        """Chromium-family browsers expose the remote-debugging endpoint."""
        return self in _CHROMIUM_FAMILY

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, "Unknown")


_CHROMIUM_FAMILY = frozenset(
    {BrowserType.CHROME, BrowserType.EDGE, BrowserType.BRAVE, BrowserType.OPERA, BrowserType.VIVALDI}
)

_DISPLAY_NAMES = {
    BrowserType.CHROME: "Google Chrome",
    BrowserType.FIREFOX: "Mozilla Firefox",
    BrowserType.EDGE: "Microsoft Edge",
    BrowserType.SAFARI: "Safari",
    BrowserType.BRAVE: "Brave Browser",
    BrowserType.OPERA: "Opera",
    BrowserType.VIVALDI: "Vivaldi",
}


class ExtractionMethod(Enum):
    AUTO = "auto"
    NATIVE_AUTOMATION = "native_automation"
    REMOTE_DEBUGGING = "remote_debugging"
    PLATFORM_SCRIPT = "platform_script"

    @classmethod
    def parse(cls, raw: str | ExtractionMethod | None) -> ExtractionMethod:
        """Lenient parse; unknown values fall back to AUTO."""
        if isinstance(raw, ExtractionMethod):
            return raw
        value = (raw or "").strip().lower().replace("-", "_")
        if value in {"native", "native_automation", "keyboard", "keystroke", "powershell"}:
            return cls.NATIVE_AUTOMATION
        if value in {"remote", "remote_debugging", "devtools", "cdp", "debug"}:
            return cls.REMOTE_DEBUGGING
        if value in {"platform", "platform_script", "script", "applescript", "uia", "accessibility"}:
            return cls.PLATFORM_SCRIPT
        return cls.AUTO


@dataclass(frozen=True, slots=True)
class WindowPosition:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class WindowDescriptor:
    """Raw foreground window as reported by a probe. Never cached."""

    handle: Any
    title: str
    process_id: int
    position: WindowPosition = field(default_factory=WindowPosition)
    process_name: str = ""


@dataclass(frozen=True, slots=True)
class BrowserInfo:
    url: str
    title: str
    browser_type: BrowserType
    window_position: WindowPosition = field(default_factory=WindowPosition)
    is_incognito: bool = False
    method_used: ExtractionMethod = ExtractionMethod.AUTO
    process_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "browserType": self.browser_type.value,
            "browserName": self.browser_type.display_name,
            "windowPosition": self.window_position.to_dict(),
            "isIncognito": self.is_incognito,
            "methodUsed": self.method_used.value,
            "processId": self.process_id,
        }


class OutcomeKind(Enum):
    SUCCESS = "success"
    NOT_A_BROWSER = "not_a_browser"
    NO_WINDOW = "no_window"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    PROTOCOL_ERROR = "protocol_error"


# Unsupported reason tokens.
REASON_NOT_IN_DEBUG_MODE = "not_in_debug_mode"
REASON_NO_PAGE_TARGET = "no_page_target"
REASON_NO_DEBUGGING_PROTOCOL = "no_debugging_protocol"
REASON_UNSUPPORTED_PAGE_SCHEME = "unsupported_page_scheme"
REASON_ASYNC_ONLY = "async_only"
REASON_SCRIPT_ERROR = "script_error"
REASON_NO_SCRIPT = "no_script"
REASON_INTERPRETER_MISSING = "interpreter_missing"
REASON_CLIPBOARD_UNAVAILABLE = "clipboard_unavailable"
REASON_PLATFORM = "unsupported_platform"


@dataclass(frozen=True, slots=True)
class StrategyOutcome:
    """Tagged result of a single strategy invocation."""

    kind: OutcomeKind
    method: ExtractionMethod | None = None
    info: BrowserInfo | None = None
    reason: str = ""
    detail: str = ""
    elapsed_ms: int = 0

    @classmethod
    def success(cls, info: BrowserInfo, *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.SUCCESS, method=method or info.method_used, info=info)

    @classmethod
    def not_a_browser(cls, detail: str = "", *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.NOT_A_BROWSER, method=method, detail=detail)

    @classmethod
    def no_window(cls, detail: str = "", *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.NO_WINDOW, method=method, detail=detail)

    @classmethod
    def timeout(cls, detail: str = "", *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.TIMEOUT, method=method, detail=detail)

    @classmethod
    def unsupported(cls, reason: str, detail: str = "", *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.UNSUPPORTED, method=method, reason=reason, detail=detail)

    @classmethod
    def protocol_error(cls, detail: str, *, method: ExtractionMethod | None = None) -> StrategyOutcome:
        return cls(OutcomeKind.PROTOCOL_ERROR, method=method, detail=detail)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS and self.info is not None

    @property
    def is_terminal(self) -> bool:
        """NotABrowser/NoWindow do not depend on the strategy and would recur."""
        return self.kind in (OutcomeKind.NOT_A_BROWSER, OutcomeKind.NO_WINDOW)

    def with_timing(self, method: ExtractionMethod, elapsed_ms: int) -> StrategyOutcome:
        return StrategyOutcome(
            kind=self.kind,
            method=self.method or method,
            info=self.info,
            reason=self.reason,
            detail=self.detail,
            elapsed_ms=int(elapsed_ms),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": self.kind.value,
            "method": self.method.value if self.method else None,
            "elapsedMs": self.elapsed_ms,
        }
        if self.reason:
            out["reason"] = self.reason
        if self.detail:
            out["detail"] = self.detail
        if self.info is not None:
            out["info"] = self.info.to_dict()
        return out


__all__ = [
    "BrowserInfo",
    "BrowserType",
    "ExtractionMethod",
    "OutcomeKind",
    "StrategyOutcome",
    "WindowDescriptor",
    "WindowPosition",
]
