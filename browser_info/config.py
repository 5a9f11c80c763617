from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .types import ExtractionMethod

SCRIPTS_DIR = Path(__file__).resolve().parent / "scripts"


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _bool_env(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _float_env(name: str, *, default: float, lo: float, hi: float) -> float:
    try:
        val = float(os.environ.get(name) or default)
    except (TypeError, ValueError):
        val = default
    return max(lo, min(val, hi))


def _int_env(name: str, *, default: int, lo: int, hi: int) -> int:
    try:
        val = int(os.environ.get(name) or default)
    except (TypeError, ValueError):
        val = default
    return max(lo, min(val, hi))


def _path_env(name: str) -> str | None:
    raw = os.environ.get(name)
    if isinstance(raw, str) and raw.strip():
        return expand_path(raw.strip())
    return None


@dataclass
class ExtractorConfig:
    debug_host: str = "127.0.0.1"
    debug_port: int = 9222
    devtools_timeout: float = 3.0
    automation_timeout: float = 2.0
    native_script: str | None = None
    platform_script: str | None = None
    powershell: str = "powershell"
    osascript: str = "osascript"
    title_guess: bool = False
    default_method: ExtractionMethod = ExtractionMethod.AUTO

    @classmethod
    def from_env(cls) -> ExtractorConfig:
        host = (os.environ.get("BROWSER_INFO_DEBUG_HOST") or "127.0.0.1").strip() or "127.0.0.1"
        return cls(
            debug_host=host,
            debug_port=_int_env("BROWSER_INFO_DEBUG_PORT", default=9222, lo=1, hi=65535),
            devtools_timeout=_float_env("BROWSER_INFO_DEVTOOLS_TIMEOUT", default=3.0, lo=0.1, hi=30.0),
            automation_timeout=_float_env("BROWSER_INFO_AUTOMATION_TIMEOUT", default=2.0, lo=0.1, hi=30.0),
            native_script=_path_env("BROWSER_INFO_NATIVE_SCRIPT"),
            platform_script=_path_env("BROWSER_INFO_PLATFORM_SCRIPT"),
            powershell=(os.environ.get("BROWSER_INFO_POWERSHELL") or "powershell").strip() or "powershell",
            osascript=(os.environ.get("BROWSER_INFO_OSASCRIPT") or "osascript").strip() or "osascript",
            title_guess=_bool_env("BROWSER_INFO_TITLE_GUESS", default=False),
            default_method=ExtractionMethod.parse(os.environ.get("BROWSER_INFO_METHOD")),
        )


__all__ = ["SCRIPTS_DIR", "ExtractorConfig", "expand_path"]
