"""
Foreground-browser URL extraction.

Finds the browser that owns the focused window and reads the active page's
URL and title through one of several strategies (keystroke automation,
the remote-debugging protocol, accessibility/AppleScript), falling back in
a fixed order.

Every entry point returns a typed result; none of them raises.
"""

from __future__ import annotations

import logging

from .classifier import classify, is_browser
from .config import ExtractorConfig
from .errors import ErrorKind, ExtractionError
from .orchestrator import ExtractionOrchestrator, ExtractionResult, OrchestratorState, UrlResult
from .title_guess import TitleGuess
from .types import BrowserInfo, BrowserType, ExtractionMethod, StrategyOutcome, WindowDescriptor, WindowPosition
from .window_probe import WindowProbe, default_probe

__version__ = "0.1.0"

_LOGGER = logging.getLogger("browser_info")


def probe_active(probe: WindowProbe | None = None) -> bool:
    """True when the foreground window belongs to a known browser."""
    try:
        window = (probe or default_probe()).query()
    except Exception as exc:  # noqa: BLE001
        _LOGGER.warning("window_probe_error: %s", exc)
        return False
    return window is not None and is_browser(window.process_name)


def get_info(
    method: ExtractionMethod | str = ExtractionMethod.AUTO,
    *,
    config: ExtractorConfig | None = None,
    probe: WindowProbe | None = None,
) -> ExtractionResult:
    """Blocking extraction. Remote debugging needs `get_info_async`."""
    return ExtractionOrchestrator(config, probe=probe).run(ExtractionMethod.parse(method))


async def get_info_async(
    method: ExtractionMethod | str = ExtractionMethod.AUTO,
    *,
    config: ExtractorConfig | None = None,
    probe: WindowProbe | None = None,
) -> ExtractionResult:
    return await ExtractionOrchestrator(config, probe=probe).run_async(ExtractionMethod.parse(method))


def get_url(
    method: ExtractionMethod | str = ExtractionMethod.AUTO,
    *,
    config: ExtractorConfig | None = None,
    probe: WindowProbe | None = None,
) -> UrlResult:
    return UrlResult.from_extraction(get_info(method, config=config, probe=probe))


async def get_url_async(
    method: ExtractionMethod | str = ExtractionMethod.AUTO,
    *,
    config: ExtractorConfig | None = None,
    probe: WindowProbe | None = None,
) -> UrlResult:
    return UrlResult.from_extraction(await get_info_async(method, config=config, probe=probe))


__all__ = [
    "BrowserInfo",
    "BrowserType",
    "ErrorKind",
    "ExtractionError",
    "ExtractionMethod",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "ExtractorConfig",
    "OrchestratorState",
    "StrategyOutcome",
    "TitleGuess",
    "UrlResult",
    "WindowDescriptor",
    "WindowPosition",
    "classify",
    "get_info",
    "get_info_async",
    "get_url",
    "get_url_async",
    "probe_active",
]
