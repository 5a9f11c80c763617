"""Sequential fallback over extraction strategies.

States:
    IDLE -> PROBING -> CLASSIFYING -> SELECTING -> EXECUTING -> SUCCEEDED | FAILED

Candidates run strictly one after another. Unsupported, Timeout and
ProtocolError move on to the next candidate; NotABrowser and NoWindow stop
immediately because no other strategy would see a different window. Every
candidate outcome is kept, in order, on the result.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .automation import NativeAutomationStrategy, PlatformScriptStrategy
from .classifier import classify, looks_private
from .config import ExtractorConfig
from .devtools import DevToolsClient
from .errors import ErrorKind, ExtractionError
from .redaction import redact_url
from .title_guess import guess_from_title
from .types import (
    REASON_ASYNC_ONLY,
    BrowserInfo,
    BrowserType,
    ExtractionMethod,
    StrategyOutcome,
    WindowDescriptor,
)
from .window_probe import WindowProbe, default_probe

_LOGGER = logging.getLogger("browser_info.orchestrator")

AUTO_ORDER = (
    ExtractionMethod.NATIVE_AUTOMATION,
    ExtractionMethod.REMOTE_DEBUGGING,
    ExtractionMethod.PLATFORM_SCRIPT,
)


class OrchestratorState(Enum):
    IDLE = "idle"
    PROBING = "probing"
    CLASSIFYING = "classifying"
    SELECTING = "selecting"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BlockingStrategy(Protocol):
    method: ExtractionMethod

    def extract(self, window: WindowDescriptor, browser_type: BrowserType) -> StrategyOutcome: ...


class AsyncStrategy(Protocol):
    method: ExtractionMethod

    async def extract(self, window: WindowDescriptor, browser_type: BrowserType) -> StrategyOutcome: ...


def build_candidates(method: ExtractionMethod, *, include_remote: bool) -> list[ExtractionMethod]:
    """Ordered candidate list. The blocking path cannot run remote debugging under Auto."""
    if method is ExtractionMethod.AUTO:
        return [m for m in AUTO_ORDER if include_remote or m is not ExtractionMethod.REMOTE_DEBUGGING]
    return [method]


@dataclass
class ExtractionResult:
    info: BrowserInfo | None = None
    error: ExtractionError | None = None
    outcomes: list[StrategyOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.info is not None and self.error is None

    def unwrap(self) -> BrowserInfo:
        if self.info is None:
            raise self.failure()
        return self.info

    def failure(self) -> ExtractionError:
        return self.error or ExtractionError(ErrorKind.PROTOCOL_ERROR, detail="empty result")

    def to_dict(self) -> dict[str, Any]:
        if self.info is not None:
            return {"ok": True, "info": self.info.to_dict(), "outcomes": [o.to_dict() for o in self.outcomes]}
        return {"ok": False, **self.failure().to_dict()}


@dataclass
class UrlResult:
    """URL-only view of an extraction."""

    url: str | None = None
    browser_type: BrowserType = BrowserType.UNKNOWN
    method_used: ExtractionMethod | None = None
    error: ExtractionError | None = None
    outcomes: list[StrategyOutcome] = field(default_factory=list)

    @classmethod
    def from_extraction(cls, result: ExtractionResult) -> UrlResult:
        if result.info is None:
            return cls(error=result.error, outcomes=result.outcomes)
        return cls(
            url=result.info.url,
            browser_type=result.info.browser_type,
            method_used=result.info.method_used,
            outcomes=result.outcomes,
        )

    @property
    def ok(self) -> bool:
        return self.url is not None and self.error is None

    def unwrap(self) -> str:
        if self.url is None:
            raise self.failure()
        return self.url

    def failure(self) -> ExtractionError:
        return self.error or ExtractionError(ErrorKind.PROTOCOL_ERROR, detail="empty result")

    def to_dict(self) -> dict[str, Any]:
        if self.url is not None:
            return {
                "ok": True,
                "url": self.url,
                "browserType": self.browser_type.value,
                "methodUsed": self.method_used.value if self.method_used else None,
            }
        return {"ok": False, **self.failure().to_dict()}


class ExtractionOrchestrator:
    """Single-use state machine; build one per extraction."""

    def __init__(
        self,
        config: ExtractorConfig | None = None,
        *,
        probe: WindowProbe | None = None,
        native: BlockingStrategy | None = None,
        platform: BlockingStrategy | None = None,
        devtools: AsyncStrategy | None = None,
    ) -> None:
        self.config = config or ExtractorConfig.from_env()
        self.probe = probe or default_probe()
        self.native = native or NativeAutomationStrategy(self.config)
        self.platform = platform or PlatformScriptStrategy(self.config)
        self.devtools = devtools or DevToolsClient.from_config(self.config)
        self.state = OrchestratorState.IDLE
        self.transitions: list[OrchestratorState] = [OrchestratorState.IDLE]

    def _enter(self, state: OrchestratorState) -> None:
        self.state = state
        self.transitions.append(state)

    # -- shared phases -----------------------------------------------------

    def _prepare(
        self, method: ExtractionMethod, *, include_remote: bool
    ) -> tuple[WindowDescriptor, BrowserType, list[ExtractionMethod]] | ExtractionResult:
        self._enter(OrchestratorState.PROBING)
        try:
            window = self.probe.query()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("window_probe_error: %s", exc)
            window = None
        if window is None:
            return self._fail(ExtractionError(ErrorKind.NO_WINDOW, detail="no foreground window"), [])

        self._enter(OrchestratorState.CLASSIFYING)
        browser_type = classify(window.process_name)
        if browser_type is BrowserType.UNKNOWN:
            _LOGGER.debug("not_a_browser process=%s", window.process_name or "?")
            return self._fail(
                ExtractionError(ErrorKind.NOT_A_BROWSER, detail=window.process_name or "unknown process"), []
            )

        self._enter(OrchestratorState.SELECTING)
        candidates = build_candidates(method, include_remote=include_remote)
        _LOGGER.debug(
            "candidates browser=%s order=%s", browser_type.value, ",".join(m.value for m in candidates)
        )
        self._enter(OrchestratorState.EXECUTING)
        return window, browser_type, candidates

    def _record(
        self,
        candidate: ExtractionMethod,
        outcome: StrategyOutcome,
        started: float,
        window: WindowDescriptor,
        outcomes: list[StrategyOutcome],
    ) -> ExtractionResult | None:
        """Append the outcome; return a final result if the run is over."""
        outcome = outcome.with_timing(candidate, int((time.monotonic() - started) * 1000))
        outcomes.append(outcome)
        _LOGGER.debug(
            "strategy=%s outcome=%s detail=%s",
            candidate.value,
            outcome.kind.value,
            outcome.reason or outcome.detail or "-",
        )
        if outcome.ok and outcome.info is not None:
            return self._succeed(outcome.info, window, outcomes)
        if outcome.is_terminal:
            return self._fail(ExtractionError.from_outcome(outcome, outcomes), outcomes)
        return None

    def _succeed(
        self, info: BrowserInfo, window: WindowDescriptor, outcomes: list[StrategyOutcome]
    ) -> ExtractionResult:
        if not info.is_incognito and looks_private(window.title):
            info = dataclasses.replace(info, is_incognito=True)
        self._enter(OrchestratorState.SUCCEEDED)
        _LOGGER.info(
            "extracted method=%s browser=%s url=%s",
            info.method_used.value,
            info.browser_type.value,
            redact_url(info.url),
        )
        return ExtractionResult(info=info, outcomes=list(outcomes))

    def _exhausted(self, window: WindowDescriptor, outcomes: list[StrategyOutcome]) -> ExtractionResult:
        last = outcomes[-1] if outcomes else None
        error = ExtractionError(
            ErrorKind.ALL_METHODS_EXHAUSTED,
            reason=last.reason if last else "",
            detail=last.detail if last else "no candidates",
            outcomes=list(outcomes),
        )
        if self.config.title_guess:
            error.guess = guess_from_title(window.title)
        return self._fail(error, outcomes)

    def _fail(self, error: ExtractionError, outcomes: list[StrategyOutcome]) -> ExtractionResult:
        self._enter(OrchestratorState.FAILED)
        _LOGGER.debug("extraction_failed kind=%s reason=%s", error.kind.value, error.reason or "-")
        return ExtractionResult(error=error, outcomes=list(outcomes))

    def _blocking_strategy(self, candidate: ExtractionMethod) -> BlockingStrategy:
        if candidate is ExtractionMethod.NATIVE_AUTOMATION:
            return self.native
        return self.platform

    # -- entry points ------------------------------------------------------

    def run(self, method: ExtractionMethod = ExtractionMethod.AUTO) -> ExtractionResult:
        """Blocking extraction. Remote debugging is unavailable here."""
        prepared = self._prepare(method, include_remote=False)
        if isinstance(prepared, ExtractionResult):
            return prepared
        window, browser_type, candidates = prepared

        outcomes: list[StrategyOutcome] = []
        for candidate in candidates:
            started = time.monotonic()
            if candidate is ExtractionMethod.REMOTE_DEBUGGING:
                outcome = StrategyOutcome.unsupported(
                    REASON_ASYNC_ONLY, "remote debugging requires the async entry point", method=candidate
                )
            else:
                outcome = _call_blocking(self._blocking_strategy(candidate), candidate, window, browser_type)
            final = self._record(candidate, outcome, started, window, outcomes)
            if final is not None:
                return final
        return self._exhausted(window, outcomes)

    async def run_async(self, method: ExtractionMethod = ExtractionMethod.AUTO) -> ExtractionResult:
        """Async extraction; blocking strategies run in a worker thread."""
        prepared = self._prepare(method, include_remote=True)
        if isinstance(prepared, ExtractionResult):
            return prepared
        window, browser_type, candidates = prepared

        outcomes: list[StrategyOutcome] = []
        for candidate in candidates:
            started = time.monotonic()
            if candidate is ExtractionMethod.REMOTE_DEBUGGING:
                outcome = await _call_async(self.devtools, candidate, window, browser_type)
            else:
                outcome = await asyncio.to_thread(
                    _call_blocking, self._blocking_strategy(candidate), candidate, window, browser_type
                )
            final = self._record(candidate, outcome, started, window, outcomes)
            if final is not None:
                return final
        return self._exhausted(window, outcomes)


def _call_blocking(
    strategy: BlockingStrategy, candidate: ExtractionMethod, window: WindowDescriptor, browser_type: BrowserType
) -> StrategyOutcome:
    try:
        return strategy.extract(window, browser_type)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.exception("strategy_crashed strategy=%s", candidate.value)
        return StrategyOutcome.protocol_error(f"{type(exc).__name__}: {exc}", method=candidate)


async def _call_async(
    strategy: AsyncStrategy, candidate: ExtractionMethod, window: WindowDescriptor, browser_type: BrowserType
) -> StrategyOutcome:
    try:
        return await strategy.extract(window, browser_type)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.exception("strategy_crashed strategy=%s", candidate.value)
        return StrategyOutcome.protocol_error(f"{type(exc).__name__}: {exc}", method=candidate)


__all__ = [
    "AUTO_ORDER",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "OrchestratorState",
    "UrlResult",
    "build_candidates",
]
