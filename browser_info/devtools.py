"""Remote-debugging (DevTools protocol) strategy.

Flow per call:
1) `GET /json/list` on the loopback endpoint, keep `type == "page"` targets
2) rank them against the foreground window title
3) open one WebSocket channel to the best target and run a single
   `Runtime.evaluate` asking the page for its URL, title and a private-mode hint

The whole flow runs under one deadline. The endpoint only exists when the
browser was started with `--remote-debugging-port`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit
from urllib.request import urlopen

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .automation import VALID_SCHEMES, validate_url
from .classifier import clean_title, looks_private
from .config import ExtractorConfig
from .errors import DevToolsProtocolError, DevToolsUnavailable
from .redaction import redact_url
from .types import (
    REASON_NO_DEBUGGING_PROTOCOL,
    REASON_NO_PAGE_TARGET,
    REASON_NOT_IN_DEBUG_MODE,
    REASON_UNSUPPORTED_PAGE_SCHEME,
    BrowserInfo,
    BrowserType,
    ExtractionMethod,
    StrategyOutcome,
    WindowDescriptor,
    WindowPosition,
)

_LOGGER = logging.getLogger("browser_info.devtools")

# Incognito profiles get a much smaller storage quota than regular ones.
PAGE_INFO_EXPRESSION = """(async () => {
  let incognito = false;
  try {
    if (navigator.storage && navigator.storage.estimate) {
      const est = await navigator.storage.estimate();
      incognito = typeof est.quota === "number" && est.quota < 120 * 1024 * 1024;
    }
  } catch (e) {}
  return { url: location.href, title: document.title, incognitoHeuristic: incognito };
})()"""


@dataclass(frozen=True, slots=True)
class DebugTarget:
    id: str
    type: str
    title: str
    url: str
    ws_url: str = ""

    @property
    def is_web(self) -> bool:
        try:
            return urlsplit(self.url).scheme.lower() in VALID_SCHEMES
        except ValueError:
            return False

    @classmethod
    def from_json(cls, entry: Any) -> DebugTarget:
        if not isinstance(entry, dict):
            raise DevToolsProtocolError(f"target entry is not an object: {type(entry).__name__}")
        missing = [k for k in ("id", "type", "title", "url") if not isinstance(entry.get(k), str)]
        if missing:
            raise DevToolsProtocolError(f"target entry missing fields: {', '.join(missing)}")
        ws_url = entry.get("webSocketDebuggerUrl")
        return cls(
            id=entry["id"],
            type=entry["type"],
            title=entry["title"],
            url=entry["url"],
            ws_url=ws_url if isinstance(ws_url, str) else "",
        )


def parse_targets(payload: Any) -> list[DebugTarget]:
    """Page targets from a `/json/list` body, in endpoint order."""
    if not isinstance(payload, list):
        raise DevToolsProtocolError(f"/json/list returned {type(payload).__name__}, expected array")
    pages: list[DebugTarget] = []
    for entry in payload:
        if isinstance(entry, dict) and isinstance(entry.get("type"), str) and entry["type"] != "page":
            continue
        pages.append(DebugTarget.from_json(entry))
    return pages


def score_target(target: DebugTarget, window_title: str, index: int) -> int:
    score = 0
    wanted = clean_title(window_title).lower()
    have = target.title.strip().lower()
    if wanted and have:
        if have == wanted:
            score += 100
        elif wanted in have or have in wanted:
            score += 50
    # The endpoint lists the most recently activated targets first.
    score += max(0, 10 - index)
    if not target.is_web:
        score -= 200
    return score


def rank_targets(targets: list[DebugTarget], window_title: str = "") -> list[DebugTarget]:
    """Best candidate first; ties keep discovery order."""
    scored = [(score_target(t, window_title, i), i, t) for i, t in enumerate(targets)]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [t for _, _, t in scored]


def _http_get_json(url: str, timeout: float) -> Any:
    try:
        with urlopen(url, timeout=timeout) as resp:
            body = resp.read()
    except HTTPError as exc:
        raise DevToolsProtocolError(f"HTTP {exc.code} from {url}") from exc
    except URLError as exc:
        if isinstance(exc.reason, TimeoutError):
            raise exc.reason from exc
        raise DevToolsUnavailable(f"{url}: {exc.reason}") from exc
    except ConnectionError as exc:
        raise DevToolsUnavailable(f"{url}: {exc}") from exc
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise DevToolsProtocolError(f"invalid JSON from {url}: {exc}") from exc


class CdpChannel:
    """One WebSocket command channel to a single page target.

    Requests carry an integer id; a reader task resolves the matching pending
    future. Responses with ids this channel never issued are dropped and
    events (no id) are ignored.
    """

    def __init__(self, ws_url: str, *, open_timeout: float = 3.0) -> None:
        self.ws_url = ws_url
        self.open_timeout = float(open_timeout)
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._next_id = 0
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._closed_reason = ""

    async def __aenter__(self) -> CdpChannel:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        await self.close()
        return False

    async def open(self) -> None:
        self._ws = await websockets.connect(
            self.ws_url, ping_interval=None, open_timeout=self.open_timeout, max_size=None
        )
        self._reader = asyncio.create_task(self._read_loop())

    async def close(self) -> None:
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._reader
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()
        self._fail_pending("channel closed")

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if self._ws is None:
            raise DevToolsProtocolError("channel is not open")
        if self._reader is not None and self._reader.done():
            raise DevToolsProtocolError(self._closed_reason or "socket closed")

        self._next_id += 1
        req_id = self._next_id
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        try:
            try:
                await self._ws.send(json.dumps({"id": req_id, "method": method, "params": params or {}}))
            except ConnectionClosed as exc:
                raise DevToolsProtocolError(f"socket closed: {exc}") from exc
            return await fut
        finally:
            self._pending.pop(req_id, None)

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                self._on_message(raw)
            self._closed_reason = "socket closed"
        except ConnectionClosed as exc:
            self._closed_reason = f"socket closed: {exc}"
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("cdp_reader_failed: %s", exc)
            self._closed_reason = f"socket error: {exc}"
        self._fail_pending(self._closed_reason)

    def _on_message(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            _LOGGER.debug("cdp_unparsable_message size=%d", len(raw))
            return
        if not isinstance(msg, dict) or "id" not in msg:
            return

        msg_id = msg.get("id")
        # bool is an int subclass and True == 1; only real integers are ours.
        fut = self._pending.get(msg_id) if type(msg_id) is int else None
        if fut is None:
            _LOGGER.debug("cdp_unmatched_response id=%r", msg_id)
            return
        if fut.done():
            return
        if "error" in msg:
            err = msg.get("error")
            detail = err.get("message") if isinstance(err, dict) else err
            fut.set_exception(DevToolsProtocolError(f"command error: {detail}"))
            return
        result = msg.get("result")
        fut.set_result(result if isinstance(result, dict) else {})

    def _fail_pending(self, reason: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for fut in pending:
            if not fut.done():
                fut.set_exception(DevToolsProtocolError(reason or "socket closed"))


class DevToolsClient:
    """Remote-debugging strategy. Async only."""

    method = ExtractionMethod.REMOTE_DEBUGGING

    def __init__(self, host: str = "127.0.0.1", port: int = 9222, timeout: float = 3.0) -> None:
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)

    @classmethod
    def from_config(cls, config: ExtractorConfig) -> DevToolsClient:
        return cls(config.debug_host, config.debug_port, config.devtools_timeout)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def discover(self) -> list[DebugTarget]:
        payload = await asyncio.to_thread(_http_get_json, f"{self.base_url}/json/list", self.timeout)
        return parse_targets(payload)

    async def is_available(self) -> bool:
        try:
            payload = await asyncio.to_thread(_http_get_json, f"{self.base_url}/json/version", min(self.timeout, 1.0))
        except (DevToolsUnavailable, DevToolsProtocolError, OSError):
            return False
        return isinstance(payload, dict)

    async def extract(self, window: WindowDescriptor | None, browser_type: BrowserType) -> StrategyOutcome:
        if not browser_type.is_chromium:
            return StrategyOutcome.unsupported(
                REASON_NO_DEBUGGING_PROTOCOL,
                f"{browser_type.display_name} has no remote-debugging protocol",
                method=self.method,
            )
        try:
            return await asyncio.wait_for(self._extract(window, browser_type), timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError):
            return StrategyOutcome.timeout(f"remote debugging exceeded {self.timeout:.1f}s", method=self.method)
        except DevToolsUnavailable as exc:
            return StrategyOutcome.unsupported(REASON_NOT_IN_DEBUG_MODE, str(exc), method=self.method)
        except DevToolsProtocolError as exc:
            return StrategyOutcome.protocol_error(str(exc), method=self.method)
        except (OSError, WebSocketException) as exc:
            return StrategyOutcome.protocol_error(f"websocket failure: {exc}", method=self.method)

    async def _extract(self, window: WindowDescriptor | None, browser_type: BrowserType) -> StrategyOutcome:
        targets = await self.discover()
        if not targets:
            return StrategyOutcome.unsupported(REASON_NO_PAGE_TARGET, "no page targets", method=self.method)

        window_title = window.title if window is not None else ""
        target = rank_targets(targets, window_title)[0]
        _LOGGER.debug("cdp_target id=%s pages=%d url=%s", target.id, len(targets), redact_url(target.url))
        if not target.is_web:
            return StrategyOutcome.unsupported(
                REASON_UNSUPPORTED_PAGE_SCHEME, redact_url(target.url), method=self.method
            )
        if not target.ws_url:
            raise DevToolsProtocolError(f"target {target.id} has no webSocketDebuggerUrl")

        async with CdpChannel(target.ws_url, open_timeout=self.timeout) as channel:
            result = await channel.send(
                "Runtime.evaluate",
                {"expression": PAGE_INFO_EXPRESSION, "awaitPromise": True, "returnByValue": True},
            )
        return self._to_outcome(result, target, window, browser_type)

    def _to_outcome(
        self,
        result: dict[str, Any],
        target: DebugTarget,
        window: WindowDescriptor | None,
        browser_type: BrowserType,
    ) -> StrategyOutcome:
        if result.get("exceptionDetails"):
            raise DevToolsProtocolError("page evaluation threw")
        remote = result.get("result")
        value = remote.get("value") if isinstance(remote, dict) else None
        if not isinstance(value, dict):
            raise DevToolsProtocolError("Runtime.evaluate returned no object value")

        url = validate_url(value.get("url") if isinstance(value.get("url"), str) else None)
        if url is None:
            raise DevToolsProtocolError(f"page reported an unusable url: {str(value.get('url'))[:200]!r}")
        title = value.get("title") if isinstance(value.get("title"), str) else target.title
        raw_title = window.title if window is not None else ""

        info = BrowserInfo(
            url=url,
            title=clean_title(title) or clean_title(raw_title),
            browser_type=browser_type,
            window_position=window.position if window is not None else WindowPosition(),
            is_incognito=looks_private(raw_title) or value.get("incognitoHeuristic") is True,
            method_used=self.method,
            process_id=window.process_id if window is not None else 0,
        )
        _LOGGER.debug("cdp_ok url=%s", redact_url(info.url))
        return StrategyOutcome.success(info, method=self.method)


__all__ = [
    "PAGE_INFO_EXPRESSION",
    "CdpChannel",
    "DebugTarget",
    "DevToolsClient",
    "parse_targets",
    "rank_targets",
    "score_target",
]
