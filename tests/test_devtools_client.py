from __future__ import annotations

import asyncio
import contextlib
import json
import socket
import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import pytest
import websockets


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


@contextlib.contextmanager
def _json_endpoint(routes: dict[str, Any], *, delay: float = 0.0) -> Iterator[int]:
    """Loopback stand-in for the browser's /json/* HTTP endpoints."""

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            if delay:
                time.sleep(delay)
            if self.path not in routes:
                self.send_response(404)
                self.end_headers()
                return
            body = json.dumps(routes[self.path]).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *_args: Any) -> None:
            return

    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield int(server.server_address[1])
    finally:
        server.shutdown()
        server.server_close()


def _page(target_id: str, title: str, url: str, ws_port: int) -> dict[str, Any]:
    return {
        "id": target_id,
        "type": "page",
        "title": title,
        "url": url,
        "webSocketDebuggerUrl": f"ws://127.0.0.1:{ws_port}/devtools/page/{target_id}",
    }


def _chrome_window(title: str = "Example Domain - Google Chrome"):  # noqa: ANN202
    from browser_info.types import WindowDescriptor, WindowPosition

    return WindowDescriptor(
        handle=1, title=title, process_id=99, position=WindowPosition(1, 2, 3, 4), process_name="chrome.exe"
    )


def _evaluate_result(url: str, title: str, incognito: bool = False) -> dict[str, Any]:
    return {"result": {"type": "object", "value": {"url": url, "title": title, "incognitoHeuristic": incognito}}}


def test_extract_ignores_events_and_foreign_ids() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import BrowserType, ExtractionMethod, OutcomeKind

    ws_port = _free_port()
    seen_paths: list[str] = []

    async def handler(ws) -> None:  # type: ignore[no-untyped-def]
        path = getattr(ws, "path", None) or getattr(getattr(ws, "request", None), "path", "")
        seen_paths.append(str(path))
        req = json.loads(await ws.recv())
        assert req["method"] == "Runtime.evaluate"
        assert req["params"]["awaitPromise"] is True
        assert req["params"]["returnByValue"] is True
        await ws.send(json.dumps({"method": "Runtime.consoleAPICalled", "params": {}}))
        await ws.send(
            json.dumps({"id": req["id"] + 1000, "result": _evaluate_result("https://wrong.example", "Wrong")})
        )
        await ws.send(
            json.dumps({"id": req["id"], "result": _evaluate_result("https://example.com/", "Example Domain")})
        )
        with contextlib.suppress(Exception):
            await ws.wait_closed()

    routes = {
        "/json/list": [
            {"id": "sw", "type": "service_worker", "title": "sw", "url": "https://example.com/sw.js"},
            _page("other", "Other tab", "https://other.example/", ws_port),
            _page("match", "Example Domain", "https://example.com/", ws_port),
        ]
    }

    async def _main() -> Any:
        async with websockets.serve(handler, "127.0.0.1", ws_port):
            with _json_endpoint(routes) as http_port:
                client = DevToolsClient("127.0.0.1", http_port, timeout=5.0)
                return await client.extract(_chrome_window(), BrowserType.CHROME)

    outcome = asyncio.run(_main())

    assert outcome.kind is OutcomeKind.SUCCESS
    info = outcome.info
    assert info is not None
    assert info.url == "https://example.com/"
    assert info.title == "Example Domain"
    assert info.method_used is ExtractionMethod.REMOTE_DEBUGGING
    assert info.process_id == 99
    assert seen_paths and seen_paths[0].endswith("/devtools/page/match")


def test_channel_matches_interleaved_responses_by_id() -> None:
    from browser_info.devtools import CdpChannel

    ws_port = _free_port()

    async def handler(ws) -> None:  # type: ignore[no-untyped-def]
        first = json.loads(await ws.recv())
        second = json.loads(await ws.recv())
        assert first["id"] == 1
        # Reply in reverse order, with stray ids in between. true and 1.0 both
        # compare equal to 1 and must not resolve the first request.
        await ws.send(json.dumps({"id": second["id"], "result": {"echo": second["method"]}}))
        await ws.send(json.dumps({"id": 424242, "result": {"echo": "stray"}}))
        await ws.send(json.dumps({"id": True, "result": {"echo": "stray-bool"}}))
        await ws.send(json.dumps({"id": 1.0, "result": {"echo": "stray-float"}}))
        await ws.send(json.dumps({"id": "1", "result": {"echo": "stray-str"}}))
        await ws.send(json.dumps({"id": first["id"], "result": {"echo": first["method"]}}))
        with contextlib.suppress(Exception):
            await ws.wait_closed()

    async def _main() -> tuple[dict[str, Any], dict[str, Any]]:
        async with websockets.serve(handler, "127.0.0.1", ws_port):
            async with CdpChannel(f"ws://127.0.0.1:{ws_port}/devtools/page/x", open_timeout=5) as channel:
                a, b = await asyncio.gather(channel.send("Page.first"), channel.send("Page.second"))
                return a, b

    a, b = asyncio.run(_main())
    assert a == {"echo": "Page.first"}
    assert b == {"echo": "Page.second"}


def test_error_response_is_protocol_error() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import BrowserType, OutcomeKind

    ws_port = _free_port()

    async def handler(ws) -> None:  # type: ignore[no-untyped-def]
        req = json.loads(await ws.recv())
        error = {"code": -32000, "message": "Execution context destroyed"}
        await ws.send(json.dumps({"id": req["id"], "error": error}))
        with contextlib.suppress(Exception):
            await ws.wait_closed()

    routes = {"/json/list": [_page("p", "Example Domain", "https://example.com/", ws_port)]}

    async def _main() -> Any:
        async with websockets.serve(handler, "127.0.0.1", ws_port):
            with _json_endpoint(routes) as http_port:
                return await DevToolsClient("127.0.0.1", http_port, timeout=5.0).extract(
                    _chrome_window(), BrowserType.CHROME
                )

    outcome = asyncio.run(_main())
    assert outcome.kind is OutcomeKind.PROTOCOL_ERROR
    assert "Execution context destroyed" in outcome.detail


def test_silent_target_times_out() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import BrowserType, OutcomeKind

    ws_port = _free_port()

    async def handler(ws) -> None:  # type: ignore[no-untyped-def]
        with contextlib.suppress(Exception):
            await ws.wait_closed()

    routes = {"/json/list": [_page("p", "Example Domain", "https://example.com/", ws_port)]}

    async def _main() -> Any:
        async with websockets.serve(handler, "127.0.0.1", ws_port):
            with _json_endpoint(routes) as http_port:
                return await DevToolsClient("127.0.0.1", http_port, timeout=0.5).extract(
                    _chrome_window(), BrowserType.CHROME
                )

    outcome = asyncio.run(_main())
    assert outcome.kind is OutcomeKind.TIMEOUT


def test_zero_page_targets_is_unsupported() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import REASON_NO_PAGE_TARGET, BrowserType, OutcomeKind

    routes = {
        "/json/list": [
            {"id": "bg", "type": "background_page", "title": "ext", "url": "chrome-extension://abc/bg.html"}
        ]
    }
    with _json_endpoint(routes) as http_port:
        outcome = asyncio.run(
            DevToolsClient("127.0.0.1", http_port, timeout=3.0).extract(_chrome_window(), BrowserType.CHROME)
        )
    assert outcome.kind is OutcomeKind.UNSUPPORTED
    assert outcome.reason == REASON_NO_PAGE_TARGET


def test_internal_page_is_unsupported_scheme() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import REASON_UNSUPPORTED_PAGE_SCHEME, BrowserType, OutcomeKind

    routes = {"/json/list": [_page("nt", "New Tab", "chrome://newtab/", _free_port())]}
    with _json_endpoint(routes) as http_port:
        outcome = asyncio.run(
            DevToolsClient("127.0.0.1", http_port, timeout=3.0).extract(
                _chrome_window("New Tab - Google Chrome"), BrowserType.CHROME
            )
        )
    assert outcome.kind is OutcomeKind.UNSUPPORTED
    assert outcome.reason == REASON_UNSUPPORTED_PAGE_SCHEME


@pytest.mark.parametrize(
    "payload",
    [
        {"not": "a list"},
        [{"id": "p", "type": "page", "title": "missing url"}],
    ],
)
def test_malformed_discovery_is_protocol_error(payload: Any) -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import BrowserType, OutcomeKind

    with _json_endpoint({"/json/list": payload}) as http_port:
        outcome = asyncio.run(
            DevToolsClient("127.0.0.1", http_port, timeout=3.0).extract(_chrome_window(), BrowserType.CHROME)
        )
    assert outcome.kind is OutcomeKind.PROTOCOL_ERROR


def test_connection_refused_means_not_in_debug_mode() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import REASON_NOT_IN_DEBUG_MODE, BrowserType, OutcomeKind

    client = DevToolsClient("127.0.0.1", _free_port(), timeout=3.0)
    outcome = asyncio.run(client.extract(_chrome_window(), BrowserType.EDGE))
    assert outcome.kind is OutcomeKind.UNSUPPORTED
    assert outcome.reason == REASON_NOT_IN_DEBUG_MODE
    assert asyncio.run(client.is_available()) is False


def test_non_chromium_browser_skips_io() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import REASON_NO_DEBUGGING_PROTOCOL, BrowserType, OutcomeKind

    # Port 1 would fail loudly if anything were attempted.
    outcome = asyncio.run(DevToolsClient("127.0.0.1", 1, timeout=3.0).extract(None, BrowserType.FIREFOX))
    assert outcome.kind is OutcomeKind.UNSUPPORTED
    assert outcome.reason == REASON_NO_DEBUGGING_PROTOCOL


def test_is_available_reads_version_endpoint() -> None:
    from browser_info.devtools import DevToolsClient

    with _json_endpoint({"/json/version": {"Browser": "Chrome/126.0"}}) as http_port:
        assert asyncio.run(DevToolsClient("127.0.0.1", http_port).is_available()) is True


def test_rank_targets_prefers_title_match_then_order() -> None:
    from browser_info.devtools import DebugTarget, rank_targets

    targets = [
        DebugTarget("a", "page", "Settings", "chrome://settings/"),
        DebugTarget("b", "page", "Recent tab", "https://recent.example/"),
        DebugTarget("c", "page", "Example Domain", "https://example.com/"),
        DebugTarget("d", "page", "Example Domain (2)", "https://example.com/2"),
    ]
    ranked = rank_targets(targets, "Example Domain - Google Chrome")
    assert [t.id for t in ranked][:3] == ["c", "d", "b"]
    assert ranked[-1].id == "a"

    # Without a usable title, discovery order decides among web pages.
    assert rank_targets(targets, "")[0].id == "b"


def test_slow_discovery_hits_the_same_deadline() -> None:
    from browser_info.devtools import DevToolsClient
    from browser_info.types import BrowserType, OutcomeKind

    routes = {"/json/list": [_page("p", "Example Domain", "https://example.com/", _free_port())]}
    with _json_endpoint(routes, delay=3.0) as http_port:
        started = time.monotonic()
        outcome = asyncio.run(
            DevToolsClient("127.0.0.1", http_port, timeout=0.5).extract(_chrome_window(), BrowserType.CHROME)
        )
        elapsed = time.monotonic() - started
    assert outcome.kind is OutcomeKind.TIMEOUT
    assert elapsed < 2.5
