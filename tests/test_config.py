from __future__ import annotations

from pathlib import Path

import pytest

_VARS = (
    "BROWSER_INFO_DEBUG_HOST",
    "BROWSER_INFO_DEBUG_PORT",
    "BROWSER_INFO_DEVTOOLS_TIMEOUT",
    "BROWSER_INFO_AUTOMATION_TIMEOUT",
    "BROWSER_INFO_NATIVE_SCRIPT",
    "BROWSER_INFO_PLATFORM_SCRIPT",
    "BROWSER_INFO_POWERSHELL",
    "BROWSER_INFO_OSASCRIPT",
    "BROWSER_INFO_TITLE_GUESS",
    "BROWSER_INFO_METHOD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    from browser_info.config import ExtractorConfig
    from browser_info.types import ExtractionMethod

    cfg = ExtractorConfig.from_env()
    assert (cfg.debug_host, cfg.debug_port) == ("127.0.0.1", 9222)
    assert cfg.devtools_timeout == 3.0
    assert cfg.automation_timeout == 2.0
    assert cfg.native_script is None
    assert cfg.title_guess is False
    assert cfg.default_method is ExtractionMethod.AUTO


def test_env_overrides_and_clamps(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    from browser_info.config import ExtractorConfig
    from browser_info.types import ExtractionMethod

    script = tmp_path / "get_url.ps1"
    monkeypatch.setenv("BROWSER_INFO_DEBUG_PORT", "9333")
    monkeypatch.setenv("BROWSER_INFO_DEVTOOLS_TIMEOUT", "999")
    monkeypatch.setenv("BROWSER_INFO_AUTOMATION_TIMEOUT", "not-a-number")
    monkeypatch.setenv("BROWSER_INFO_NATIVE_SCRIPT", str(script))
    monkeypatch.setenv("BROWSER_INFO_TITLE_GUESS", "yes")
    monkeypatch.setenv("BROWSER_INFO_METHOD", "cdp")

    cfg = ExtractorConfig.from_env()
    assert cfg.debug_port == 9333
    assert cfg.devtools_timeout == 30.0
    assert cfg.automation_timeout == 2.0
    assert cfg.native_script == str(script)
    assert cfg.title_guess is True
    assert cfg.default_method is ExtractionMethod.REMOTE_DEBUGGING


def test_blank_host_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    from browser_info.config import ExtractorConfig

    monkeypatch.setenv("BROWSER_INFO_DEBUG_HOST", "   ")
    monkeypatch.setenv("BROWSER_INFO_DEBUG_PORT", "0")
    cfg = ExtractorConfig.from_env()
    assert cfg.debug_host == "127.0.0.1"
    assert cfg.debug_port == 1


def test_devtools_client_built_from_config() -> None:
    from browser_info.config import ExtractorConfig
    from browser_info.devtools import DevToolsClient

    cfg = ExtractorConfig(debug_host="localhost", debug_port=9333, devtools_timeout=1.5)
    client = DevToolsClient.from_config(cfg)
    assert client.base_url == "http://localhost:9333"
    assert client.timeout == 1.5
