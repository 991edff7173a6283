from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from rrfbridge.config import get_settings

RRF_ENV_VARS = (
    "RRF_BRIDGE_CONFIG",
    "RRF_PASSWORD",
    "RRF_DEBUG",
    "RRF_BROKER",
    "RRF_CLIENT_ID",
    "RRF_TOPIC_PREFIX",
    "RRF_DISCOVERY_TOPIC_PREFIX",
    "RRF_INTERVAL",
    "RRF_DISCOVERY_INTERVAL",
    "RRF_CONNECT_RETRY_DELAY",
    "RRF_KEEPALIVE",
)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    for name in RRF_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@asynccontextmanager
async def _serve(app: web.Application) -> AsyncIterator[str]:
    server = TestServer(app, host="127.0.0.1")
    await server.start_server()
    try:
        yield f"{server.host}:{server.port}"
    finally:
        await server.close()


@pytest.fixture
def serve_app():
    """Async context manager serving an aiohttp app, yielding ``host:port``."""
    return _serve
