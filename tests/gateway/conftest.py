import os

import httpx
import pytest
from fastapi.testclient import TestClient

from nim_proxy.gateway.app import create_app
from nim_proxy.gateway.config import GatewayConfig
from upstream_stub import UPSTREAM_BASE, StubUpstream

_UNPREFIXED_ENV = ("PORT", "NIM_BASE_URL", "NIM_API_KEY")


@pytest.fixture(autouse=True)
def clear_gateway_env(monkeypatch):
    for key in list(os.environ.keys()):
        if key.startswith("NIM_PROXY_") or key in _UNPREFIXED_ENV:
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def upstream():
    return StubUpstream()


@pytest.fixture
def make_client(upstream):
    def _make(**overrides) -> TestClient:
        overrides.setdefault("base_url", UPSTREAM_BASE)
        cfg = GatewayConfig(**overrides)
        app = create_app(cfg, transport=httpx.MockTransport(upstream))
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def auth():
    return {"Authorization": "Bearer nvapi-test-key"}
