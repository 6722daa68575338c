"""Shared fixtures for API-level tests.

The FBR gateway is replaced by an ``httpx.MockTransport`` routed through
:class:`GatewayStub`; tests register responses per gateway path.
"""

import importlib
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from fbrinvoicing.api.security import set_rate_limit
from fbrinvoicing.api.tenants import reset_registry

SANDBOX_TOKEN = "sandbox-token-0123456789"


class GatewayStub:
    """Records gateway requests and answers from a path -> response table."""

    def __init__(self) -> None:
        self.requests = []
        self.routes = {}

    def route(self, path, response) -> None:
        self.routes[path] = response

    def calls_to(self, path):
        return [r for r in self.requests if r.url.path == f"/{path}"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get(request.url.path.lstrip("/"))
        if response is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(response):
            return response(request)
        return httpx.Response(200, json=response)


@pytest.fixture()
def gateway() -> GatewayStub:
    return GatewayStub()


@pytest.fixture()
def system_app(monkeypatch, tmp_path, gateway):
    monkeypatch.setenv("FBR_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("FBR_API_KEY", "system-key")
    monkeypatch.setenv("FBR_SANDBOX_TOKEN", SANDBOX_TOKEN)
    monkeypatch.delenv("FBR_PRODUCTION_TOKEN", raising=False)
    monkeypatch.setenv("FBR_ADMIN_KEYS", "admin-key")
    monkeypatch.setenv("FBR_CACHE_BACKEND", "memory")
    monkeypatch.setenv("FBR_BASE_URL", "https://gw.example.test")
    monkeypatch.setenv("FBR_RATE_LIMIT_PER_MINUTE", "100")
    reset_registry()
    set_rate_limit(100)

    import fbrinvoicing.api.app as app_mod
    from fbrinvoicing.bootstrap import build_services
    from fbrinvoicing.config import Settings
    from fbrinvoicing.refdata.retry import RetryPolicy

    app_mod = importlib.reload(app_mod)
    app_mod.app.state.services = build_services(
        Settings.from_env(),
        transport=httpx.MockTransport(gateway),
        retry_policy=RetryPolicy.immediate(2),
    )
    yield app_mod.app
    reset_registry()


@pytest.fixture()
def system_client(system_app) -> Iterator[TestClient]:
    with TestClient(system_app, headers={"X-API-Key": "system-key"}) as client:
        yield client

