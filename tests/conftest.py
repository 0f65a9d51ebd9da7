import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app import providers
from app.config import settings
from app.main import app


class StubProvider:
    """Records outbound provider calls and answers them from a route table."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, url, handler):
        self.routes[(method, url)] = handler

    def payloads(self, url):
        return [json.loads(req.content) for req in self.calls if str(req.url) == url and req.method == "POST"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, str(request.url)))
        if handler is None:
            return httpx.Response(404, json={"detail": f"no stub for {request.method} {request.url}"})
        return handler(request)


@pytest.fixture
def stub(monkeypatch):
    stub_provider = StubProvider()
    monkeypatch.setattr(
        providers,
        "_http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(stub_provider)),
    )
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "FAL_KEY", "fal-test")
    monkeypatch.setattr(settings, "OPENAI_BASE_URL", "https://openai.test/v1")
    monkeypatch.setattr(settings, "FAL_QUEUE_URL", "https://queue.fal.test")
    monkeypatch.setattr(settings, "FAL_POLL_INTERVAL", 0)
    return stub_provider


@pytest.fixture
def client():
    return TestClient(app)
