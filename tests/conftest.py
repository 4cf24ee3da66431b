"""Shared fixtures: an app wired to in-memory stores and a fake upstream."""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from preset_gateway.config import GatewayConfig
from preset_gateway.persistence import MemoryStore
from preset_gateway.server import Stores, create_app

CLIENT_KEY = "sk-client-1"
ADMIN = ("admin", "pw")
PRESETS = [
    {"keywords": ["weather", "tokyo", "today"], "matchCount": 2, "response": "Sunny in Tokyo."},
]


class BodyStream(httpx.AsyncByteStream):
    """Unread upstream body, so the gateway can relay it as a stream."""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


class FakeUpstream:
    """Records requests and answers with a configurable response."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.json = {"id": "msg_upstream", "content": [{"type": "text", "text": "hi"}]}
        self.error = None
        self.headers = [("content-type", "application/json")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        body = b"" if self.json is None else json.dumps(self.json).encode()
        return httpx.Response(self.status, headers=self.headers, stream=BodyStream(body))


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def stores():
    return Stores(
        stats=MemoryStore(name="stats"),
        presets=MemoryStore(PRESETS, name="presets"),
        keys=MemoryStore(name="keys"),
    )


@pytest.fixture
def config():
    return GatewayConfig(
        target_url="https://upstream.test/api",
        upstream_api_key="up-secret",
        admin_user=ADMIN[0],
        admin_password=ADMIN[1],
        client_keys=[CLIENT_KEY],
        stats_save_delay=60,
    )


@pytest.fixture
def client(config, stores, upstream):
    app = create_app(config, stores=stores, transport=httpx.MockTransport(upstream))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def stats(client):
    return client.app.state.pipeline.stats
