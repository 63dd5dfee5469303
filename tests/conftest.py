"""Shared fixtures: settings, a recording stub backend, and an app client."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from payrelay.common.config import RelaySettings
from payrelay.relay.backend import BackendClient
from payrelay.relay.main import create_app

BACKEND_BASE_URL = "http://game-server.test"


class StubBackend:
    """Records outbound requests and answers with a canned reply or error."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.reply: dict | str = {"success": True}
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, str):
            return httpx.Response(self.status_code, text=self.reply)
        return httpx.Response(self.status_code, json=self.reply)

    def bodies(self) -> list[dict]:
        return [json.loads(call.content) for call in self.calls]


@pytest.fixture
def settings(tmp_path) -> RelaySettings:
    static_dir = tmp_path / "static"
    static_dir.mkdir()
    return RelaySettings(
        _env_file=None,
        backend_base_url=BACKEND_BASE_URL,
        static_dir=str(static_dir),
    )


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def backend_client(settings, stub_backend) -> BackendClient:
    client = BackendClient(settings, transport=httpx.MockTransport(stub_backend.handler))
    yield client
    client.close()


@pytest.fixture
def client(settings, backend_client) -> TestClient:
    return TestClient(create_app(settings, backend=backend_client))
