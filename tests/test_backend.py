"""Outbound client behavior against a stub transport."""

import httpx
import pytest

from payrelay.relay.backend import BackendClient
from payrelay.relay.errors import BackendUnreachable


def test_forward_posts_json_with_headers(backend_client, stub_backend, settings):
    stub_backend.reply = {"success": True, "newCreditBalance": 10}

    result = backend_client.forward_payment({"userId": "u1", "creditAmount": "10"})

    assert result == {"success": True, "newCreditBalance": 10}
    call = stub_backend.calls[0]
    assert call.method == "POST"
    assert str(call.url) == settings.backend_url
    assert call.headers["content-type"].startswith("application/json")
    assert call.headers["accept"] == "application/json"
    assert "x-api-key" not in call.headers


def test_api_key_header_sent_when_configured(settings, stub_backend):
    keyed = settings.model_copy(update={"backend_api_key": "secret"})
    client = BackendClient(keyed, transport=httpx.MockTransport(stub_backend.handler))
    client.forward_payment({"userId": "u1"})
    client.close()

    assert stub_backend.calls[0].headers["x-api-key"] == "secret"


def test_success_flag_added_from_status(backend_client, stub_backend):
    stub_backend.reply = {"balance": 1}
    assert backend_client.post("http://game-server.test/x", None, {})["success"] is True

    stub_backend.status_code = 500
    assert backend_client.post("http://game-server.test/x", None, {})["success"] is False


def test_empty_body_is_reported(backend_client, stub_backend):
    stub_backend.reply = ""

    result = backend_client.post("http://game-server.test/x", None, {})

    assert result["success"] is False
    assert result["error"] == "EMPTY_RESPONSE"


def test_non_json_body_is_reported(backend_client, stub_backend):
    stub_backend.status_code = 502
    stub_backend.reply = "<html>bad gateway</html>"

    result = backend_client.post("http://game-server.test/x", None, {})

    assert result["success"] is False
    assert result["error"] == "INVALID_RESPONSE"


@pytest.mark.parametrize(
    "error",
    [httpx.ConnectError("refused"), httpx.ConnectTimeout("slow"), httpx.ReadTimeout("slow")],
)
def test_transport_failures_raise_unreachable(backend_client, stub_backend, error):
    stub_backend.error = error

    with pytest.raises(BackendUnreachable) as excinfo:
        backend_client.post("http://game-server.test/x", None, {})

    assert type(error).__name__ in excinfo.value.reason


def test_timeouts_are_configured(backend_client):
    timeout = backend_client._client.timeout

    assert timeout.connect == 10.0
    assert timeout.read == 10.0
