"""Outbound HTTP client for the game-server backend.

One POST per call, fixed connect/read timeouts, JSON in and out. Transport
failures raise `BackendUnreachable`; HTTP-level failures are returned as the
backend's own structured error payload.
"""

from time import perf_counter
from typing import Any

import httpx

from payrelay.common.config import RelaySettings
from payrelay.common.logging import logger
from payrelay.common.metrics import backend_errors_total, backend_request_duration_seconds
from payrelay.relay import codec
from payrelay.relay.errors import BackendUnreachable, MalformedPayload


class BackendClient:
    """Thin wrapper over a pooled `httpx.Client`."""

    def __init__(self, settings: RelaySettings, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        timeout = httpx.Timeout(
            settings.backend_read_timeout_seconds,
            connect=settings.backend_connect_timeout_seconds,
        )
        headers = {
            "Content-Type": "application/json; charset=UTF-8",
            "Accept": "application/json",
        }
        if settings.backend_api_key:
            headers["X-API-KEY"] = settings.backend_api_key
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    def post(self, url: str, headers: dict[str, str] | None, body: dict[str, Any]) -> dict[str, Any]:
        """POST `body` as JSON and return the parsed response object."""

        started = perf_counter()
        try:
            resp = self._client.post(url, headers=headers, content=codec.serialize(body).encode("utf-8"))
        except httpx.TransportError as exc:
            backend_errors_total.labels(service=self.settings.service_name, kind="unreachable").inc()
            raise BackendUnreachable(url, f"{type(exc).__name__}: {exc}") from exc
        finally:
            backend_request_duration_seconds.labels(service=self.settings.service_name).observe(
                max(0.0, perf_counter() - started)
            )

        ok = resp.is_success
        logger.debug("backend status=%s body=%s", resp.status_code, resp.text)
        if not ok:
            logger.warning("backend returned status=%s url=%s", resp.status_code, url)
        if not resp.content.strip():
            backend_errors_total.labels(service=self.settings.service_name, kind="empty").inc()
            return {
                "success": False,
                "error": "EMPTY_RESPONSE",
                "message": "backend returned an empty response",
            }
        try:
            payload = codec.parse(resp.content)
        except MalformedPayload as exc:
            backend_errors_total.labels(service=self.settings.service_name, kind="invalid").inc()
            logger.error("backend returned a non-object body status=%s: %s", resp.status_code, exc)
            return {
                "success": False,
                "error": "INVALID_RESPONSE",
                "message": "backend returned a response that is not a JSON object",
            }
        if "success" not in payload:
            payload["success"] = ok
        return payload

    def forward_payment(self, record: dict[str, Any]) -> dict[str, Any]:
        """Send an enriched payment record to the configured backend endpoint."""

        return self.post(self.settings.backend_url, None, record)

    def close(self) -> None:
        self._client.close()
