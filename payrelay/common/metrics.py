"""Prometheus metric definitions for the relay."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
relay_payments_total = Counter(
    "relay_payments_total",
    "Payment notifications handled, by outcome",
    ["service", "outcome"],
)
backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Outbound backend call duration seconds",
    ["service"],
)
backend_errors_total = Counter(
    "backend_errors_total",
    "Outbound backend calls that did not return a usable body",
    ["service", "kind"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
