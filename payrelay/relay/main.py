"""HTTP surface of the payment relay.

Routes payment notifications to the translation pipeline, rejects other verbs
on the payment paths, and serves static assets for everything else.
"""

import argparse
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any
from uuid import uuid4

import anyio.to_thread
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from payrelay.common.config import RelaySettings, load_settings, resolve_port
from payrelay.common.logging import configure_logging, logger, request_id_ctx
from payrelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
)
from payrelay.common.startup import log_startup_banner, log_startup_config
from payrelay.common.tracing import instrument_app, setup_tracing
from payrelay.relay import codec
from payrelay.relay.backend import BackendClient
from payrelay.relay.codec import RelayJSONResponse
from payrelay.relay.errors import MethodNotAllowed, RelayError
from payrelay.relay.pipeline import PaymentPipeline
from payrelay.relay.static import StaticFileResolver

PROCESS_PATH = "/api/payment/process"
VERIFY_PATH = "/api/payment/verify"
REJECTED_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"]

router = APIRouter()


async def read_payload(request: Request) -> dict[str, Any]:
    """Read the raw body and parse it with the relay codec."""

    body = await request.body()
    logger.debug("inbound body path=%s body=%s", request.url.path, body)
    return codec.parse(body)


def get_pipeline(request: Request) -> PaymentPipeline:
    return request.app.state.pipeline


@router.post(PROCESS_PATH)
def process_payment(
    payload: dict[str, Any] = Depends(read_payload),
    pipeline: PaymentPipeline = Depends(get_pipeline),
):
    """Validate, auto-approve or forward one processor notification."""

    return pipeline.process(payload)


@router.post(VERIFY_PATH)
def verify_payment(
    payload: dict[str, Any] = Depends(read_payload),
    pipeline: PaymentPipeline = Depends(get_pipeline),
):
    """Lightweight validity check; the backend is not contacted."""

    return pipeline.verify(payload)


@router.api_route(PROCESS_PATH, methods=REJECTED_METHODS, include_in_schema=False)
@router.api_route(VERIFY_PATH, methods=REJECTED_METHODS, include_in_schema=False)
def reject_method(request: Request):
    raise MethodNotAllowed(request.method)


@router.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}


@router.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@router.get("/{path:path}", include_in_schema=False)
def static_file(path: str, request: Request):
    return request.app.state.static_files.serve(path)


async def relay_error_handler(request: Request, exc: RelayError):
    """Map relay errors to their status code and the uniform failure body."""

    logger.warning("request rejected path=%s status=%s: %s", request.url.path, exc.status_code, exc.message)
    headers = {"Allow": "POST"} if isinstance(exc, MethodNotAllowed) else None
    return RelayJSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Framework-raised errors (unknown verb, unmatched route) in the uniform failure body."""

    logger.warning("request rejected path=%s status=%s: %s", request.url.path, exc.status_code, exc.detail)
    return RelayJSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=exc.headers,
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    """Last resort: log detail server-side, return a generic message."""

    logger.error("unexpected error path=%s: %s", request.url.path, exc, exc_info=exc)
    return RelayJSONResponse(status_code=500, content={"success": False, "message": "internal server error"})


def create_app(settings: RelaySettings, backend: BackendClient | None = None) -> FastAPI:
    """Build the relay application around one immutable settings object."""

    backend = backend or BackendClient(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Size the worker pool and release the backend client on shutdown."""

        anyio.to_thread.current_default_thread_limiter().total_tokens = settings.worker_pool_size
        yield
        backend.close()

    app = FastAPI(title="Payment Relay", lifespan=lifespan, default_response_class=RelayJSONResponse)
    app.state.settings = settings
    app.state.pipeline = PaymentPipeline(settings, backend)
    app.state.static_files = StaticFileResolver(
        settings.static_dir,
        settings.index_document,
        settings.max_static_file_bytes,
    )
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        """Tag the request with a correlation id and record count and latency."""

        start = perf_counter()
        request_id = request.headers.get("x-correlation-id") or str(uuid4())
        request_id_ctx.set(request_id)
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers["x-correlation-id"] = request_id
            response.headers["Connection"] = "close"
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    app.include_router(router)
    instrument_app(app)
    return app


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint: `payrelay [port] [--host HOST] [--properties FILE]`."""

    parser = argparse.ArgumentParser(prog="payrelay", description="Payment notification relay")
    parser.add_argument("port", nargs="?", help="listening port (overrides RELAY_PORT)")
    parser.add_argument("--host", default=None)
    parser.add_argument("--properties", default=None, help="path to a relay.properties file")
    args = parser.parse_args(argv)

    settings = load_settings(args.properties)
    configure_logging(settings.service_name, settings.log_level)
    if settings.properties_file:
        logger.info("properties file loaded path=%s", settings.properties_file)
    else:
        logger.warning("properties file not found; using defaults")
    port = resolve_port(args.port, settings)
    host = args.host or settings.host

    setup_tracing(settings.service_name, settings.otel_exporter_otlp_endpoint)
    log_startup_config(
        settings.service_name,
        [
            "RELAY_PORT",
            "RELAY_BACKEND_BASE_URL",
            "RELAY_BACKEND_PATH",
            "RELAY_BACKEND_API_KEY",
            "RELAY_AUTO_APPROVE_THRESHOLD",
            "RELAY_STATIC_DIR",
            "RELAY_WORKER_POOL_SIZE",
        ],
    )
    app = create_app(settings)
    log_startup_banner(host, port, settings.backend_url)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
