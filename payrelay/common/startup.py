"""Startup-time helpers for safe config logging."""

import os

from payrelay.common.logging import logger


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN"]):
        return "<redacted>"
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)


def log_startup_banner(host: str, port: int, backend_url: str) -> None:
    """Announce where the relay listens and where it forwards."""

    logger.info("payment relay listening on http://%s:%s/", host, port)
    logger.info("payment processing endpoint: http://%s:%s/api/payment/process", host, port)
    logger.info("backend endpoint: %s", backend_url)
