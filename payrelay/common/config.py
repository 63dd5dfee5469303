"""Environment- and properties-driven settings for the relay process.

The process builds one `RelaySettings` at startup and hands it to every
component that needs it. Values come from `RELAY_*` environment variables,
then an optional `relay.properties` file (`key=value` lines), then `.env`.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from payrelay.common.logging import logger

DEFAULT_PROPERTIES_FILE = "relay.properties"


class RelaySettings(BaseSettings):
    """Typed, immutable view of runtime configuration."""

    service_name: str = "payment-relay"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    default_port: int = 8080
    worker_pool_size: int = 10
    backend_base_url: str = "http://localhost:7998"
    backend_path: str = "/api/payment/process"
    backend_api_key: str | None = None
    backend_connect_timeout_seconds: float = 10.0
    backend_read_timeout_seconds: float = 10.0
    auto_approve_threshold: int = 300
    payment_processor: str = "TossPayments"
    payment_method: str = "toss"
    static_dir: str = "static"
    index_document: str = "index.html"
    max_static_file_bytes: int = 10 * 1024 * 1024
    otel_exporter_otlp_endpoint: str = ""
    properties_file: str | None = None
    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=(".env", DEFAULT_PROPERTIES_FILE),
        extra="ignore",
        frozen=True,
    )

    @property
    def backend_url(self) -> str:
        return self.backend_base_url.rstrip("/") + "/" + self.backend_path.lstrip("/")


def load_settings(properties_file: str | None = None) -> RelaySettings:
    """Build settings once; a missing properties file falls back to defaults."""

    path = Path(properties_file or os.getenv("RELAY_PROPERTIES_FILE") or DEFAULT_PROPERTIES_FILE)
    if path.is_file():
        return RelaySettings(_env_file=(".env", path), properties_file=str(path))
    return RelaySettings(_env_file=".env", properties_file=None)


def resolve_port(cli_value: str | None, settings: RelaySettings) -> int:
    """Pick the listening port: CLI argument, then `RELAY_PORT`, then default.

    Invalid input is not fatal; it is logged and the configured port is used.
    """

    for source, raw in (("argument", cli_value), ("environment", os.getenv("RELAY_PORT"))):
        if raw is None or raw == "":
            continue
        try:
            port = int(raw)
        except ValueError:
            logger.warning("invalid port %s=%r; using default %s", source, raw, settings.default_port)
            return settings.default_port
        if not 0 < port < 65536:
            logger.warning("port out of range %s=%s; using default %s", source, port, settings.default_port)
            return settings.default_port
        return port
    return settings.default_port
