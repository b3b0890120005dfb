"""
Gateway service entry point.

Loads configuration and credentials, builds the ExchangeGateway (with the
Redis snapshot sink when enabled) and serves the HTTP API with Uvicorn.

Usage:
    python -m services.gateway.main

Environment Variables:
    GATEWAY_CONFIG_DIR: Configuration directory (default: config)
    <EXCHANGE>_API_KEY / _API_SECRET / _PASSPHRASE: Exchange credentials
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    LOG_LEVEL: Overrides the configured log level
"""

import sys
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from exchange_gateway import __version__
from exchange_gateway.api import create_app
from exchange_gateway.config import AppConfig, ConfigLoadError, load_config, load_credentials
from exchange_gateway.gateway import ExchangeGateway
from exchange_gateway.logging_config import setup_logging
from exchange_gateway.storage import RedisSnapshotSink


def build_app(config: AppConfig) -> FastAPI:
    """
    Wire configuration, credentials, sink and gateway into an application.

    Args:
        config: Loaded application configuration.

    Returns:
        FastAPI: Application whose lifespan starts and stops the gateway.
    """
    credentials = load_credentials(config.get_enabled_exchanges())

    sink: Optional[RedisSnapshotSink] = None
    if config.sink.enabled:
        sink = RedisSnapshotSink(config.redis, config.sink)

    gateway = ExchangeGateway.from_config(config, credentials, sink=sink)
    return create_app(gateway, sink=sink)


def main() -> None:
    """Load configuration and run the API server."""
    try:
        config = load_config()
    except ConfigLoadError as e:
        setup_logging()
        structlog.get_logger(__name__).error(
            "config_load_failed",
            error=e.message,
            file_path=str(e.file_path) if e.file_path else None,
        )
        sys.exit(1)

    setup_logging(config.logging.level, config.logging.format)
    logger = structlog.get_logger(__name__)
    logger.info(
        "gateway_service_starting",
        version=__version__,
        exchanges=config.get_enabled_exchanges(),
        sink_enabled=config.sink.enabled,
    )

    app = build_app(config)
    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.logging.level.value.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
