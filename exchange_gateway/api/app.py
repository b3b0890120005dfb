"""
FastAPI application factory.

The application owns no state of its own: it wraps an ExchangeGateway
stored on ``app.state.gateway``. With ``manage_lifecycle`` enabled the
lifespan connects the optional snapshot sink, starts the gateway and shuts
it down again on exit.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exchange_gateway import __version__
from exchange_gateway.api.errors import register_error_handlers
from exchange_gateway.api.routes import router
from exchange_gateway.gateway import ExchangeGateway
from exchange_gateway.storage.redis_sink import RedisSnapshotSink, SinkConnectionError

logger = structlog.get_logger(__name__)


def create_app(
    gateway: ExchangeGateway,
    sink: Optional[RedisSnapshotSink] = None,
    manage_lifecycle: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        gateway: Gateway serving every request.
        sink: Redis sink to connect on startup (already attached to the gateway).
        manage_lifecycle: Start and shut down the gateway with the app.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            logger.info("gateway_api_starting", adapters=gateway.exchange_ids)
            if sink is not None:
                try:
                    await sink.connect()
                except SinkConnectionError as e:
                    # Writes keep failing and being logged until Redis is back
                    logger.warning("snapshot_sink_unavailable", error=str(e))
            await gateway.start()

        yield

        if manage_lifecycle:
            logger.info("gateway_api_stopping")
            await gateway.shutdown()

    app = FastAPI(
        title="Exchange Gateway",
        description="Unified balance, ticker and order API across crypto exchanges",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)

    logger.info("fastapi_app_created", routes=len(app.routes))
    return app
