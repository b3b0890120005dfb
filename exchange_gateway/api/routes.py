"""
HTTP routes for the exchange gateway.

Endpoints:
    GET    /health                                      - Process liveness
    GET    /status                                      - Adapter health and primary
    GET    /balance/{exchange_id}                       - Balances ("all" aggregates)
    GET    /ticker/{exchange_id}/{symbol}               - Ticker ("all" fans out)
    POST   /order                                       - Place an order
    DELETE /order/{exchange_id}/{symbol}/{order_id}     - Cancel an order
    POST   /adapter/{exchange_id}/restart               - Restart one adapter

Symbols use the canonical BASE/QUOTE form and may appear unescaped in the
path (``/ticker/binance/BTC/USDT``).
"""

from typing import Dict, List, Union

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from exchange_gateway.api.schemas import (
    AdapterStatus,
    CancelResponse,
    ErrorResponse,
    LivenessResponse,
    RestartResponse,
    StatusResponse,
)
from exchange_gateway.gateway import ALL_EXCHANGES, ExchangeGateway
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.results import ExchangeResult
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_gateway(request: Request) -> ExchangeGateway:
    """Gateway attached to the running application."""
    return request.app.state.gateway


@router.get(
    "/health",
    response_model=LivenessResponse,
    summary="Liveness probe",
)
async def liveness(gateway: ExchangeGateway = Depends(get_gateway)) -> LivenessResponse:
    return LivenessResponse(adapters=len(gateway.exchange_ids))


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Gateway status",
    description="Connection state and capabilities of every adapter, plus the primary.",
)
async def get_status(gateway: ExchangeGateway = Depends(get_gateway)) -> StatusResponse:
    return StatusResponse.from_status(gateway.status())


@router.get(
    "/balance/{exchange_id}",
    response_model=Union[List[Balance], Dict[str, ExchangeResult]],
    summary="Account balances",
    description="Balances on one exchange, or per-exchange results for 'all'.",
)
async def get_balance(
    exchange_id: str,
    gateway: ExchangeGateway = Depends(get_gateway),
) -> Union[List[Balance], Dict[str, ExchangeResult]]:
    if exchange_id == ALL_EXCHANGES:
        return await gateway.get_aggregated_balance()
    return await gateway.get_balance(exchange_id)


@router.get(
    "/ticker/{exchange_id}/{symbol:path}",
    response_model=Union[Ticker, Dict[str, ExchangeResult]],
    responses={404: {"model": ErrorResponse}},
    summary="Ticker",
    description="Ticker from one exchange, or per-exchange results for 'all'.",
)
async def get_ticker(
    exchange_id: str,
    symbol: str,
    gateway: ExchangeGateway = Depends(get_gateway),
):
    result = await gateway.get_ticker(exchange_id, symbol)
    if result is None:
        body = ErrorResponse(
            error="TickerNotFound",
            message=f"No ticker for {symbol}",
            exchange_id=exchange_id,
        )
        return JSONResponse(status_code=404, content=body.model_dump())
    return result


@router.post(
    "/order",
    response_model=Order,
    status_code=201,
    summary="Place an order",
    description="Routes to the named exchange, or to the primary adapter when omitted.",
)
async def create_order(
    request: OrderRequest,
    gateway: ExchangeGateway = Depends(get_gateway),
) -> Order:
    return await gateway.create_order(request)


@router.delete(
    "/order/{exchange_id}/{symbol:path}/{order_id}",
    response_model=CancelResponse,
    summary="Cancel an order",
)
async def cancel_order(
    exchange_id: str,
    symbol: str,
    order_id: str,
    gateway: ExchangeGateway = Depends(get_gateway),
) -> CancelResponse:
    cancelled = await gateway.cancel_order(exchange_id, symbol, order_id)
    return CancelResponse(cancelled=cancelled)


@router.post(
    "/adapter/{exchange_id}/restart",
    response_model=RestartResponse,
    summary="Restart an adapter",
)
async def restart_adapter(
    exchange_id: str,
    gateway: ExchangeGateway = Depends(get_gateway),
) -> RestartResponse:
    primary = await gateway.restart_adapter(exchange_id)
    return RestartResponse(
        adapter=AdapterStatus.from_health(gateway.health(exchange_id)),
        primary=primary,
    )
