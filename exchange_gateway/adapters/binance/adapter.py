"""
Binance exchange adapter.

Spot REST API v3 plus the public ticker stream.

Endpoints:
    GET    /api/v3/time          reachability
    GET    /api/v3/ticker/24hr   ticker
    GET    /api/v3/account       balances (signed)
    POST   /api/v3/order         place order (signed)
    DELETE /api/v3/order         cancel order (signed)

Errors come back as {"code": -2015, "msg": "..."} with a 4xx status.

Example:
    >>> from exchange_gateway.adapters.binance import BinanceAdapter
    >>> adapter = BinanceAdapter(config.get_exchange("binance"), credential)
    >>> await adapter.initialize()
    >>> ticker = await adapter.get_ticker("BTC/USDT")
"""

from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.binance.normalizer import BinanceNormalizer
from exchange_gateway.adapters.rest import RestResponse
from exchange_gateway.adapters.symbols import ConcatenatedSymbolMapper
from exchange_gateway.errors import (
    AuthenticationError,
    ExchangeRejectionError,
    InvalidSymbolError,
    ProtocolError,
    RateLimitError,
)
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest, OrderType
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)

# Invalid signature, invalid key, key lacks permission / IP not whitelisted
AUTH_CODES = frozenset({-1022, -2014, -2015})
# Too many requests, too many orders
RATE_LIMIT_CODES = frozenset({-1003, -1015})
UNKNOWN_SYMBOL_CODE = -1121


class BinanceAdapter(BaseExchangeAdapter):
    """
    Binance exchange adapter.

    Signed parameters travel in the query string for every verb; symbols
    are concatenated ("BTCUSDT").
    """

    EXCHANGE_ID = "binance"
    FEATURES = frozenset({"spot", "futures", "websocket", "trading"})
    PING_PATH = "/api/v3/time"
    SYMBOLS = ConcatenatedSymbolMapper()

    def _unwrap(self, response: RestResponse) -> Any:
        if response.ok:
            return response.data

        data = response.data
        if not isinstance(data, dict) or "code" not in data:
            raise ProtocolError(
                f"HTTP {response.status} without error body",
                exchange_id=self.exchange_id,
                raw=data,
            )

        code = data.get("code")
        message = data.get("msg", "")
        if code in AUTH_CODES:
            raise AuthenticationError(message, exchange_id=self.exchange_id, code=str(code))
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(message, exchange_id=self.exchange_id)
        self._reject(response, code, message)

    async def _fetch_balances(self) -> List[Balance]:
        data = await self._signed_request("GET", "/api/v3/account")
        return BinanceNormalizer.normalize_balances(data)

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        try:
            data = await self._public_request("/api/v3/ticker/24hr", {"symbol": native})
        except ExchangeRejectionError as e:
            if e.code == str(UNKNOWN_SYMBOL_CODE):
                return None
            raise
        if not data:
            return None
        return BinanceNormalizer.normalize_ticker(data, symbol)

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "symbol": native,
            "side": request.side.value.upper(),
            "type": request.order_type.value.upper(),
            "quantity": request.quantity,
            "newClientOrderId": request.client_order_id,
            "newOrderRespType": "RESULT",
        }
        if request.order_type == OrderType.LIMIT:
            params["price"] = request.price
            params["timeInForce"] = "GTC"

        data = await self._signed_request("POST", "/api/v3/order", params)
        return BinanceNormalizer.normalize_order(data, symbol)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        data = await self._signed_request(
            "DELETE",
            "/api/v3/order",
            {"symbol": native, "orderId": order_id},
        )
        return isinstance(data, dict) and data.get("status") in ("CANCELED", "PENDING_CANCEL")

    # =========================================================================
    # STREAM
    # =========================================================================

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [
            {
                "method": "SUBSCRIBE",
                "params": [f"{native.lower()}@ticker" for native in natives],
                "id": 1,
            }
        ]

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if not isinstance(message, dict):
            return []
        # Combined-stream frames wrap the event
        event = message.get("data", message)
        if not isinstance(event, dict) or event.get("e") != "24hrTicker":
            return []
        try:
            symbol = self.SYMBOLS.to_canonical(event.get("s", ""))
        except InvalidSymbolError:
            logger.debug("binance_stream_symbol_skipped", native=event.get("s"))
            return []
        return [BinanceNormalizer.normalize_stream_ticker(event, symbol)]
