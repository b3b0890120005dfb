"""
Bybit exchange adapter (V5 unified API, spot category).

Every response is wrapped as {"retCode": 0, "retMsg": "OK", "result": {...},
"time": <ms>}; a non-zero retCode is an error even with HTTP 200.
"""

from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.bybit.normalizer import BybitNormalizer
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

# Timestamp/recv_window, invalid key, invalid signature, permission denied
AUTH_CODES = frozenset({10002, 10003, 10004, 10005})
RATE_LIMIT_CODES = frozenset({10006, 10018})
UNKNOWN_SYMBOL_CODE = 10001

CATEGORY = "spot"


class BybitAdapter(BaseExchangeAdapter):
    """Bybit exchange adapter."""

    EXCHANGE_ID = "bybit"
    FEATURES = frozenset({"spot", "futures", "options", "websocket", "trading"})
    PING_PATH = "/v5/market/time"
    SYMBOLS = ConcatenatedSymbolMapper()

    def _unwrap(self, response: RestResponse) -> Any:
        data = response.data
        if not isinstance(data, dict) or "retCode" not in data:
            raise ProtocolError(
                f"HTTP {response.status}: missing retCode envelope",
                exchange_id=self.exchange_id,
                raw=data,
            )

        code = data.get("retCode")
        if code == 0:
            return data

        message = data.get("retMsg", "")
        if code in AUTH_CODES:
            raise AuthenticationError(message, exchange_id=self.exchange_id, code=str(code))
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(message, exchange_id=self.exchange_id)
        self._reject(response, code, message)

    async def _fetch_balances(self) -> List[Balance]:
        envelope = await self._signed_request(
            "GET",
            "/v5/account/wallet-balance",
            {"accountType": "UNIFIED"},
        )
        return BybitNormalizer.normalize_balances(envelope.get("result"))

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        try:
            envelope = await self._public_request(
                "/v5/market/tickers",
                {"category": CATEGORY, "symbol": native},
            )
        except ExchangeRejectionError as e:
            if e.code == str(UNKNOWN_SYMBOL_CODE):
                return None
            raise
        entries = (envelope.get("result") or {}).get("list") or []
        if not entries:
            return None
        return BybitNormalizer.normalize_ticker(entries[0], symbol, envelope.get("time"))

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "category": CATEGORY,
            "symbol": native,
            "side": request.side.value.capitalize(),
            "orderType": request.order_type.value.capitalize(),
            "qty": request.quantity,
            "orderLinkId": request.client_order_id,
        }
        if request.order_type == OrderType.LIMIT:
            params["price"] = request.price
            params["timeInForce"] = "GTC"

        envelope = await self._signed_request("POST", "/v5/order/create", params)
        return BybitNormalizer.normalize_order(envelope.get("result"), symbol, request)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        envelope = await self._signed_request(
            "POST",
            "/v5/order/cancel",
            {"category": CATEGORY, "symbol": native, "orderId": order_id},
        )
        result = envelope.get("result") or {}
        return str(result.get("orderId")) == order_id

    # =========================================================================
    # STREAM
    # =========================================================================

    def heartbeat_message(self) -> Optional[Any]:
        return {"op": "ping"}

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [{"op": "subscribe", "args": [f"tickers.{native}" for native in natives]}]

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if not isinstance(message, dict):
            return []
        topic = message.get("topic", "")
        if not topic.startswith("tickers."):
            if message.get("op") == "subscribe" and message.get("success") is False:
                logger.warning("bybit_subscription_rejected", message=message.get("ret_msg"))
            return []
        try:
            symbol = self.SYMBOLS.to_canonical(topic.split(".", 1)[1])
        except InvalidSymbolError:
            return []
        return [BybitNormalizer.normalize_stream_ticker(message, symbol)]
