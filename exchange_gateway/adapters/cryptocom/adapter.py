"""
Crypto.com Exchange adapter (v1 API).

Private calls are JSON-RPC style: every request is a POST to
/<method> carrying {id, method, api_key, params, nonce, sig}. Responses are
{"id": ..., "method": ..., "code": 0, "result": {...}}.

The market stream sends {"method": "public/heartbeat", "id": N} roughly
every 30 seconds and drops the connection unless it is answered with
{"method": "public/respond-heartbeat", "id": N}.
"""

from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.cryptocom.normalizer import CryptoComNormalizer
from exchange_gateway.adapters.rest import RestResponse
from exchange_gateway.adapters.symbols import DelimitedSymbolMapper
from exchange_gateway.errors import (
    AuthenticationError,
    InvalidSymbolError,
    ProtocolError,
    RateLimitError,
)
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest, OrderType
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)

# Authentication failure, nonce out of window, IP not allowed
AUTH_CODES = frozenset({40101, 40102, 40103})
RATE_LIMIT_CODES = frozenset({42901})

HEARTBEAT_METHOD = "public/heartbeat"
TICKER_CHANNEL = "ticker."


class CryptoComAdapter(BaseExchangeAdapter):
    """Crypto.com Exchange adapter."""

    EXCHANGE_ID = "cryptocom"
    FEATURES = frozenset({"spot", "websocket", "trading"})
    PING_PATH = "/public/get-tickers"
    SYMBOLS = DelimitedSymbolMapper("_")

    def _unwrap(self, response: RestResponse) -> Any:
        data = response.data
        if not isinstance(data, dict) or "code" not in data:
            raise ProtocolError(
                f"HTTP {response.status}: missing code envelope",
                exchange_id=self.exchange_id,
                raw=data,
            )

        code = data.get("code")
        if code == 0:
            return data.get("result") or {}

        message = data.get("message", "")
        if code in AUTH_CODES:
            raise AuthenticationError(message, exchange_id=self.exchange_id, code=str(code))
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(message, exchange_id=self.exchange_id)
        self._reject(response, code, message)

    async def _rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._signed_request(method, f"/{method}", params, http_method="POST")

    async def _check_reachability(self) -> None:
        await self._public_request(self.PING_PATH, {"instrument_name": "BTC_USDT"})

    async def _fetch_balances(self) -> List[Balance]:
        result = await self._rpc("private/user-balance")
        return CryptoComNormalizer.normalize_balances(result)

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        result = await self._public_request(self.PING_PATH, {"instrument_name": native})
        for item in result.get("data") or []:
            if item.get("i") == native:
                return CryptoComNormalizer.normalize_ticker(item, symbol)
        return None

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "instrument_name": native,
            "side": request.side.value.upper(),
            "type": request.order_type.value.upper(),
            "quantity": request.quantity,
            "client_oid": request.client_order_id,
        }
        if request.order_type == OrderType.LIMIT:
            params["price"] = request.price

        result = await self._rpc("private/create-order", params)
        return CryptoComNormalizer.normalize_order(result, symbol, request)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        await self._rpc(
            "private/cancel-order",
            {"instrument_name": native, "order_id": order_id},
        )
        # Cancellation is asynchronous; code 0 means the request was accepted
        return True

    # =========================================================================
    # STREAM
    # =========================================================================

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [
            {
                "id": 1,
                "method": "subscribe",
                "params": {"channels": [f"{TICKER_CHANNEL}{native}" for native in natives]},
                "nonce": self._engine.next_nonce(),
            }
        ]

    def _stream_reply(self, message: Any) -> Optional[Any]:
        if isinstance(message, dict) and message.get("method") == HEARTBEAT_METHOD:
            return {"id": message.get("id"), "method": "public/respond-heartbeat"}
        return None

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if not isinstance(message, dict) or message.get("method") != "subscribe":
            return []
        if message.get("code", 0) != 0:
            logger.warning(
                "cryptocom_subscription_error",
                code=message.get("code"),
                message=message.get("message"),
            )
            return []

        result = message.get("result") or {}
        if result.get("channel") != "ticker":
            return []
        try:
            symbol = self.SYMBOLS.to_canonical(result.get("instrument_name", ""))
        except InvalidSymbolError:
            return []
        return [
            CryptoComNormalizer.normalize_stream_ticker(item, symbol)
            for item in result.get("data") or []
        ]
