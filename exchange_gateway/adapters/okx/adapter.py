"""
OKX exchange adapter (API v5).

Responses are wrapped as {"code": "0", "msg": "", "data": [...]}. Trade
endpoints report per-item results through sCode/sMsg, with the top-level
code set to "1" when the item failed.

Stream keepalive is the literal text "ping", answered with "pong".
"""

from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.okx.normalizer import OKXNormalizer
from exchange_gateway.adapters.rest import RestResponse
from exchange_gateway.adapters.symbols import DelimitedSymbolMapper
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

# Timestamp expired, invalid key/timestamp/sign/authorization
AUTH_CODES = frozenset({"50102", "50111", "50112", "50113", "50114"})
RATE_LIMIT_CODES = frozenset({"50011", "50061"})
UNKNOWN_INSTRUMENT_CODE = "51001"


def _first(envelope: Dict[str, Any]) -> Dict[str, Any]:
    items = envelope.get("data") or []
    return items[0] if items and isinstance(items[0], dict) else {}


class OKXAdapter(BaseExchangeAdapter):
    """OKX exchange adapter (spot, cash trade mode)."""

    EXCHANGE_ID = "okx"
    FEATURES = frozenset({"spot", "futures", "options", "websocket", "trading"})
    PING_PATH = "/api/v5/public/time"
    SYMBOLS = DelimitedSymbolMapper("-")

    def _unwrap(self, response: RestResponse) -> Any:
        data = response.data
        if not isinstance(data, dict) or "code" not in data:
            raise ProtocolError(
                f"HTTP {response.status}: missing code envelope",
                exchange_id=self.exchange_id,
                raw=data,
            )

        code = str(data.get("code"))
        message = data.get("msg", "")
        if code == "0":
            return data

        # Item-level failure carries the specific reason
        item = _first(data)
        if item.get("sCode") not in (None, "", "0"):
            code = str(item["sCode"])
            message = item.get("sMsg") or message

        if code in AUTH_CODES:
            raise AuthenticationError(message, exchange_id=self.exchange_id, code=code)
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(message, exchange_id=self.exchange_id)
        self._reject(response, code, message)

    async def _fetch_balances(self) -> List[Balance]:
        envelope = await self._signed_request("GET", "/api/v5/account/balance")
        balances: List[Balance] = []
        for account in envelope.get("data") or []:
            balances.extend(OKXNormalizer.normalize_balances(account))
        return balances

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        try:
            envelope = await self._public_request("/api/v5/market/ticker", {"instId": native})
        except ExchangeRejectionError as e:
            if e.code == UNKNOWN_INSTRUMENT_CODE:
                return None
            raise
        item = _first(envelope)
        if not item:
            return None
        return OKXNormalizer.normalize_ticker(item, symbol)

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "instId": native,
            "tdMode": "cash",
            "side": request.side.value,
            "ordType": request.order_type.value,
            "sz": request.quantity,
            "clOrdId": request.client_order_id,
        }
        if request.order_type == OrderType.LIMIT:
            params["px"] = request.price
        else:
            # Market buys would otherwise size in quote currency
            params["tgtCcy"] = "base_ccy"

        envelope = await self._signed_request("POST", "/api/v5/trade/order", params)
        return OKXNormalizer.normalize_order(_first(envelope), symbol, request)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        envelope = await self._signed_request(
            "POST",
            "/api/v5/trade/cancel-order",
            {"instId": native, "ordId": order_id},
        )
        return _first(envelope).get("sCode") == "0"

    # =========================================================================
    # STREAM
    # =========================================================================

    def heartbeat_message(self) -> Optional[Any]:
        return "ping"

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [
            {
                "op": "subscribe",
                "args": [{"channel": "tickers", "instId": native} for native in natives],
            }
        ]

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if message == "pong" or not isinstance(message, dict):
            return []
        if message.get("event") == "error":
            logger.warning(
                "okx_stream_error",
                code=message.get("code"),
                message=message.get("msg"),
            )
            return []

        arg = message.get("arg") or {}
        if arg.get("channel") != "tickers" or "data" not in message:
            return []

        tickers = []
        for item in message["data"]:
            try:
                symbol = self.SYMBOLS.to_canonical(item.get("instId", arg.get("instId", "")))
            except InvalidSymbolError:
                continue
            tickers.append(OKXNormalizer.normalize_stream_ticker(item, symbol))
        return tickers
