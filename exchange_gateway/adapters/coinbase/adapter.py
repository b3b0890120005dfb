"""
Coinbase Exchange adapter.

Plain REST responses with no envelope; errors come back as
{"message": "..."} with a 4xx status. Products are "BASE-QUOTE" and are
not aliased (BTC/USDT and BTC/USD are distinct markets).
"""

import asyncio
import uuid
from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.coinbase.normalizer import CoinbaseNormalizer
from exchange_gateway.adapters.rest import RestResponse
from exchange_gateway.adapters.symbols import DelimitedSymbolMapper
from exchange_gateway.errors import ExchangeRejectionError, InvalidSymbolError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest, OrderType
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)


def _client_oid(value: Optional[str]) -> Optional[str]:
    """Coinbase requires client_oid in UUID form."""
    if value is None:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return value


class CoinbaseAdapter(BaseExchangeAdapter):
    """Coinbase Exchange adapter."""

    EXCHANGE_ID = "coinbase"
    FEATURES = frozenset({"spot", "websocket", "trading"})
    PING_PATH = "/time"
    SYMBOLS = DelimitedSymbolMapper("-")

    def _unwrap(self, response: RestResponse) -> Any:
        if response.ok:
            return response.data

        data = response.data if isinstance(response.data, dict) else {}
        self._reject(response, response.status, data.get("message"))

    async def _fetch_balances(self) -> List[Balance]:
        accounts = await self._signed_request("GET", "/accounts")
        return CoinbaseNormalizer.normalize_balances(accounts)

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        try:
            ticker, stats = await asyncio.gather(
                self._public_request(f"/products/{native}/ticker"),
                self._public_request(f"/products/{native}/stats"),
            )
        except ExchangeRejectionError as e:
            if e.code == "404":
                return None
            raise
        if not ticker:
            return None
        return CoinbaseNormalizer.normalize_ticker(ticker, stats, symbol)

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "client_oid": _client_oid(request.client_order_id),
            "product_id": native,
            "side": request.side.value,
            "type": request.order_type.value,
            "size": request.quantity,
        }
        if request.order_type == OrderType.LIMIT:
            params["price"] = request.price
            params["time_in_force"] = "GTC"

        data = await self._signed_request("POST", "/orders", params)
        return CoinbaseNormalizer.normalize_order(data, symbol)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        data = await self._signed_request(
            "DELETE",
            f"/orders/{order_id}",
            {"product_id": native},
        )
        # The cancelled order id is echoed back as a bare string
        return data == order_id

    # =========================================================================
    # STREAM
    # =========================================================================

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [{"type": "subscribe", "product_ids": natives, "channels": ["ticker"]}]

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if not isinstance(message, dict):
            return []
        kind = message.get("type")
        if kind == "error":
            logger.warning("coinbase_stream_error", message=message.get("message"))
            return []
        if kind != "ticker":
            return []
        try:
            symbol = self.SYMBOLS.to_canonical(message.get("product_id", ""))
        except InvalidSymbolError:
            return []
        return [CoinbaseNormalizer.normalize_stream_ticker(message, symbol)]
