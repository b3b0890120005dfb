"""
KuCoin exchange adapter (spot API v1).

Responses are wrapped as {"code": "200000", "data": ...}. The WebSocket
endpoint needs a short-lived token from POST /api/v1/bullet-private, so the
stream URL is resolved again before every connection attempt.
"""

from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.adapters.base import BaseExchangeAdapter
from exchange_gateway.adapters.kucoin.normalizer import KuCoinNormalizer
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

SUCCESS_CODE = "200000"
# Missing headers, bad timestamp, unknown key, bad passphrase, bad sign, IP, denied
AUTH_CODES = frozenset({"400001", "400002", "400003", "400004", "400005", "400006", "400007"})
RATE_LIMIT_CODES = frozenset({"429000"})

SNAPSHOT_TOPIC = "/market/snapshot:"


class KuCoinAdapter(BaseExchangeAdapter):
    """KuCoin exchange adapter."""

    EXCHANGE_ID = "kucoin"
    FEATURES = frozenset({"spot", "futures", "websocket", "trading"})
    PING_PATH = "/api/v1/timestamp"
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
        if code == SUCCESS_CODE:
            return data.get("data")

        message = data.get("msg", "")
        if code in AUTH_CODES:
            raise AuthenticationError(message, exchange_id=self.exchange_id, code=code)
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(message, exchange_id=self.exchange_id)
        self._reject(response, code, message)

    async def _fetch_balances(self) -> List[Balance]:
        accounts = await self._signed_request("GET", "/api/v1/accounts")
        return KuCoinNormalizer.normalize_balances(accounts or [])

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        data = await self._public_request("/api/v1/market/stats", {"symbol": native})
        # Unknown symbols come back with null prices
        if not data or data.get("last") is None:
            return None
        return KuCoinNormalizer.normalize_ticker(data, symbol)

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        params: Dict[str, Any] = {
            "clientOid": request.client_order_id,
            "side": request.side.value,
            "symbol": native,
            "type": request.order_type.value,
            "size": request.quantity,
        }
        if request.order_type == OrderType.LIMIT:
            params["price"] = request.price

        data = await self._signed_request("POST", "/api/v1/orders", params)
        return KuCoinNormalizer.normalize_order(data, symbol, request)

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        data = await self._signed_request("DELETE", f"/api/v1/orders/{order_id}")
        return order_id in ((data or {}).get("cancelledOrderIds") or [])

    # =========================================================================
    # STREAM
    # =========================================================================

    async def resolve_stream_url(self) -> str:
        """
        Fetch a connection token and build the endpoint URL.

        Returns:
            str: "<endpoint>?token=<token>&connectId=<nonce>"
        """
        data = await self._signed_request("POST", "/api/v1/bullet-private")
        servers = (data or {}).get("instanceServers") or []
        token = (data or {}).get("token")
        if not servers or not token:
            raise ProtocolError(
                "bullet-private response has no token or instance server",
                exchange_id=self.exchange_id,
                raw=data,
            )
        endpoint = servers[0]["endpoint"]
        logger.debug("kucoin_stream_token_acquired", endpoint=endpoint)
        return f"{endpoint}?token={token}&connectId={self._engine.next_nonce()}"

    def heartbeat_message(self) -> Optional[Any]:
        return {"id": str(self._engine.next_nonce()), "type": "ping"}

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        return [
            {
                "id": str(self._engine.next_nonce()),
                "type": "subscribe",
                "topic": SNAPSHOT_TOPIC + ",".join(natives),
                "privateChannel": False,
                "response": True,
            }
        ]

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        if not isinstance(message, dict) or message.get("type") != "message":
            return []
        topic = message.get("topic", "")
        if not topic.startswith(SNAPSHOT_TOPIC):
            return []
        try:
            symbol = self.SYMBOLS.to_canonical(topic[len(SNAPSHOT_TOPIC):])
        except InvalidSymbolError:
            return []
        return [KuCoinNormalizer.normalize_stream_ticker(message, symbol)]
