"""
Binance data normalizer.

Converts Binance spot API payloads to the gateway's canonical models.

Binance Account Format (GET /api/v3/account):
    {
        "balances": [
            {"asset": "BTC", "free": "0.5", "locked": "0.1"},
            ...
        ]
    }

Binance 24hr Ticker Format (GET /api/v3/ticker/24hr):
    {
        "symbol": "BTCUSDT",
        "priceChange": "-94.99",
        "priceChangePercent": "-0.95",
        "lastPrice": "9905.01",
        "highPrice": "10100.00",
        "lowPrice": "9800.00",
        "volume": "8913.30",
        "closeTime": 1700000000000
    }

Binance Stream Ticker Format (<symbol>@ticker):
    {
        "e": "24hrTicker",
        "E": 1700000000000,   # Event time (ms)
        "s": "BTCUSDT",
        "p": "-94.99",        # Price change
        "P": "-0.95",         # Price change percent
        "c": "9905.01",       # Last price
        "h": "10100.00",
        "l": "9800.00",
        "v": "8913.30"        # Base volume
    }

Binance Order Format (POST /api/v3/order, newOrderRespType=RESULT):
    {
        "symbol": "BTCUSDT",
        "orderId": 28,
        "clientOrderId": "6gCrw2kRUAF9CvJDGP16IP",
        "transactTime": 1507725176595,
        "price": "0.00000000",
        "origQty": "10.00000000",
        "status": "NEW",
        "type": "LIMIT",
        "side": "SELL"
    }
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderSide, OrderStatus, OrderType
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    ZERO,
    make_balance,
    make_order,
    make_ticker,
    map_status,
    ms_to_datetime,
    require_field,
    to_decimal,
    to_enum,
)

logger = structlog.get_logger(__name__)

EXCHANGE_ID = "binance"

STATUS_MAP: Dict[str, OrderStatus] = {
    "NEW": OrderStatus.OPEN,
    "PARTIALLY_FILLED": OrderStatus.OPEN,
    "PENDING_NEW": OrderStatus.SUBMITTED,
    "PENDING_CANCEL": OrderStatus.OPEN,
    "FILLED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELLED,
    "EXPIRED": OrderStatus.CANCELLED,
    "EXPIRED_IN_MATCH": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
}


class BinanceNormalizer:
    """
    Normalizes Binance data to unified models.

    All methods are static and pure. Financial values become Decimal.

    Example:
        >>> balances = BinanceNormalizer.normalize_balances(account_payload)
        >>> balances[0].currency
        'BTC'
    """

    @staticmethod
    def normalize_balances(raw: Dict[str, Any]) -> List[Balance]:
        """
        Normalize the account payload to non-zero balances.

        Raises:
            NormalizationError: If the balances list is missing or malformed.
        """
        entries = require_field(raw, "balances", EXCHANGE_ID)
        if not isinstance(entries, list):
            raise NormalizationError(
                "'balances' is not a list",
                exchange_id=EXCHANGE_ID,
                raw=raw,
            )

        balances = []
        for entry in entries:
            balance = make_balance(
                require_field(entry, "asset", EXCHANGE_ID),
                to_decimal(entry.get("free"), "free", EXCHANGE_ID, default=ZERO),
                to_decimal(entry.get("locked"), "locked", EXCHANGE_ID, default=ZERO),
                EXCHANGE_ID,
                entry,
            )
            if not balance.is_empty:
                balances.append(balance)
        return balances

    @staticmethod
    def normalize_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """
        Normalize a REST 24hr ticker.

        Args:
            raw: /api/v3/ticker/24hr payload.
            symbol: Canonical symbol the ticker was requested for.
        """
        last = to_decimal(require_field(raw, "lastPrice", EXCHANGE_ID), "lastPrice", EXCHANGE_ID)
        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=to_decimal(raw.get("priceChange"), "priceChange", EXCHANGE_ID, ZERO),
            change_24h_percent=to_decimal(
                raw.get("priceChangePercent"), "priceChangePercent", EXCHANGE_ID, ZERO
            ),
            volume_24h=to_decimal(raw.get("volume"), "volume", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("highPrice"), "highPrice", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("lowPrice"), "lowPrice", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(raw.get("closeTime"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_stream_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize a 24hrTicker stream event."""
        last = to_decimal(require_field(raw, "c", EXCHANGE_ID), "c", EXCHANGE_ID)
        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=to_decimal(raw.get("p"), "p", EXCHANGE_ID, ZERO),
            change_24h_percent=to_decimal(raw.get("P"), "P", EXCHANGE_ID, ZERO),
            volume_24h=to_decimal(raw.get("v"), "v", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("h"), "h", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("l"), "l", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(raw.get("E"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_order(raw: Dict[str, Any], symbol: str) -> Order:
        """Normalize an order placement/query response."""
        status = map_status(STATUS_MAP, require_field(raw, "status", EXCHANGE_ID), EXCHANGE_ID, raw)
        order_type = to_enum(OrderType, raw.get("type", "MARKET"), "order type", EXCHANGE_ID, raw)
        price: Optional[Decimal] = to_decimal(raw.get("price"), "price", EXCHANGE_ID, ZERO)
        if order_type == OrderType.MARKET or price == ZERO:
            price = None

        return make_order(
            EXCHANGE_ID,
            raw,
            order_id=str(require_field(raw, "orderId", EXCHANGE_ID)),
            symbol=symbol,
            side=to_enum(OrderSide, require_field(raw, "side", EXCHANGE_ID), "side", EXCHANGE_ID, raw),
            order_type=order_type,
            quantity=to_decimal(raw.get("origQty"), "origQty", EXCHANGE_ID, ZERO),
            price=price,
            status=status,
            created_at=ms_to_datetime(raw.get("transactTime"), EXCHANGE_ID),
            client_order_id=raw.get("clientOrderId"),
        )
