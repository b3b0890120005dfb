"""
KuCoin data normalizer.

KuCoin 24h Stats Format (GET /api/v1/market/stats, "data"):
    {
        "time": 1700000000000,
        "symbol": "BTC-USDT",
        "last": "50000.1",
        "changePrice": "1000.1",
        "changeRate": "0.0204",     # Fraction, not percent
        "high": "51000",
        "low": "48500",
        "vol": "1234.5"
    }

KuCoin Snapshot Stream (topic /market/snapshot:<symbol>):
    {
        "type": "message",
        "topic": "/market/snapshot:BTC-USDT",
        "subject": "trade.snapshot",
        "data": {
            "sequence": "...",
            "data": {
                "symbol": "BTC-USDT",
                "lastTradedPrice": 50000.1,
                "changePrice": 1000.1,
                "changeRate": 0.0204,
                "high": 51000, "low": 48500, "vol": 1234.5,
                "datetime": 1700000000000
            }
        }
    }

Accounts are split by type (main, trade, margin) and summed per currency.
"""

from decimal import Decimal
from typing import Any, Dict, List, Tuple

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    HUNDRED,
    ZERO,
    make_balance,
    make_ticker,
    ms_to_datetime,
    order_from_ack,
    require_field,
    to_decimal,
)

EXCHANGE_ID = "kucoin"


class KuCoinNormalizer:
    """Normalizes KuCoin data to unified models."""

    @staticmethod
    def normalize_balances(accounts: List[Dict[str, Any]]) -> List[Balance]:
        """
        Sum available/holds per currency across account types.

        Raises:
            NormalizationError: If the payload is not a list of accounts.
        """
        if not isinstance(accounts, list):
            raise NormalizationError(
                "Accounts payload is not a list",
                exchange_id=EXCHANGE_ID,
                raw=accounts,
            )

        totals: Dict[str, Tuple[Decimal, Decimal]] = {}
        for entry in accounts:
            currency = str(require_field(entry, "currency", EXCHANGE_ID)).upper()
            available = to_decimal(entry.get("available"), "available", EXCHANGE_ID, ZERO)
            holds = to_decimal(entry.get("holds"), "holds", EXCHANGE_ID, ZERO)
            free, locked = totals.get(currency, (ZERO, ZERO))
            totals[currency] = (free + available, locked + holds)

        balances = []
        for currency, (free, locked) in totals.items():
            balance = make_balance(currency, free, locked, EXCHANGE_ID, accounts)
            if not balance.is_empty:
                balances.append(balance)
        return balances

    @staticmethod
    def _ticker(raw: Dict[str, Any], symbol: str, last_key: str, time_key: str) -> Ticker:
        last = to_decimal(require_field(raw, last_key, EXCHANGE_ID), last_key, EXCHANGE_ID)
        rate = to_decimal(raw.get("changeRate"), "changeRate", EXCHANGE_ID, ZERO)
        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=to_decimal(raw.get("changePrice"), "changePrice", EXCHANGE_ID, ZERO),
            change_24h_percent=rate * HUNDRED,
            volume_24h=to_decimal(raw.get("vol"), "vol", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("high"), "high", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("low"), "low", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(raw.get(time_key), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize /api/v1/market/stats data."""
        return KuCoinNormalizer._ticker(raw, symbol, "last", "time")

    @staticmethod
    def normalize_stream_ticker(message: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize a /market/snapshot push."""
        outer = require_field(message, "data", EXCHANGE_ID)
        inner = require_field(outer, "data", EXCHANGE_ID)
        return KuCoinNormalizer._ticker(inner, symbol, "lastTradedPrice", "datetime")

    @staticmethod
    def normalize_order(data: Dict[str, Any], symbol: str, request: OrderRequest) -> Order:
        """Build an Order from a POST /api/v1/orders acknowledgement."""
        return order_from_ack(
            EXCHANGE_ID,
            require_field(data, "orderId", EXCHANGE_ID),
            request,
            symbol,
            data,
        )
