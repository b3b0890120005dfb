"""
Crypto.com Exchange (v1) data normalizer.

Ticker Format (public/get-tickers result.data[] and ticker.<instrument> pushes):
    {
        "i": "BTC_USDT",     # Instrument name
        "a": "50000.1",      # Last traded price
        "h": "51000",        # 24h high
        "l": "48500",        # 24h low
        "v": "1234.5",       # 24h base volume
        "c": "0.0204",       # 24h change as a fraction
        "t": 1700000000000   # Timestamp (ms)
    }

Balance Format (private/user-balance result.data[0]):
    {
        "position_balances": [
            {"instrument_name": "BTC", "quantity": "1.1", "reserved_qty": "0.1"},
            ...
        ]
    }
"""

from typing import Any, Dict, List

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    ZERO,
    balance_from_total,
    change_from_ratio,
    make_ticker,
    ms_to_datetime,
    order_from_ack,
    require_field,
    to_decimal,
)

EXCHANGE_ID = "cryptocom"


class CryptoComNormalizer:
    """Normalizes Crypto.com Exchange data to unified models."""

    @staticmethod
    def normalize_balances(result: Dict[str, Any]) -> List[Balance]:
        """
        Normalize a user-balance result.

        ``quantity`` is the total holding, ``reserved_qty`` the locked part.
        """
        accounts = require_field(result, "data", EXCHANGE_ID)
        if not isinstance(accounts, list):
            raise NormalizationError("'data' is not a list", exchange_id=EXCHANGE_ID, raw=result)

        balances = []
        for account in accounts:
            for entry in account.get("position_balances") or []:
                total = to_decimal(entry.get("quantity"), "quantity", EXCHANGE_ID, ZERO)
                reserved = to_decimal(entry.get("reserved_qty"), "reserved_qty", EXCHANGE_ID, ZERO)
                balance = balance_from_total(
                    require_field(entry, "instrument_name", EXCHANGE_ID),
                    total,
                    total - reserved,
                    EXCHANGE_ID,
                    entry,
                )
                if not balance.is_empty:
                    balances.append(balance)
        return balances

    @staticmethod
    def normalize_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize one ticker item (REST or stream; same short keys)."""
        last = to_decimal(require_field(raw, "a", EXCHANGE_ID), "a", EXCHANGE_ID)
        ratio = to_decimal(raw.get("c"), "c", EXCHANGE_ID, ZERO)
        absolute, percent = change_from_ratio(last, ratio)

        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=absolute,
            change_24h_percent=percent,
            volume_24h=to_decimal(raw.get("v"), "v", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("h"), "h", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("l"), "l", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(raw.get("t"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_stream_ticker(item: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize one item of a ticker subscription push."""
        return CryptoComNormalizer.normalize_ticker(item, symbol)

    @staticmethod
    def normalize_order(result: Dict[str, Any], symbol: str, request: OrderRequest) -> Order:
        """Build an Order from a private/create-order result."""
        return order_from_ack(
            EXCHANGE_ID,
            require_field(result, "order_id", EXCHANGE_ID),
            request,
            symbol,
            result,
        )
