"""
OKX v5 data normalizer.

OKX Ticker Format (GET /api/v5/market/ticker and the "tickers" channel):
    {
        "instId": "BTC-USDT",
        "last": "50000.0",
        "open24h": "49000.0",
        "high24h": "51000.0",
        "low24h": "48500.0",
        "vol24h": "1000.5",      # Base currency volume
        "ts": "1700000000000"
    }

OKX Balance Format (GET /api/v5/account/balance, data[0]):
    {
        "details": [
            {"ccy": "USDT", "availBal": "900", "frozenBal": "100", "eq": "1000"},
            ...
        ]
    }

OKX Order Acknowledgement (POST /api/v5/trade/order, data[0]):
    {"ordId": "312269865356374016", "clOrdId": "b1", "sCode": "0", "sMsg": ""}
"""

from typing import Any, Dict, List

import structlog

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    ZERO,
    change_from_open,
    make_balance,
    make_ticker,
    ms_to_datetime,
    order_from_ack,
    require_field,
    to_decimal,
)

logger = structlog.get_logger(__name__)

EXCHANGE_ID = "okx"


class OKXNormalizer:
    """
    Normalizes OKX data to unified models.

    The 24h change is derived from ``open24h``, which OKX reports instead
    of an explicit change field.

    Example:
        >>> ticker = OKXNormalizer.normalize_ticker(
        ...     {"instId": "BTC-USDT", "last": "50000", "open24h": "49000", "ts": "1700000000000"},
        ...     "BTC/USDT",
        ... )
        >>> ticker.change_24h_absolute
        Decimal('1000')
    """

    @staticmethod
    def normalize_balances(account: Dict[str, Any]) -> List[Balance]:
        """Normalize one account entry's ``details`` to non-zero balances."""
        details = account.get("details") if isinstance(account, dict) else None
        if details is None:
            raise NormalizationError(
                "Balance payload has no 'details'",
                exchange_id=EXCHANGE_ID,
                raw=account,
            )

        balances = []
        for entry in details:
            balance = make_balance(
                require_field(entry, "ccy", EXCHANGE_ID),
                to_decimal(entry.get("availBal"), "availBal", EXCHANGE_ID, ZERO),
                to_decimal(entry.get("frozenBal"), "frozenBal", EXCHANGE_ID, ZERO),
                EXCHANGE_ID,
                entry,
            )
            if not balance.is_empty:
                balances.append(balance)
        return balances

    @staticmethod
    def normalize_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """
        Normalize a ticker object (REST data item or stream data item).

        Args:
            raw: Ticker object.
            symbol: Canonical symbol.

        Raises:
            NormalizationError: If "last" is missing or values are invalid.
        """
        last = to_decimal(require_field(raw, "last", EXCHANGE_ID), "last", EXCHANGE_ID)
        open_price = to_decimal(raw.get("open24h"), "open24h", EXCHANGE_ID, ZERO)
        if open_price > ZERO:
            absolute, percent = change_from_open(last, open_price)
        else:
            absolute, percent = ZERO, ZERO

        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=absolute,
            change_24h_percent=percent,
            volume_24h=to_decimal(raw.get("vol24h"), "vol24h", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("high24h"), "high24h", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("low24h"), "low24h", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(raw.get("ts"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_stream_ticker(item: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize one item of a tickers channel push."""
        return OKXNormalizer.normalize_ticker(item, symbol)

    @staticmethod
    def normalize_order(ack: Dict[str, Any], symbol: str, request: OrderRequest) -> Order:
        """Build an Order from a trade/order acknowledgement."""
        return order_from_ack(
            EXCHANGE_ID,
            require_field(ack, "ordId", EXCHANGE_ID),
            request,
            symbol,
            ack,
        )
