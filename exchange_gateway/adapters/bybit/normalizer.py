"""
Bybit V5 data normalizer.

Bybit Ticker Format (GET /v5/market/tickers?category=spot, and the
tickers.<symbol> stream "data" object):
    {
        "symbol": "BTCUSDT",
        "lastPrice": "50000.00",
        "prevPrice24h": "49000.00",
        "price24hPcnt": "0.0204",     # Fraction, not percent
        "highPrice24h": "51000.00",
        "lowPrice24h": "48500.00",
        "volume24h": "1234.56"
    }

Bybit Wallet Format (GET /v5/account/wallet-balance, result.list[0]):
    {
        "accountType": "UNIFIED",
        "coin": [
            {"coin": "USDT", "walletBalance": "1000", "locked": "100"},
            ...
        ]
    }

Order placement returns only {"orderId": "...", "orderLinkId": "..."}.
"""

from typing import Any, Dict, List

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    HUNDRED,
    ZERO,
    change_from_open,
    change_from_ratio,
    make_balance,
    make_ticker,
    ms_to_datetime,
    order_from_ack,
    require_field,
    to_decimal,
)

EXCHANGE_ID = "bybit"


class BybitNormalizer:
    """Normalizes Bybit V5 payloads to unified models."""

    @staticmethod
    def normalize_balances(result: Dict[str, Any]) -> List[Balance]:
        """
        Normalize a wallet-balance result to non-zero balances.

        ``free`` is walletBalance minus locked.
        """
        accounts = require_field(result, "list", EXCHANGE_ID)
        if not isinstance(accounts, list):
            raise NormalizationError("'list' is not a list", exchange_id=EXCHANGE_ID, raw=result)

        balances = []
        for account in accounts:
            for entry in account.get("coin") or []:
                wallet = to_decimal(entry.get("walletBalance"), "walletBalance", EXCHANGE_ID, ZERO)
                locked = to_decimal(entry.get("locked"), "locked", EXCHANGE_ID, ZERO)
                balance = make_balance(
                    require_field(entry, "coin", EXCHANGE_ID),
                    wallet - locked,
                    locked,
                    EXCHANGE_ID,
                    entry,
                )
                if not balance.is_empty:
                    balances.append(balance)
        return balances

    @staticmethod
    def normalize_ticker(raw: Dict[str, Any], symbol: str, timestamp_ms: Any = None) -> Ticker:
        """
        Normalize a ticker entry (REST list item or stream data).

        Args:
            raw: Ticker object.
            symbol: Canonical symbol.
            timestamp_ms: Envelope time ("time" for REST, "ts" for stream).
        """
        last = to_decimal(require_field(raw, "lastPrice", EXCHANGE_ID), "lastPrice", EXCHANGE_ID)
        prev = to_decimal(raw.get("prevPrice24h"), "prevPrice24h", EXCHANGE_ID, ZERO)
        ratio = to_decimal(raw.get("price24hPcnt"), "price24hPcnt", EXCHANGE_ID, ZERO)
        if prev > ZERO:
            absolute, _ = change_from_open(last, prev)
        else:
            absolute, _ = change_from_ratio(last, ratio)

        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=absolute,
            change_24h_percent=ratio * HUNDRED,
            volume_24h=to_decimal(raw.get("volume24h"), "volume24h", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("highPrice24h"), "highPrice24h", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("lowPrice24h"), "lowPrice24h", EXCHANGE_ID, last),
            observed_at=ms_to_datetime(timestamp_ms, EXCHANGE_ID),
        )

    @staticmethod
    def normalize_stream_ticker(message: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize a tickers.<symbol> stream message."""
        data = require_field(message, "data", EXCHANGE_ID)
        return BybitNormalizer.normalize_ticker(data, symbol, message.get("ts"))

    @staticmethod
    def normalize_order(result: Dict[str, Any], symbol: str, request: OrderRequest) -> Order:
        """Build an Order from an order/create acknowledgement."""
        return order_from_ack(
            EXCHANGE_ID,
            require_field(result, "orderId", EXCHANGE_ID),
            request,
            symbol,
            result,
        )
