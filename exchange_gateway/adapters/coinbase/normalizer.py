"""
Coinbase Exchange data normalizer.

Coinbase splits the ticker over two endpoints:

    GET /products/<id>/ticker:
        {"trade_id": 4729088, "price": "50000.1", "size": "0.01",
         "volume": "1234.5", "time": "2024-01-01T00:00:00.123456Z"}

    GET /products/<id>/stats:
        {"open": "49000", "high": "51000", "low": "48500",
         "last": "50000.1", "volume": "1234.5"}

Stream ticker ("ticker" channel):
    {"type": "ticker", "product_id": "BTC-USD", "price": "50000.1",
     "open_24h": "49000", "high_24h": "51000", "low_24h": "48500",
     "volume_24h": "1234.5", "time": "2024-01-01T00:00:00.123456Z"}

Accounts (GET /accounts):
    [{"currency": "BTC", "balance": "1.1", "available": "1.0", "hold": "0.1"}, ...]

Order (POST /orders):
    {"id": "d0c5340b-...", "product_id": "BTC-USD", "side": "buy",
     "type": "limit", "size": "0.01", "price": "50000", "status": "pending",
     "created_at": "2024-01-01T00:00:00.123Z"}
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from exchange_gateway.errors import NormalizationError
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.order import Order, OrderSide, OrderStatus, OrderType
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.normalization import (
    ZERO,
    change_from_open,
    iso_to_datetime,
    make_balance,
    make_order,
    make_ticker,
    map_status,
    require_field,
    to_decimal,
    to_enum,
)

EXCHANGE_ID = "coinbase"

STATUS_MAP: Dict[str, OrderStatus] = {
    "received": OrderStatus.SUBMITTED,
    "pending": OrderStatus.SUBMITTED,
    "open": OrderStatus.OPEN,
    "active": OrderStatus.OPEN,
    "done": OrderStatus.FILLED,
    "settled": OrderStatus.FILLED,
    "rejected": OrderStatus.REJECTED,
}


class CoinbaseNormalizer:
    """Normalizes Coinbase Exchange data to unified models."""

    @staticmethod
    def normalize_balances(accounts: List[Dict[str, Any]]) -> List[Balance]:
        """Normalize /accounts to non-zero balances (available + hold)."""
        if not isinstance(accounts, list):
            raise NormalizationError(
                "Accounts payload is not a list",
                exchange_id=EXCHANGE_ID,
                raw=accounts,
            )

        balances = []
        for entry in accounts:
            balance = make_balance(
                require_field(entry, "currency", EXCHANGE_ID),
                to_decimal(entry.get("available"), "available", EXCHANGE_ID, ZERO),
                to_decimal(entry.get("hold"), "hold", EXCHANGE_ID, ZERO),
                EXCHANGE_ID,
                entry,
            )
            if not balance.is_empty:
                balances.append(balance)
        return balances

    @staticmethod
    def normalize_ticker(
        ticker: Dict[str, Any],
        stats: Optional[Dict[str, Any]],
        symbol: str,
    ) -> Ticker:
        """
        Combine the ticker and 24h stats responses.

        Args:
            ticker: /products/<id>/ticker payload.
            stats: /products/<id>/stats payload (may be None).
            symbol: Canonical symbol.
        """
        stats = stats or {}
        last = to_decimal(require_field(ticker, "price", EXCHANGE_ID), "price", EXCHANGE_ID)
        open_price = to_decimal(stats.get("open"), "open", EXCHANGE_ID, ZERO)
        absolute, percent = change_from_open(last, open_price) if open_price > ZERO else (ZERO, ZERO)

        return make_ticker(
            EXCHANGE_ID,
            {"ticker": ticker, "stats": stats},
            symbol=symbol,
            last_price=last,
            change_24h_absolute=absolute,
            change_24h_percent=percent,
            volume_24h=to_decimal(
                stats.get("volume", ticker.get("volume")), "volume", EXCHANGE_ID, ZERO
            ),
            high_24h=to_decimal(stats.get("high"), "high", EXCHANGE_ID, last),
            low_24h=to_decimal(stats.get("low"), "low", EXCHANGE_ID, last),
            observed_at=iso_to_datetime(ticker.get("time"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_stream_ticker(raw: Dict[str, Any], symbol: str) -> Ticker:
        """Normalize a ticker channel message."""
        last = to_decimal(require_field(raw, "price", EXCHANGE_ID), "price", EXCHANGE_ID)
        open_price = to_decimal(raw.get("open_24h"), "open_24h", EXCHANGE_ID, ZERO)
        absolute, percent = change_from_open(last, open_price) if open_price > ZERO else (ZERO, ZERO)

        return make_ticker(
            EXCHANGE_ID,
            raw,
            symbol=symbol,
            last_price=last,
            change_24h_absolute=absolute,
            change_24h_percent=percent,
            volume_24h=to_decimal(raw.get("volume_24h"), "volume_24h", EXCHANGE_ID, ZERO),
            high_24h=to_decimal(raw.get("high_24h"), "high_24h", EXCHANGE_ID, last),
            low_24h=to_decimal(raw.get("low_24h"), "low_24h", EXCHANGE_ID, last),
            observed_at=iso_to_datetime(raw.get("time"), EXCHANGE_ID),
        )

    @staticmethod
    def normalize_order(raw: Dict[str, Any], symbol: str) -> Order:
        """
        Normalize an order payload.

        A "done" order is FILLED unless its done_reason says it was cancelled.
        """
        status = map_status(STATUS_MAP, require_field(raw, "status", EXCHANGE_ID), EXCHANGE_ID, raw)
        if status == OrderStatus.FILLED and raw.get("done_reason") == "canceled":
            status = OrderStatus.CANCELLED

        order_type = to_enum(OrderType, raw.get("type", "market"), "order type", EXCHANGE_ID, raw)
        price: Optional[Decimal] = None
        if order_type == OrderType.LIMIT:
            price = to_decimal(raw.get("price"), "price", EXCHANGE_ID)

        return make_order(
            EXCHANGE_ID,
            raw,
            order_id=str(require_field(raw, "id", EXCHANGE_ID)),
            symbol=symbol,
            side=to_enum(OrderSide, require_field(raw, "side", EXCHANGE_ID), "side", EXCHANGE_ID, raw),
            order_type=order_type,
            quantity=to_decimal(raw.get("size"), "size", EXCHANGE_ID, ZERO),
            price=price,
            status=status,
            created_at=iso_to_datetime(raw.get("created_at"), EXCHANGE_ID),
            client_order_id=raw.get("client_oid"),
        )
