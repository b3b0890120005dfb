"""
Shared Pydantic data models for the exchange gateway.

This module exports all data models used throughout the gateway.
All models use Decimal for financial precision and are immutable.

Modules:
    credentials: Exchange API credentials
    balance: Account balances
    ticker: Ticker snapshots
    order: Order requests and normalized orders
    health: Connection state, adapter health and gateway status
    results: Per-exchange result envelopes

Example:
    >>> from exchange_gateway.models import Balance, Ticker, Order
    >>> from exchange_gateway.models import AdapterHealth, ConnectionState
"""

# Credential models
from exchange_gateway.models.credentials import Credential

# Market models
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.ticker import Ticker

# Order models
from exchange_gateway.models.order import (
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
)

# Health models
from exchange_gateway.models.health import (
    AdapterHealth,
    Capability,
    ConnectionEvent,
    ConnectionState,
    GatewayStatus,
)

# Result models
from exchange_gateway.models.results import ErrorDetail, ExchangeResult

__all__ = [
    # Credentials
    "Credential",
    # Market
    "Balance",
    "Ticker",
    # Orders
    "Order",
    "OrderRequest",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    # Health
    "AdapterHealth",
    "Capability",
    "ConnectionEvent",
    "ConnectionState",
    "GatewayStatus",
    # Results
    "ErrorDetail",
    "ExchangeResult",
]
