"""
Order models for the exchange gateway.

Models:
    OrderSide: buy/sell
    OrderType: market/limit
    OrderStatus: canonical lifecycle status
    OrderRequest: Parameters for placing an order
    Order: Normalized order returned by an exchange
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class OrderSide(str, Enum):
    """
    Order side.

    Attributes:
        BUY: Buy the base currency.
        SELL: Sell the base currency.
    """

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    """
    Canonical order status.

    Attributes:
        SUBMITTED: Accepted by the exchange, not yet confirmed on the book.
        OPEN: Resting on the book (possibly partially filled).
        FILLED: Completely executed.
        CANCELLED: Cancelled or expired.
        REJECTED: Refused by the exchange.
    """

    SUBMITTED = "submitted"
    OPEN = "open"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_final(self) -> bool:
        """Check if the order can no longer change."""
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED)


class OrderRequest(BaseModel):
    """
    Parameters for placing an order.

    When ``exchange_id`` is omitted the gateway routes the order to the
    primary adapter.

    Example:
        >>> request = OrderRequest(
        ...     exchange_id="binance",
        ...     symbol="BTC/USDT",
        ...     side=OrderSide.BUY,
        ...     order_type=OrderType.LIMIT,
        ...     quantity=Decimal("0.01"),
        ...     price=Decimal("50000"),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    exchange_id: Optional[str] = Field(
        default=None,
        description="Target exchange, or None for the primary adapter",
    )
    symbol: str = Field(
        ...,
        description="Canonical BASE/QUOTE symbol",
        min_length=3,
    )
    side: OrderSide = Field(
        ...,
        description="Order side",
    )
    order_type: OrderType = Field(
        default=OrderType.MARKET,
        description="Order type",
        alias="type",
    )
    quantity: Decimal = Field(
        ...,
        description="Quantity in base currency",
        gt=Decimal("0"),
    )
    price: Optional[Decimal] = Field(
        default=None,
        description="Limit price (required for limit orders)",
        gt=Decimal("0"),
    )
    client_order_id: Optional[str] = Field(
        default=None,
        description="Caller-supplied order identifier",
        max_length=36,
    )

    @model_validator(mode="after")
    def validate_price(self) -> "OrderRequest":
        """Limit orders need a price."""
        if self.order_type == OrderType.LIMIT and self.price is None:
            raise ValueError("price is required for limit orders")
        return self


class Order(BaseModel):
    """
    Normalized order as reported by an exchange.

    Attributes:
        exchange_id: Exchange that holds the order.
        order_id: Exchange-assigned order identifier.
        symbol: Canonical symbol.
        side: Order side.
        order_type: Order type.
        quantity: Ordered quantity.
        price: Limit price, None for market orders.
        status: Canonical status.
        created_at: Creation time (UTC).
        client_order_id: Caller-supplied identifier, if any.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchange_id: str = Field(..., description="Exchange identifier", min_length=1)
    order_id: str = Field(..., description="Exchange order id", min_length=1)
    symbol: str = Field(..., description="Canonical BASE/QUOTE symbol")
    side: OrderSide = Field(..., description="Order side")
    order_type: OrderType = Field(default=OrderType.MARKET, description="Order type")
    quantity: Decimal = Field(..., description="Ordered quantity", ge=Decimal("0"))
    price: Optional[Decimal] = Field(
        default=None,
        description="Limit price (None for market orders)",
        ge=Decimal("0"),
    )
    status: OrderStatus = Field(..., description="Canonical order status")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    client_order_id: Optional[str] = Field(
        default=None,
        description="Caller-supplied order identifier",
    )
