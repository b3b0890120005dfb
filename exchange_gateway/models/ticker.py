"""
Ticker model for the exchange gateway.

Tickers always carry the canonical "BASE/QUOTE" symbol, whatever the
exchange-native format was. All financial values use Decimal for precision.

Models:
    Ticker: Last price and 24-hour statistics for a trading pair
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class Ticker(BaseModel):
    """
    Ticker data for a trading pair.

    Attributes:
        exchange_id: Exchange identifier (e.g., "binance", "okx").
        symbol: Canonical symbol (e.g., "BTC/USDT").
        last_price: Price of the most recent trade.
        change_24h_absolute: Price change over 24 hours in quote currency.
        change_24h_percent: Price change over 24 hours in percent.
        volume_24h: Traded base-currency volume over 24 hours.
        high_24h: Highest price over the last 24 hours.
        low_24h: Lowest price over the last 24 hours.
        observed_at: When the exchange produced this ticker (UTC).

    Example:
        >>> ticker = Ticker(
        ...     exchange_id="binance",
        ...     symbol="BTC/USDT",
        ...     last_price=Decimal("64210.5"),
        ...     change_24h_absolute=Decimal("-310.2"),
        ...     change_24h_percent=Decimal("-0.48"),
        ...     volume_24h=Decimal("8123.77"),
        ...     high_24h=Decimal("65002"),
        ...     low_24h=Decimal("63870.1"),
        ...     observed_at=datetime.now(timezone.utc),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    # Identification
    exchange_id: str = Field(
        ...,
        description="Exchange the ticker came from",
        min_length=1,
        max_length=50,
        examples=["binance", "okx"],
    )
    symbol: str = Field(
        ...,
        description="Canonical BASE/QUOTE symbol",
        min_length=3,
        max_length=50,
        examples=["BTC/USDT", "ETH/USD"],
    )

    # Prices
    last_price: Decimal = Field(
        ...,
        description="Price of the most recent trade",
        ge=Decimal("0"),
    )
    change_24h_absolute: Decimal = Field(
        default=Decimal("0"),
        description="24-hour price change in quote currency",
    )
    change_24h_percent: Decimal = Field(
        default=Decimal("0"),
        description="24-hour price change in percent",
    )

    # 24-hour statistics
    volume_24h: Decimal = Field(
        default=Decimal("0"),
        description="Base-currency volume over the rolling 24h window",
        ge=Decimal("0"),
    )
    high_24h: Decimal = Field(
        default=Decimal("0"),
        description="Highest trade price in the rolling 24h window",
        ge=Decimal("0"),
    )
    low_24h: Decimal = Field(
        default=Decimal("0"),
        description="Lowest trade price in the rolling 24h window",
        ge=Decimal("0"),
    )

    observed_at: datetime = Field(
        ...,
        description="When the exchange produced the ticker (UTC)",
    )

    @model_validator(mode="after")
    def validate_ticker(self) -> "Ticker":
        """Reject an inverted 24h range."""
        if self.high_24h < self.low_24h:
            raise ValueError(
                f"24h high ({self.high_24h}) is below 24h low ({self.low_24h})"
            )
        return self

    @property
    def base_currency(self) -> str:
        """Base asset of the pair."""
        return self.symbol.split("/")[0]

    @property
    def quote_currency(self) -> str:
        """Quote asset of the pair."""
        return self.symbol.split("/")[1]

    def age_seconds(self, now: datetime) -> float:
        """
        Seconds elapsed between observation and ``now``.

        Args:
            now: Reference time (UTC, timezone-aware).

        Returns:
            float: Age in seconds.
        """
        return (now - self.observed_at).total_seconds()
