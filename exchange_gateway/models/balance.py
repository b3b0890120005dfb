"""
Account balance model.

All amounts use Decimal for precision.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class Balance(BaseModel):
    """
    Balance of a single currency on one exchange account.

    Attributes:
        currency: Currency code (e.g., "BTC", "USDT").
        free: Amount available for trading or withdrawal.
        locked: Amount held by open orders or otherwise frozen.
        total: free + locked.

    Example:
        >>> balance = Balance(
        ...     currency="BTC",
        ...     free=Decimal("0.5"),
        ...     locked=Decimal("0.1"),
        ...     total=Decimal("0.6"),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    currency: str = Field(
        ...,
        description="Currency code",
        min_length=1,
        max_length=20,
        examples=["BTC", "USDT"],
    )
    free: Decimal = Field(
        ...,
        description="Amount available",
        ge=Decimal("0"),
    )
    locked: Decimal = Field(
        ...,
        description="Amount held by open orders",
        ge=Decimal("0"),
    )
    total: Decimal = Field(
        ...,
        description="Total amount (free + locked)",
        ge=Decimal("0"),
    )

    @model_validator(mode="after")
    def validate_total(self) -> "Balance":
        """Ensure total == free + locked."""
        if self.total != self.free + self.locked:
            raise ValueError(
                f"total ({self.total}) must equal free ({self.free}) + locked ({self.locked})"
            )
        return self

    @property
    def is_empty(self) -> bool:
        """Check if the balance holds nothing."""
        return self.total == Decimal("0")
