"""
Per-exchange result envelopes for multi-exchange operations.

Fan-out calls never fail as a whole: each exchange gets its own entry,
carrying either data or the error that exchange produced.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from exchange_gateway.errors import GatewayError


class ErrorDetail(BaseModel):
    """
    Serialized error for one exchange.

    Attributes:
        type: Error class name (e.g., "AuthenticationError").
        message: Error message.
        retryable: Whether retrying may help.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    type: str = Field(..., description="Error class name")
    message: str = Field(..., description="Error message")
    retryable: bool = Field(default=False, description="Whether retrying may help")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDetail":
        """
        Build an error detail from any exception.

        Args:
            exc: The exception raised by an adapter.

        Returns:
            ErrorDetail: Serialized error.
        """
        if isinstance(exc, GatewayError):
            return cls(**exc.to_detail())
        return cls(type=type(exc).__name__, message=str(exc) or type(exc).__name__)


class ExchangeResult(BaseModel):
    """
    Outcome of one exchange's part in a multi-exchange call.

    Example:
        >>> ok = ExchangeResult.success("binance", [])
        >>> ok.ok
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchange_id: str = Field(..., description="Exchange identifier")
    ok: bool = Field(..., description="Whether the call succeeded")
    data: Optional[Any] = Field(default=None, description="Result payload")
    error: Optional[ErrorDetail] = Field(default=None, description="Error detail")

    @classmethod
    def success(cls, exchange_id: str, data: Any) -> "ExchangeResult":
        """Wrap a successful result."""
        return cls(exchange_id=exchange_id, ok=True, data=data)

    @classmethod
    def failure(cls, exchange_id: str, exc: BaseException) -> "ExchangeResult":
        """Wrap a failed result."""
        return cls(
            exchange_id=exchange_id,
            ok=False,
            error=ErrorDetail.from_exception(exc),
        )
