"""
Error taxonomy for the exchange gateway.

Every failure raised by signing, adapters, normalizers or the gateway is a
GatewayError subclass, so callers can tell a local configuration problem
apart from a remote rejection or a transport failure.

Hierarchy:
    GatewayError
        ConfigurationError
            CredentialsMissingError
        AuthenticationError
        NetworkError
            AdapterTimeoutError
        RateLimitError
        ProtocolError
        NormalizationError
        ExchangeRejectionError
        ExchangeNotFoundError
        NoPrimaryAdapterError
        InvalidSymbolError

Retry policy:
    - ConfigurationError: never retried, logged once at startup
    - AuthenticationError: never retried automatically
    - NetworkError: backoff for streaming, single retry for REST
    - RateLimitError: retried after the exchange-specified interval
    - ProtocolError / NormalizationError / ExchangeRejectionError: not retried
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """
    Base class for all gateway errors.

    Attributes:
        message: Human-readable error message.
        exchange_id: Exchange the error originated from, if any.
        retryable: Whether the operation may succeed if retried.
    """

    retryable: bool = False

    def __init__(self, message: str, exchange_id: Optional[str] = None):
        self.message = message
        self.exchange_id = exchange_id
        super().__init__(message)

    @property
    def error_type(self) -> str:
        """Name used when reporting the error to API consumers."""
        return type(self).__name__

    def to_detail(self) -> Dict[str, Any]:
        """
        Serialize the error for per-exchange result reporting.

        Returns:
            Dict[str, Any]: type, message and retryable flag.
        """
        return {
            "type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
        }

    def __str__(self) -> str:
        if self.exchange_id:
            return f"[{self.exchange_id}] {self.message}"
        return self.message


class ConfigurationError(GatewayError):
    """
    Missing or malformed local configuration, usually a credential field.

    Attributes:
        field: Name of the offending configuration field.
    """

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.field = field
        super().__init__(message, exchange_id)


class CredentialsMissingError(ConfigurationError):
    """Raised when a private operation is requested without a credential set."""

    def __init__(self, exchange_id: str):
        super().__init__(
            "No credentials configured for private operations",
            exchange_id=exchange_id,
            field="credential",
        )


class AuthenticationError(GatewayError):
    """
    The remote exchange rejected the signature, key or nonce.

    Often caused by clock skew or a rotated credential.
    """

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.code = code
        super().__init__(message, exchange_id)


class NetworkError(GatewayError):
    """Timeout, DNS failure, connection reset or exchange-side 5xx."""

    retryable = True


class AdapterTimeoutError(NetworkError):
    """An adapter did not answer within the gateway timeout."""

    def __init__(self, exchange_id: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"No response within {timeout_seconds}s",
            exchange_id=exchange_id,
        )


class RateLimitError(GatewayError):
    """
    The exchange is throttling requests.

    Attributes:
        retry_after: Seconds to wait before retrying, if the exchange said so.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, exchange_id)


class ProtocolError(GatewayError):
    """
    The exchange answered with an unexpected or malformed payload.

    Attributes:
        raw: The raw payload, kept for diagnosis.
    """

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        raw: Any = None,
    ):
        self.raw = raw
        super().__init__(message, exchange_id)


class NormalizationError(GatewayError):
    """
    The payload arrived intact but cannot form a valid canonical entity.

    Attributes:
        raw: The raw payload that failed normalization.
    """

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        raw: Any = None,
    ):
        self.raw = raw
        super().__init__(message, exchange_id)


class ExchangeRejectionError(GatewayError):
    """
    The exchange refused a well-formed request (insufficient funds, unknown order).

    Attributes:
        code: Exchange-specific error code.
    """

    def __init__(
        self,
        message: str,
        exchange_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.code = code
        super().__init__(message, exchange_id)


class ExchangeNotFoundError(GatewayError):
    """No adapter is registered under the requested exchange id."""

    def __init__(self, exchange_id: str):
        super().__init__(f"Unknown exchange: {exchange_id}", exchange_id=exchange_id)


class NoPrimaryAdapterError(GatewayError):
    """No adapter is currently able to serve an operation without an explicit exchange."""

    def __init__(self) -> None:
        super().__init__("No connected adapter available")


class InvalidSymbolError(GatewayError, ValueError):
    """A symbol could not be parsed or translated."""
