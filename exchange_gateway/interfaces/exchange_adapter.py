"""
Abstract base class for exchange adapters.

This module defines the ExchangeAdapter interface that every
exchange-specific implementation (Binance, Bybit, OKX, KuCoin, Coinbase,
Crypto.com) must follow. The gateway only ever talks to this interface and
never branches on the concrete exchange.

The adapter pattern allows the system to:
- Add new exchanges without modifying the gateway
- Normalize data into canonical models (Balance, Ticker, Order)
- Hide each exchange's signing scheme, REST dialect and stream protocol
- Report connectivity through immutable AdapterHealth snapshots

Example:
    >>> class BinanceAdapter(ExchangeAdapter):
    ...     @property
    ...     def exchange_id(self) -> str:
    ...         return "binance"
    ...
    ...     async def get_ticker(self, symbol: str) -> Optional[Ticker]:
    ...         raw = await self._get("/api/v3/ticker/24hr", {"symbol": "BTCUSDT"})
    ...         return BinanceNormalizer.normalize_ticker(raw, symbol)
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from exchange_gateway.models.balance import Balance
from exchange_gateway.models.health import AdapterHealth
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker

HealthListener = Callable[[AdapterHealth], None]
TickerListener = Callable[[Ticker], None]


class ExchangeAdapter(ABC):
    """
    Abstract base class for exchange adapters.

    The adapter is responsible for:
    - Checking public reachability and opening the streaming channel
    - Signing private requests with its exchange's strategy
    - Translating canonical "BASE/QUOTE" symbols to and from native form
    - Converting raw responses into canonical models
    - Tracking its own health and publishing snapshots to listeners

    An adapter without credentials is valid but degraded: tickers work,
    balance and order calls fail fast with CredentialsMissingError.

    Note:
        All financial values in returned models use Decimal for precision.
    """

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        """
        Return the lowercase exchange identifier.

        Returns:
            str: Exchange id (e.g., "binance", "cryptocom").
        """
        pass

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Check reachability and, with credentials, open the streaming channel.

        Never raises for exchange-side problems: an unreachable exchange
        returns False and is reported through health().

        Returns:
            bool: True if the exchange answered the reachability check.
        """
        pass

    @abstractmethod
    async def get_balance(self) -> List[Balance]:
        """
        Fetch account balances.

        Returns:
            List[Balance]: Non-zero balances.

        Raises:
            CredentialsMissingError: If no credentials are configured.
            AuthenticationError: If the exchange rejects the signature.
            NetworkError: On transport failure after one retry.
        """
        pass

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        """
        Fetch the ticker for a canonical symbol.

        Args:
            symbol: Canonical symbol (e.g., "BTC/USDT").

        Returns:
            Optional[Ticker]: Ticker, or None if the exchange has no data.

        Raises:
            InvalidSymbolError: If the symbol is not canonical.
        """
        pass

    @abstractmethod
    async def create_order(self, request: OrderRequest) -> Order:
        """
        Place an order.

        Args:
            request: Order parameters with a canonical symbol.

        Returns:
            Order: The order as acknowledged by the exchange.

        Raises:
            CredentialsMissingError: If no credentials are configured.
            ExchangeRejectionError: If the exchange refuses the order.
        """
        pass

    @abstractmethod
    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        """
        Cancel an order.

        Args:
            symbol: Canonical symbol of the order.
            order_id: Exchange order id.

        Returns:
            bool: True if the exchange confirmed the cancellation.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if the adapter can serve requests.

        Note:
            This is a fast, non-blocking check.
        """
        pass

    @abstractmethod
    def health(self) -> AdapterHealth:
        """
        Return the current immutable health snapshot.
        """
        pass

    @abstractmethod
    async def reconnect(self) -> None:
        """Restart the streaming channel, leaving a Failed state if needed."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Release all resources.

        Cancels pending REST calls and backoff timers, closes the streaming
        channel with a normal-closure code. Never triggers reconnection.
        """
        pass

    @abstractmethod
    def add_health_listener(self, listener: HealthListener) -> None:
        """Register a callback receiving every new health snapshot."""
        pass

    @abstractmethod
    def add_ticker_listener(self, listener: TickerListener) -> None:
        """Register a callback receiving streamed tickers in receipt order."""
        pass

    def __repr__(self) -> str:
        """Return string representation of adapter."""
        return f"{self.__class__.__name__}(exchange={self.exchange_id}, connected={self.is_connected()})"
