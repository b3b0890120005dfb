"""
Shared adapter behaviour.

BaseExchangeAdapter implements everything that does not depend on the
exchange dialect: credential gating, reachability, REST retry policy,
in-flight call tracking, health snapshots and the streaming channel
lifecycle. Subclasses provide endpoints, envelope checks, normalizers and
stream protocol details through the hook methods at the bottom.

Retry policy for one-shot REST calls:
    NetworkError    -> retried once (signed calls are re-signed)
    RateLimitError  -> retried once after Retry-After, if within max_rate_limit_wait
    anything else   -> raised unchanged
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Set, TypeVar

import structlog

from exchange_gateway.adapters.rest import RestClient, RestResponse
from exchange_gateway.adapters.symbols import SymbolMapper, canonical_symbol
from exchange_gateway.config.models import ExchangeConfig
from exchange_gateway.connection.manager import ConnectionManager, Connector
from exchange_gateway.errors import (
    ConfigurationError,
    CredentialsMissingError,
    ExchangeRejectionError,
    GatewayError,
    NetworkError,
    RateLimitError,
)
from exchange_gateway.interfaces.exchange_adapter import (
    ExchangeAdapter,
    HealthListener,
    TickerListener,
)
from exchange_gateway.interfaces.stream_channel import StreamChannel
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.credentials import Credential
from exchange_gateway.models.health import (
    AdapterHealth,
    Capability,
    ConnectionEvent,
    ConnectionState,
)
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.ticker import Ticker
from exchange_gateway.signing import SignatureEngine, SigningRequest, default_signers, sorted_query

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BaseExchangeAdapter(ExchangeAdapter, StreamChannel):
    """
    Base class for the six exchange adapters.

    Class attributes set by subclasses:
        EXCHANGE_ID: Lowercase exchange id.
        FEATURES: Static feature tags (spot, futures, options, websocket, trading).
        PING_PATH: Public endpoint used for the reachability check.
        SYMBOLS: Canonical/native symbol mapper.

    Attributes:
        config: Exchange configuration.
        settings: Connection settings (timeouts, backoff, rate limits).
    """

    EXCHANGE_ID: str = ""
    FEATURES: FrozenSet[str] = frozenset()
    PING_PATH: str = "/"
    SYMBOLS: SymbolMapper

    def __init__(
        self,
        config: ExchangeConfig,
        credential: Optional[Credential] = None,
        signature_engine: Optional[SignatureEngine] = None,
        rest_client: Optional[RestClient] = None,
        connector: Optional[Connector] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize adapter.

        Args:
            config: Exchange configuration.
            credential: API credential set, or None for public-only mode.
            signature_engine: Signing strategies (default: one per exchange).
            rest_client: REST transport (default: built from config).
            connector: WebSocket connect function (default: websockets.connect).
            sleep: Sleep function used for backoff and rate-limit waits.
        """
        self.config = config
        self.settings = config.connection
        self._credential = credential
        self._engine = signature_engine or SignatureEngine(
            default_signers(self.settings.recv_window_ms).values()
        )
        self._rest = rest_client or RestClient(
            self.EXCHANGE_ID,
            config.rest_url,
            rate_limit_per_second=self.settings.rate_limit_per_second,
            timeout_seconds=self.settings.request_timeout_seconds,
        )
        self._connector = connector
        self._sleep = sleep or asyncio.sleep

        self._manager: Optional[ConnectionManager] = None
        self._credential_error: Optional[ConfigurationError] = None
        self._reachable = False
        self._closing = False
        self._inflight: Set[asyncio.Task] = set()
        self._latest_tickers: Dict[str, Ticker] = {}
        self._health_listeners: List[HealthListener] = []
        self._ticker_listeners: List[TickerListener] = []

        self._check_credential()
        self._health = AdapterHealth(
            exchange_id=self.EXCHANGE_ID,
            credentials_configured=self.has_credentials,
            features=self.FEATURES,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def exchange_id(self) -> str:
        """Return the lowercase exchange identifier."""
        return self.EXCHANGE_ID

    @property
    def channel_name(self) -> str:
        """Stream channel identifier (the exchange id)."""
        return self.EXCHANGE_ID

    @property
    def has_credentials(self) -> bool:
        """Check if a complete credential set is available."""
        return self._credential is not None and self._credential_error is None

    @property
    def connection_state(self) -> ConnectionState:
        """Current streaming channel state."""
        if self._manager is None:
            return ConnectionState.DISCONNECTED
        return self._manager.state

    @property
    def connection_manager(self) -> Optional[ConnectionManager]:
        """The active connection manager, if a channel was opened."""
        return self._manager

    def is_connected(self) -> bool:
        """Check if the adapter can serve requests."""
        return (
            self._reachable
            and not self._closing
            and self.connection_state != ConnectionState.FAILED
        )

    def health(self) -> AdapterHealth:
        """Return the current immutable health snapshot with live stream counters."""
        if self._manager is None:
            return self._health
        return self._health.model_copy(update=self._stream_stats())

    def add_health_listener(self, listener: HealthListener) -> None:
        """Register a callback receiving every new health snapshot."""
        self._health_listeners.append(listener)

    def add_ticker_listener(self, listener: TickerListener) -> None:
        """Register a callback receiving streamed tickers in receipt order."""
        self._ticker_listeners.append(listener)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> bool:
        """
        Check reachability, then open the streaming channel if credentials exist.

        Returns:
            bool: True if the exchange answered the reachability check.
        """
        self._closing = False
        logger.info(
            "adapter_initializing",
            exchange_id=self.exchange_id,
            has_credentials=self.has_credentials,
        )

        try:
            await self._track(self._check_reachability())
        except GatewayError as e:
            self._reachable = False
            logger.warning(
                "exchange_unreachable",
                exchange_id=self.exchange_id,
                error=str(e),
                error_type=e.error_type,
            )
            self._update_health(
                reachable=False,
                last_error=str(e),
                consecutive_failures=self._health.consecutive_failures + 1,
            )
            return False

        self._reachable = True
        self._update_health(
            reachable=True,
            last_successful_call_at=datetime.now(timezone.utc),
            consecutive_failures=0,
            last_error=None,
        )

        if not self.has_credentials:
            logger.info(
                "adapter_degraded",
                exchange_id=self.exchange_id,
                reason="missing_credentials" if self._credential is None else "invalid_credentials",
            )
            return True

        await self._open_stream()
        return True

    async def reconnect(self) -> None:
        """Restart the streaming channel, leaving a Failed state if needed."""
        if self._manager is not None:
            await self._manager.reconnect()
        elif self._reachable and self.has_credentials:
            await self._open_stream()

    async def shutdown(self) -> None:
        """
        Release all resources.

        Pending REST calls are cancelled first, then the channel is closed
        with a normal-closure code and the HTTP session released.
        """
        self._closing = True
        pending = [task for task in self._inflight if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if self._manager is not None:
            await self._manager.shutdown()
            self._manager = None

        await self._rest.close()
        self._reachable = False
        self._update_health(
            connection_state=ConnectionState.DISCONNECTED,
            reachable=False,
            reconnect_attempt=0,
        )
        logger.info(
            "adapter_shutdown",
            exchange_id=self.exchange_id,
            cancelled_requests=len(pending),
        )

    async def _open_stream(self) -> None:
        manager = ConnectionManager(
            self,
            self.settings.backoff_policy(),
            connect_timeout=self.settings.connect_timeout_seconds,
            ping_interval=self.settings.ping_interval_seconds,
            ping_timeout=self.settings.ping_timeout_seconds,
            connector=self._connector,
            sleep=self._sleep,
        )
        manager.add_listener(self._on_connection_event)
        self._manager = manager
        await manager.start()

        connected = await manager.wait_connected(self.settings.connect_timeout_seconds)
        logger.info(
            "adapter_stream_started",
            exchange_id=self.exchange_id,
            connected=connected,
            state=manager.state.value,
        )

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def get_balance(self) -> List[Balance]:
        """Fetch non-zero account balances."""
        self._require_credentials()
        return await self._execute("get_balance", self._fetch_balances)

    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        """
        Fetch the ticker for a canonical symbol.

        A streamed ticker younger than ``ticker_max_age_seconds`` is served
        without a REST call.
        """
        canonical = canonical_symbol(symbol)
        native = self.SYMBOLS.to_native(canonical)

        cached = self._latest_tickers.get(canonical)
        if cached is not None:
            age = cached.age_seconds(datetime.now(timezone.utc))
            if age <= self.settings.ticker_max_age_seconds:
                return cached

        return await self._execute(
            "get_ticker",
            lambda: self._fetch_ticker(native, canonical),
        )

    async def create_order(self, request: OrderRequest) -> Order:
        """Place an order."""
        self._require_credentials()
        canonical = canonical_symbol(request.symbol)
        native = self.SYMBOLS.to_native(canonical)
        if request.client_order_id is None:
            request = request.model_copy(update={"client_order_id": uuid.uuid4().hex})

        order = await self._execute(
            "create_order",
            lambda: self._submit_order(request, native, canonical),
        )
        logger.info(
            "order_created",
            exchange_id=self.exchange_id,
            order_id=order.order_id,
            symbol=canonical,
            side=order.side.value,
            status=order.status.value,
        )
        return order

    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        """Cancel an order."""
        self._require_credentials()
        canonical = canonical_symbol(symbol)
        native = self.SYMBOLS.to_native(canonical)

        cancelled = await self._execute(
            "cancel_order",
            lambda: self._submit_cancel(native, canonical, order_id),
        )
        logger.info(
            "order_cancel_requested",
            exchange_id=self.exchange_id,
            order_id=order_id,
            cancelled=cancelled,
        )
        return cancelled

    # =========================================================================
    # REQUEST EXECUTION
    # =========================================================================

    def _check_credential(self) -> None:
        """Validate the credential once; a failure is logged and kept."""
        if self._credential is None:
            return
        try:
            self._engine.signer_for(self.EXCHANGE_ID).validate(self._credential)
        except ConfigurationError as e:
            self._credential_error = e
            logger.error(
                "credential_configuration_error",
                exchange_id=self.EXCHANGE_ID,
                field=e.field,
                error=e.message,
            )

    def _require_credentials(self) -> None:
        if self._credential_error is not None:
            raise self._credential_error
        if self._credential is None:
            raise CredentialsMissingError(self.exchange_id)

    async def _execute(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run a REST operation with the retry policy and health tracking.

        Args:
            operation: Name used in logs.
            factory: Builds a fresh coroutine per attempt.
        """
        if self._closing:
            raise NetworkError("Adapter is shut down", exchange_id=self.exchange_id)

        retried = False
        while True:
            try:
                result = await self._track(factory())
            except RateLimitError as e:
                wait = e.retry_after if e.retry_after is not None else self.settings.reconnect_base_delay_seconds
                if not retried and wait <= self.settings.max_rate_limit_wait_seconds:
                    retried = True
                    logger.warning(
                        "rate_limited_retrying",
                        exchange_id=self.exchange_id,
                        operation=operation,
                        wait_seconds=wait,
                    )
                    await self._sleep(wait)
                    continue
                self._record_failure(operation, e)
                raise
            except NetworkError as e:
                if not retried and not self._closing:
                    retried = True
                    logger.warning(
                        "request_retrying",
                        exchange_id=self.exchange_id,
                        operation=operation,
                        error=str(e),
                    )
                    continue
                self._record_failure(operation, e)
                raise
            except ConfigurationError:
                raise
            except GatewayError as e:
                self._record_failure(operation, e)
                raise

            self._record_success()
            return result

    async def _track(self, coro: Awaitable[T]) -> T:
        """Run a call as a tracked task so shutdown() can cancel it."""
        task = asyncio.ensure_future(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        try:
            return await task
        except asyncio.CancelledError:
            if self._closing and task.cancelled():
                raise NetworkError(
                    "Request cancelled: adapter shutting down",
                    exchange_id=self.exchange_id,
                ) from None
            raise

    async def _public_request(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> Any:
        """Unsigned request; params are sent as a sorted query string."""
        response = await self._rest.request(method, path, query=sorted_query(params or {}))
        return self._unwrap(response)

    async def _signed_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        http_method: Optional[str] = None,
    ) -> Any:
        """
        Signed request.

        Args:
            method: Verb (or RPC method name) fed to the signer.
            path: Request path.
            params: Query or body parameters.
            http_method: HTTP verb when it differs from ``method`` (RPC).
        """
        if self._credential is None:
            raise CredentialsMissingError(self.exchange_id)
        signed = self._engine.sign(
            self.exchange_id,
            SigningRequest(method=method, path=path, params=params or {}),
            self._credential,
        )
        response = await self._rest.request(
            http_method or method,
            path,
            query=signed.query,
            body=signed.body,
            headers=signed.headers,
        )
        return self._unwrap(response)

    def _reject(self, response: RestResponse, code: Any = None, message: Any = None) -> None:
        """Raise ExchangeRejectionError for an unsuccessful response."""
        raise ExchangeRejectionError(
            str(message or f"HTTP {response.status}"),
            exchange_id=self.exchange_id,
            code=str(code if code is not None else response.status),
        )

    # =========================================================================
    # HEALTH
    # =========================================================================

    def _capabilities(self, state: ConnectionState) -> FrozenSet[Capability]:
        capabilities = set()
        if self._reachable and not self._closing:
            capabilities.add(Capability.TICKER)
            if self.has_credentials:
                capabilities.update((Capability.BALANCE, Capability.TRADING))
            if state == ConnectionState.CONNECTED:
                capabilities.add(Capability.STREAMING)
        return frozenset(capabilities)

    def _update_health(self, **changes: Any) -> None:
        state = changes.get("connection_state", self.connection_state)
        changes.setdefault("connection_state", state)
        changes["capabilities"] = self._capabilities(state)
        changes["updated_at"] = datetime.now(timezone.utc)
        self._health = self._health.model_copy(update=changes)

        for listener in list(self._health_listeners):
            try:
                listener(self._health)
            except Exception as e:
                logger.error(
                    "health_listener_error",
                    exchange_id=self.exchange_id,
                    error=str(e),
                )

    def _record_success(self) -> None:
        self._update_health(
            last_successful_call_at=datetime.now(timezone.utc),
            consecutive_failures=0,
        )

    def _record_failure(self, operation: str, error: GatewayError) -> None:
        logger.warning(
            "adapter_call_failed",
            exchange_id=self.exchange_id,
            operation=operation,
            error=str(error),
            error_type=error.error_type,
        )
        self._update_health(
            consecutive_failures=self._health.consecutive_failures + 1,
            last_error=str(error),
        )

    def _on_connection_event(self, event: ConnectionEvent) -> None:
        changes: Dict[str, Any] = {
            "connection_state": event.current,
            "reconnect_attempt": event.attempt,
        }
        if event.current in (ConnectionState.RECONNECTING, ConnectionState.FAILED) and event.reason:
            changes["last_error"] = event.reason
        changes.update(self._stream_stats())
        self._update_health(**changes)

    def _stream_stats(self) -> Dict[str, Any]:
        manager = self._manager
        if manager is None:
            return {}
        return {
            "total_reconnections": manager.total_reconnections,
            "messages_received": manager.messages_received,
            "last_message_at": manager.last_message_at,
        }

    # =========================================================================
    # STREAM CHANNEL
    # =========================================================================

    async def resolve_stream_url(self) -> str:
        """Configured WebSocket URL."""
        if not self.config.websocket_url:
            raise ConfigurationError(
                "websocket_url is not configured",
                exchange_id=self.exchange_id,
                field="websocket_url",
            )
        return self.config.websocket_url

    def subscription_messages(self) -> List[Any]:
        """Ticker subscriptions for the configured symbols."""
        natives = [self.SYMBOLS.to_native(s) for s in self.config.symbols]
        if not natives:
            return []
        return self._ticker_subscriptions(natives)

    def handle_message(self, message: Any) -> Optional[Any]:
        """Publish any tickers in the frame and return the protocol reply, if any."""
        reply = self._stream_reply(message)
        for ticker in self._stream_tickers(message):
            self._publish_ticker(ticker)
        return reply

    def _publish_ticker(self, ticker: Ticker) -> None:
        self._latest_tickers[ticker.symbol] = ticker
        for listener in list(self._ticker_listeners):
            try:
                listener(ticker)
            except Exception as e:
                logger.error(
                    "ticker_listener_error",
                    exchange_id=self.exchange_id,
                    error=str(e),
                )

    def _stream_reply(self, message: Any) -> Optional[Any]:
        """Reply required by the exchange protocol (heartbeats), if any."""
        return None

    # =========================================================================
    # EXCHANGE HOOKS
    # =========================================================================

    async def _check_reachability(self) -> None:
        """Call the public ping endpoint."""
        await self._public_request(self.PING_PATH)

    def _unwrap(self, response: RestResponse) -> Any:
        """
        Validate the exchange envelope and return its payload.

        Raises:
            AuthenticationError, RateLimitError, ExchangeRejectionError, ProtocolError
        """
        raise NotImplementedError

    async def _fetch_balances(self) -> List[Balance]:
        raise NotImplementedError

    async def _fetch_ticker(self, native: str, symbol: str) -> Optional[Ticker]:
        raise NotImplementedError

    async def _submit_order(self, request: OrderRequest, native: str, symbol: str) -> Order:
        raise NotImplementedError

    async def _submit_cancel(self, native: str, symbol: str, order_id: str) -> bool:
        raise NotImplementedError

    def _ticker_subscriptions(self, natives: List[str]) -> List[Any]:
        raise NotImplementedError

    def _stream_tickers(self, message: Any) -> List[Ticker]:
        raise NotImplementedError

    def __repr__(self) -> str:
        """Return string representation of adapter."""
        return (
            f"{type(self).__name__}(exchange={self.exchange_id}, "
            f"connected={self.is_connected()}, state={self.connection_state.value})"
        )
