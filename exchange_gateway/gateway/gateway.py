"""
Exchange Gateway: owns every adapter and exposes one multi-exchange API.

The gateway never branches on a concrete exchange. It:
    - starts adapters concurrently, retrying each within one startup timeout
    - routes single-exchange calls and fans out "all" calls with an
      overall deadline, reporting per-exchange results
    - keeps a health registry and re-selects the primary adapter on
      every health change
    - forwards streamed tickers and health snapshots to listeners and the
      optional sink through one queue worker

Example:
    >>> gateway = ExchangeGateway.from_config(config, credentials)
    >>> await gateway.start()
    >>> results = await gateway.get_ticker("all", "BTC/USDT")
    >>> {ex: r.ok for ex, r in results.items()}
    {'cryptocom': True, 'binance': True, 'coinbase': False, ...}
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import structlog

from exchange_gateway.adapters import build_adapter
from exchange_gateway.adapters.symbols import canonical_symbol
from exchange_gateway.config.models import AppConfig, GatewaySettings
from exchange_gateway.errors import (
    AdapterTimeoutError,
    ConfigurationError,
    ExchangeNotFoundError,
    NetworkError,
    NoPrimaryAdapterError,
)
from exchange_gateway.gateway.health_registry import HealthRegistry
from exchange_gateway.interfaces.exchange_adapter import ExchangeAdapter, TickerListener
from exchange_gateway.interfaces.snapshot_sink import SnapshotSink
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.credentials import Credential
from exchange_gateway.models.health import AdapterHealth, ConnectionState, GatewayStatus
from exchange_gateway.models.order import Order, OrderRequest
from exchange_gateway.models.results import ExchangeResult
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)

ALL_EXCHANGES = "all"
EVENT_QUEUE_SIZE = 10000

_Event = Tuple[str, Any]


class ExchangeGateway:
    """
    Multi-exchange orchestrator.

    Attributes:
        settings: Priority list and timeouts.
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        sink: Optional[SnapshotSink] = None,
    ):
        """
        Initialize gateway.

        Args:
            settings: Gateway settings (priority, startup and fan-out timeouts).
            sink: Optional snapshot sink receiving tickers and health.
        """
        self.settings = settings or GatewaySettings()
        self._sink = sink
        self._adapters: Dict[str, ExchangeAdapter] = {}
        self._registry = HealthRegistry()
        self._registry.add_listener(self._on_health_change)
        self._primary: Optional[str] = None
        self._ticker_listeners: List[TickerListener] = []
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        credentials: Dict[str, Credential],
        sink: Optional[SnapshotSink] = None,
        **adapter_kwargs: Any,
    ) -> "ExchangeGateway":
        """
        Build a gateway with one adapter per enabled exchange.

        Args:
            config: Application configuration.
            credentials: Credentials keyed by exchange id.
            sink: Optional snapshot sink.
            **adapter_kwargs: Passed to every adapter constructor.
        """
        gateway = cls(config.gateway, sink)
        for exchange_id in config.get_enabled_exchanges():
            adapter = build_adapter(
                exchange_id,
                config.exchanges[exchange_id],
                credentials.get(exchange_id),
                **adapter_kwargs,
            )
            gateway.register(adapter)
        return gateway

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, adapter: ExchangeAdapter) -> None:
        """
        Register an adapter and subscribe to its health and tickers.

        Raises:
            ConfigurationError: If an adapter with the same id is registered.
        """
        exchange_id = adapter.exchange_id
        if exchange_id in self._adapters:
            raise ConfigurationError(
                "Adapter already registered",
                exchange_id=exchange_id,
            )
        self._adapters[exchange_id] = adapter
        adapter.add_health_listener(self._registry.update)
        adapter.add_ticker_listener(self._on_ticker)
        self._registry.update(adapter.health())
        logger.info("adapter_registered", exchange_id=exchange_id)

    @property
    def exchange_ids(self) -> List[str]:
        """Registered exchange ids in priority order."""
        return [adapter.exchange_id for adapter in self._ordered()]

    @property
    def primary(self) -> Optional[str]:
        """Exchange id of the current primary adapter."""
        return self._primary

    def adapter(self, exchange_id: str) -> ExchangeAdapter:
        """
        Look up a registered adapter.

        Raises:
            ExchangeNotFoundError: If the id is unknown.
        """
        try:
            return self._adapters[exchange_id]
        except KeyError:
            raise ExchangeNotFoundError(exchange_id) from None

    def _ordered(self) -> List[ExchangeAdapter]:
        rank = {name: i for i, name in enumerate(self.settings.priority)}
        registered = list(self._adapters)
        return sorted(
            self._adapters.values(),
            key=lambda a: (rank.get(a.exchange_id, len(rank)), registered.index(a.exchange_id)),
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> Dict[str, bool]:
        """
        Initialize all adapters concurrently.

        A failing or slow adapter never blocks the others.

        Returns:
            Dict[str, bool]: initialize() outcome per exchange.
        """
        self._start_worker()
        adapters = self._ordered()
        outcomes = await asyncio.gather(*(self._initialize(a) for a in adapters))
        results = {a.exchange_id: ok for a, ok in zip(adapters, outcomes)}

        primary = self.select_primary()
        logger.info(
            "gateway_started",
            adapters=len(results),
            reachable=sum(results.values()),
            primary=primary,
        )
        return results

    async def _initialize(self, adapter: ExchangeAdapter) -> bool:
        """
        Run adapter.initialize() until it succeeds or startup attempts run out.

        Every attempt shares one startup_timeout_seconds deadline. When the
        deadline interrupts an attempt, the adapter's is_connected() decides
        the outcome.
        """
        settings = self.settings
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.startup_timeout_seconds

        for attempt in range(1, settings.startup_retry_attempts + 1):
            remaining = deadline - loop.time()
            try:
                if await asyncio.wait_for(adapter.initialize(), timeout=remaining):
                    return True
                logger.warning(
                    "adapter_startup_unreachable",
                    exchange_id=adapter.exchange_id,
                    attempt=attempt,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "adapter_startup_timeout",
                    exchange_id=adapter.exchange_id,
                    attempt=attempt,
                    timeout_seconds=settings.startup_timeout_seconds,
                )
                return adapter.is_connected()
            except Exception as e:
                logger.error(
                    "adapter_startup_failed",
                    exchange_id=adapter.exchange_id,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if attempt == settings.startup_retry_attempts:
                break
            delay = settings.startup_retry_delay_seconds
            if loop.time() + delay >= deadline:
                break
            await asyncio.sleep(delay)

        logger.error(
            "adapter_startup_gave_up",
            exchange_id=adapter.exchange_id,
            attempts=attempt,
        )
        return False

    async def restart_adapter(self, exchange_id: str) -> Optional[str]:
        """
        Shut an adapter down and initialize it again.

        Returns:
            Optional[str]: The primary adapter after the restart.
        """
        adapter = self.adapter(exchange_id)
        logger.info("adapter_restarting", exchange_id=exchange_id)
        await adapter.shutdown()
        ok = await self._initialize(adapter)
        primary = self.select_primary()
        logger.info(
            "adapter_restarted",
            exchange_id=exchange_id,
            reachable=ok,
            primary=primary,
        )
        return primary

    async def shutdown(self) -> None:
        """Shut down every adapter, stop the event worker and close the sink."""
        adapters = self._ordered()
        outcomes = await asyncio.gather(
            *(a.shutdown() for a in adapters),
            return_exceptions=True,
        )
        for adapter, outcome in zip(adapters, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "adapter_shutdown_failed",
                    exchange_id=adapter.exchange_id,
                    error=str(outcome),
                )

        await self._stop_worker()
        if self._sink is not None:
            await self._sink.close()
        self._primary = None
        logger.info("gateway_shutdown", adapters=len(adapters))

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def get_balance(self, exchange_id: str) -> List[Balance]:
        """Balances on one exchange."""
        return await self.adapter(exchange_id).get_balance()

    async def get_aggregated_balance(self) -> Dict[str, ExchangeResult]:
        """
        Balances on every exchange with credentials.

        Returns:
            Dict[str, ExchangeResult]: Per-exchange balances or errors.
        """
        adapters = [a for a in self._ordered() if a.health().credentials_configured]
        return await self._fan_out(adapters, lambda a: a.get_balance())

    async def get_ticker(
        self,
        exchange_id: str,
        symbol: str,
    ) -> Union[Optional[Ticker], Dict[str, ExchangeResult]]:
        """
        Ticker from one exchange, or from every connected exchange.

        Args:
            exchange_id: Exchange id, or "all".
            symbol: Canonical symbol.

        Returns:
            Optional[Ticker] for a single exchange; Dict[str, ExchangeResult]
            for "all".

        Raises:
            InvalidSymbolError: If the symbol is malformed.
            ExchangeNotFoundError: If the exchange id is unknown.
        """
        if exchange_id != ALL_EXCHANGES:
            return await self.adapter(exchange_id).get_ticker(symbol)

        symbol = canonical_symbol(symbol)
        adapters = [a for a in self._ordered() if a.is_connected()]
        return await self._fan_out(adapters, lambda a: a.get_ticker(symbol))

    async def create_order(self, request: OrderRequest) -> Order:
        """
        Place an order on the requested exchange, or on the primary.

        Raises:
            NoPrimaryAdapterError: If no exchange was named and none is connected.
        """
        exchange_id = request.exchange_id or self.select_primary()
        if exchange_id is None:
            raise NoPrimaryAdapterError()
        return await self.adapter(exchange_id).create_order(request)

    async def cancel_order(self, exchange_id: str, symbol: str, order_id: str) -> bool:
        """Cancel an order on one exchange."""
        return await self.adapter(exchange_id).cancel_order(symbol, order_id)

    async def _fan_out(
        self,
        adapters: List[ExchangeAdapter],
        call: Callable[[ExchangeAdapter], Awaitable[Any]],
    ) -> Dict[str, ExchangeResult]:
        """Run a call on several adapters under one overall deadline."""
        if not adapters:
            return {}

        timeout = self.settings.fanout_timeout_seconds
        tasks = {asyncio.ensure_future(call(a)): a.exchange_id for a in adapters}
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: Dict[str, ExchangeResult] = {}
        for task, exchange_id in tasks.items():
            if task in pending:
                error: Optional[BaseException] = AdapterTimeoutError(exchange_id, timeout)
            elif task.cancelled():
                error = NetworkError("Request cancelled", exchange_id=exchange_id)
            else:
                error = task.exception()

            if error is None:
                results[exchange_id] = ExchangeResult.success(exchange_id, task.result())
            else:
                logger.warning(
                    "fanout_call_failed",
                    exchange_id=exchange_id,
                    error=str(error),
                    error_type=type(error).__name__,
                )
                results[exchange_id] = ExchangeResult.failure(exchange_id, error)
        return results

    # =========================================================================
    # HEALTH
    # =========================================================================

    def select_primary(self) -> Optional[str]:
        """
        Pick the primary adapter.

        First adapter in priority order whose channel is Connected, else the
        first that is REST-reachable, else None.
        """
        ordered = self._ordered()
        choice = next(
            (
                a.exchange_id
                for a in ordered
                if a.health().connection_state == ConnectionState.CONNECTED and a.is_connected()
            ),
            None,
        )
        if choice is None:
            choice = next((a.exchange_id for a in ordered if a.is_connected()), None)

        if choice != self._primary:
            logger.info("primary_changed", previous=self._primary, current=choice)
            self._primary = choice
        return choice

    def health(self, exchange_id: str) -> AdapterHealth:
        """Current health snapshot of one adapter, stream counters included."""
        return self.adapter(exchange_id).health()

    def status(self) -> GatewayStatus:
        """Health of every adapter in priority order, plus the primary."""
        return GatewayStatus(
            primary=self._primary,
            adapters={a.exchange_id: a.health() for a in self._ordered()},
        )

    def add_ticker_listener(self, listener: TickerListener) -> None:
        """Receive every streamed ticker, per exchange in receipt order."""
        self._ticker_listeners.append(listener)

    def _on_health_change(self, health: AdapterHealth) -> None:
        if health.exchange_id in self._adapters:
            self.select_primary()
        self._enqueue(("health", health))

    def _on_ticker(self, ticker: Ticker) -> None:
        self._enqueue(("ticker", ticker))

    # =========================================================================
    # EVENT WORKER
    # =========================================================================

    def _start_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
        self._worker = asyncio.create_task(self._drain_events(self._queue))

    async def _stop_worker(self) -> None:
        if self._worker is None or self._queue is None:
            return
        try:
            self._queue.put_nowait(None)
            await asyncio.wait_for(self._worker, timeout=5.0)
        except (asyncio.QueueFull, asyncio.TimeoutError):
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        self._queue = None

    def _enqueue(self, event: _Event) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("gateway_event_dropped", kind=event[0])

    async def _drain_events(self, queue: asyncio.Queue) -> None:
        while True:
            event = await queue.get()
            if event is None:
                return
            kind, payload = event
            if kind == "ticker":
                await self._dispatch_ticker(payload)
            elif self._sink is not None:
                await self._write_sink(self._sink.write_health, payload)

    async def _dispatch_ticker(self, ticker: Ticker) -> None:
        for listener in list(self._ticker_listeners):
            try:
                listener(ticker)
            except Exception as e:
                logger.error(
                    "ticker_listener_error",
                    exchange_id=ticker.exchange_id,
                    error=str(e),
                )
        if self._sink is not None:
            await self._write_sink(self._sink.write_ticker, ticker)

    async def _write_sink(self, write: Callable[[Any], Awaitable[None]], payload: Any) -> None:
        try:
            await write(payload)
        except Exception as e:
            logger.error(
                "sink_write_failed",
                exchange_id=getattr(payload, "exchange_id", None),
                error=str(e),
            )

    def __repr__(self) -> str:
        return f"ExchangeGateway(adapters={self.exchange_ids}, primary={self._primary})"
