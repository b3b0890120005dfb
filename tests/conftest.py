"""
Shared fixtures for the exchange gateway test suite.

Nothing here touches the network: REST calls go through FakeRestClient,
WebSockets through FakeWebSocket, and adapters seen by the gateway are
FakeAdapter instances driven directly by the tests.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from exchange_gateway.adapters.rest import RestResponse
from exchange_gateway.config.models import ConnectionSettings, ExchangeConfig
from exchange_gateway.errors import CredentialsMissingError, NetworkError
from exchange_gateway.interfaces.exchange_adapter import ExchangeAdapter
from exchange_gateway.models.balance import Balance
from exchange_gateway.models.credentials import Credential
from exchange_gateway.models.health import AdapterHealth, Capability, ConnectionState
from exchange_gateway.models.order import Order, OrderRequest, OrderStatus
from exchange_gateway.models.ticker import Ticker


# ============================================
# REST / WebSocket doubles
# ============================================


class FakeRestClient:
    """Replays queued responses (or raises queued exceptions) per request."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self.started = asyncio.Event()
        self.hang = False

    def queue(self, *items: Any) -> None:
        self.responses.extend(items)

    async def request(self, method, path, query="", body=None, headers=None):
        self.calls.append(
            {"method": method, "path": path, "query": query, "body": body, "headers": headers or {}}
        )
        self.started.set()
        if self.hang:
            await asyncio.Event().wait()
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, RestResponse):
            return item
        return RestResponse(status=200, data=item)

    async def close(self) -> None:
        self.closed = True


class FakeWebSocket:
    """In-memory WebSocket: tests push frames, the manager receives them."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[Any] = []
        self.close_codes: List[int] = []

    def push(self, frame: Any) -> None:
        if isinstance(frame, (dict, list)):
            frame = json.dumps(frame)
        self.incoming.put_nowait(frame)

    async def recv(self) -> Any:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, payload: str) -> None:
        self.sent.append(payload)

    def sent_json(self) -> List[Any]:
        return [json.loads(p) if p.startswith(("{", "[")) else p for p in self.sent]

    async def ping(self) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_codes.append(code)


class FakeConnector:
    """Hands out prepared sockets (or raises prepared errors) per connect()."""

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.urls: List[str] = []

    async def __call__(self, url: str) -> Any:
        self.urls.append(url)
        outcome = self.outcomes.pop(0) if self.outcomes else OSError("no more sockets")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ============================================
# Gateway-facing adapter double
# ============================================


def make_ticker(exchange_id: str, symbol: str = "BTC/USDT", price: str = "50000") -> Ticker:
    return Ticker(
        exchange_id=exchange_id,
        symbol=symbol,
        last_price=Decimal(price),
        volume_24h=Decimal("10"),
        high_24h=Decimal(price),
        low_24h=Decimal(price),
        observed_at=datetime.now(timezone.utc),
    )


class FakeAdapter(ExchangeAdapter):
    """Scriptable ExchangeAdapter used by gateway and API tests."""

    def __init__(
        self,
        exchange_id: str,
        state: ConnectionState = ConnectionState.CONNECTED,
        reachable: bool = True,
        credentials: bool = True,
        init_delay: float = 0.0,
        init_error: Optional[BaseException] = None,
        init_failures: int = 0,
        call_delay: float = 0.0,
        call_error: Optional[BaseException] = None,
    ):
        self._exchange_id = exchange_id
        self.state = state
        self.reachable = reachable
        self.credentials = credentials
        self.init_delay = init_delay
        self.init_error = init_error
        self.init_failures = init_failures
        self.call_delay = call_delay
        self.call_error = call_error
        self.initialize_calls = 0
        self.shutdown_calls = 0
        self.orders: List[OrderRequest] = []
        self._health_listeners: List[Any] = []
        self._ticker_listeners: List[Any] = []

    @property
    def exchange_id(self) -> str:
        return self._exchange_id

    async def initialize(self) -> bool:
        self.initialize_calls += 1
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.init_error is not None:
            raise self.init_error
        if self.initialize_calls <= self.init_failures:
            raise NetworkError("exchange unavailable", exchange_id=self.exchange_id)
        self.publish_health()
        return self.reachable

    async def _call(self, result: Any) -> Any:
        if self.call_delay:
            await asyncio.sleep(self.call_delay)
        if self.call_error is not None:
            raise self.call_error
        return result

    async def get_balance(self) -> List[Balance]:
        if not self.credentials:
            raise CredentialsMissingError(self.exchange_id)
        return await self._call(
            [Balance(currency="USDT", free=Decimal("100"), locked=Decimal("0"), total=Decimal("100"))]
        )

    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        if symbol == "NONE/USDT":
            return await self._call(None)
        return await self._call(make_ticker(self.exchange_id, symbol))

    async def create_order(self, request: OrderRequest) -> Order:
        if not self.credentials:
            raise CredentialsMissingError(self.exchange_id)
        self.orders.append(request)
        return await self._call(
            Order(
                exchange_id=self.exchange_id,
                order_id="1001",
                symbol=request.symbol,
                side=request.side,
                order_type=request.order_type,
                quantity=request.quantity,
                price=request.price,
                status=OrderStatus.SUBMITTED,
                created_at=datetime.now(timezone.utc),
                client_order_id=request.client_order_id,
            )
        )

    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        if not self.credentials:
            raise CredentialsMissingError(self.exchange_id)
        return await self._call(order_id == "1001")

    def is_connected(self) -> bool:
        return self.reachable and self.state != ConnectionState.FAILED

    def health(self) -> AdapterHealth:
        capabilities = set()
        if self.reachable:
            capabilities.add(Capability.TICKER)
            if self.credentials:
                capabilities.update((Capability.BALANCE, Capability.TRADING))
            if self.state == ConnectionState.CONNECTED:
                capabilities.add(Capability.STREAMING)
        return AdapterHealth(
            exchange_id=self.exchange_id,
            connection_state=self.state,
            reachable=self.reachable,
            credentials_configured=self.credentials,
            capabilities=frozenset(capabilities),
        )

    async def reconnect(self) -> None:
        self.state = ConnectionState.CONNECTED
        self.publish_health()

    async def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.state = ConnectionState.DISCONNECTED

    def add_health_listener(self, listener) -> None:
        self._health_listeners.append(listener)

    def add_ticker_listener(self, listener) -> None:
        self._ticker_listeners.append(listener)

    def publish_health(self) -> None:
        snapshot = self.health()
        for listener in list(self._health_listeners):
            listener(snapshot)

    def publish_ticker(self, ticker: Ticker) -> None:
        for listener in list(self._ticker_listeners):
            listener(ticker)


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def connection_settings() -> ConnectionSettings:
    """Fast settings: no heartbeat, tiny timeouts."""
    return ConnectionSettings(
        connect_timeout_seconds=1.0,
        request_timeout_seconds=1.0,
        ping_interval_seconds=None,
        max_rate_limit_wait_seconds=2.0,
        max_reconnect_attempts=2,
    )


@pytest.fixture
def exchange_config(connection_settings):
    """Factory for ExchangeConfig with test defaults."""

    def _make(**overrides: Any) -> ExchangeConfig:
        values: Dict[str, Any] = {
            "rest_url": "https://api.example.test",
            "websocket_url": "wss://stream.example.test/ws",
            "symbols": ["BTC/USDT"],
            "connection": connection_settings,
        }
        values.update(overrides)
        return ExchangeConfig(**values)

    return _make


@pytest.fixture
def credential():
    """Factory for a credential set valid for the given exchange."""

    def _make(exchange_id: str, **overrides: Any) -> Credential:
        values: Dict[str, Any] = {
            "exchange_id": exchange_id,
            "api_key": "test-key",
            # Base64 so Coinbase accepts it too
            "api_secret": "c2VjcmV0LWJ5dGVzLWZvci10ZXN0cw==",
            "passphrase": "test-phrase",
        }
        values.update(overrides)
        return Credential(**values)

    return _make


@pytest.fixture
def fake_rest() -> FakeRestClient:
    return FakeRestClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_adapter():
    """Factory for FakeAdapter instances."""
    return FakeAdapter


@pytest.fixture
def fake_websocket():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


@pytest.fixture
def fake_connector():
    """Factory for FakeConnector instances."""
    return FakeConnector


@pytest.fixture
def ticker_factory():
    return make_ticker
