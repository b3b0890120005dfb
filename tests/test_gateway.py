"""
Unit tests for ExchangeGateway orchestration.

The gateway only sees the ExchangeAdapter interface, so these tests drive
it with FakeAdapter instances.
"""

import asyncio
from decimal import Decimal
from typing import List

import pytest

from exchange_gateway.config.models import AppConfig, ExchangeConfig, GatewaySettings
from exchange_gateway.errors import (
    ConfigurationError,
    ExchangeNotFoundError,
    InvalidSymbolError,
    NetworkError,
    NoPrimaryAdapterError,
)
from exchange_gateway.gateway import ExchangeGateway
from exchange_gateway.interfaces.snapshot_sink import SnapshotSink
from exchange_gateway.models.health import AdapterHealth, ConnectionState
from exchange_gateway.models.order import OrderRequest, OrderSide
from exchange_gateway.models.ticker import Ticker


class RecordingSink(SnapshotSink):
    """Collects everything the gateway writes."""

    def __init__(self) -> None:
        self.tickers: List[Ticker] = []
        self.health: List[AdapterHealth] = []
        self.closed = False
        self.ticker_written = asyncio.Event()

    async def write_ticker(self, ticker: Ticker) -> None:
        self.tickers.append(ticker)
        self.ticker_written.set()

    async def write_health(self, health: AdapterHealth) -> None:
        self.health.append(health)

    async def close(self) -> None:
        self.closed = True


class FailingSink(RecordingSink):
    async def write_ticker(self, ticker: Ticker) -> None:
        self.ticker_written.set()
        raise RuntimeError("redis down")


def _gateway(*adapters, sink=None, **settings) -> ExchangeGateway:
    settings.setdefault("startup_retry_delay_seconds", 0.01)
    gateway = ExchangeGateway(GatewaySettings(**settings), sink=sink)
    for adapter in adapters:
        gateway.register(adapter)
    return gateway


def _order(**overrides) -> OrderRequest:
    values = {"symbol": "BTC/USDT", "side": OrderSide.BUY, "quantity": Decimal("0.01")}
    values.update(overrides)
    return OrderRequest(**values)


# ============================================
# Registration and startup
# ============================================


class TestRegistration:
    """Adapter registry"""

    def test_exchange_ids_follow_priority(self, fake_adapter):
        gateway = _gateway(fake_adapter("okx"), fake_adapter("binance"), fake_adapter("cryptocom"))
        assert gateway.exchange_ids == ["cryptocom", "binance", "okx"]

    def test_duplicate_registration_rejected(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        with pytest.raises(ConfigurationError):
            gateway.register(fake_adapter("binance"))

    def test_unknown_adapter(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        with pytest.raises(ExchangeNotFoundError):
            gateway.adapter("kraken")

    def test_from_config_builds_enabled_adapters(self):
        config = AppConfig(
            exchanges={
                "okx": ExchangeConfig(rest_url="https://www.okx.com"),
                "binance": ExchangeConfig(rest_url="https://api.binance.com"),
                "bybit": ExchangeConfig(rest_url="https://api.bybit.com", enabled=False),
            }
        )

        gateway = ExchangeGateway.from_config(config, credentials={})

        assert gateway.exchange_ids == ["binance", "okx"]
        assert gateway.health("okx").credentials_configured is False


class TestStartup:
    """Concurrent, isolated initialization with bounded retries"""

    @pytest.mark.asyncio
    async def test_failures_and_timeouts_are_isolated(self, fake_adapter):
        broken = fake_adapter(
            "cryptocom",
            init_error=RuntimeError("boom"),
            reachable=False,
            state=ConnectionState.DISCONNECTED,
        )
        slow = fake_adapter(
            "binance",
            init_delay=5.0,
            reachable=False,
            state=ConnectionState.DISCONNECTED,
        )
        unreachable = fake_adapter("coinbase", reachable=False, state=ConnectionState.DISCONNECTED)
        gave_up = fake_adapter("kucoin", reachable=False, state=ConnectionState.FAILED)
        healthy = [fake_adapter("okx"), fake_adapter("bybit")]
        gateway = _gateway(broken, slow, unreachable, gave_up, *healthy, startup_timeout_seconds=0.3)

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await gateway.start()
        elapsed = loop.time() - started

        assert results == {
            "cryptocom": False,
            "binance": False,
            "coinbase": False,
            "kucoin": False,
            "okx": True,
            "bybit": True,
        }
        assert elapsed < 1.0
        assert [a.initialize_calls for a in (broken, slow, unreachable, gave_up)] == [3, 1, 3, 3]
        assert [a.initialize_calls for a in healthy] == [1, 1]

        status = gateway.status()
        assert status.primary == "okx"
        assert status.connected_count == 2
        for exchange_id in ("cryptocom", "binance", "coinbase"):
            assert status.adapters[exchange_id].connection_state == ConnectionState.DISCONNECTED
            assert not status.adapters[exchange_id].connected
        assert status.adapters["kucoin"].connection_state == ConnectionState.FAILED
        assert not status.adapters["kucoin"].connected
        for exchange_id in ("okx", "bybit"):
            assert status.adapters[exchange_id].connection_state == ConnectionState.CONNECTED
            assert status.adapters[exchange_id].connected
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_unreachable_adapter_reports_false(self, fake_adapter):
        adapter = fake_adapter("binance", reachable=False)
        gateway = _gateway(adapter)

        assert await gateway.start() == {"binance": False}
        assert adapter.initialize_calls == 3
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, fake_adapter):
        flaky = fake_adapter("binance", init_failures=2)
        gateway = _gateway(flaky)

        assert await gateway.start() == {"binance": True}
        assert flaky.initialize_calls == 3
        assert gateway.primary == "binance"
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_attempts(self, fake_adapter):
        flaky = fake_adapter("binance", init_failures=5)
        gateway = _gateway(flaky, startup_retry_attempts=2)

        assert await gateway.start() == {"binance": False}
        assert flaky.initialize_calls == 2
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_retries_stay_within_startup_timeout(self, fake_adapter):
        adapter = fake_adapter("binance", reachable=False)
        gateway = _gateway(adapter, startup_timeout_seconds=0.2, startup_retry_delay_seconds=1.0)

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await gateway.start()

        assert results == {"binance": False}
        assert adapter.initialize_calls == 1
        assert loop.time() - started < 0.5
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_interrupted_attempt_reports_is_connected(self, fake_adapter):
        # Reachable exchange whose stream handshake outlives the deadline
        slow = fake_adapter("binance", init_delay=5.0, state=ConnectionState.CONNECTING)
        gateway = _gateway(slow, startup_timeout_seconds=0.1)

        assert await gateway.start() == {"binance": True}
        assert slow.initialize_calls == 1
        await gateway.shutdown()


# ============================================
# Primary selection
# ============================================


class TestPrimarySelection:
    """First Connected in priority order, then first reachable"""

    def test_first_connected_in_priority_order(self, fake_adapter):
        gateway = _gateway(
            fake_adapter("cryptocom", state=ConnectionState.RECONNECTING),
            fake_adapter("binance"),
            fake_adapter("okx"),
        )
        assert gateway.select_primary() == "binance"

    def test_falls_back_to_first_reachable(self, fake_adapter):
        gateway = _gateway(
            fake_adapter("okx", state=ConnectionState.DISCONNECTED),
            fake_adapter("cryptocom", reachable=False),
            fake_adapter("binance", state=ConnectionState.RECONNECTING),
        )
        assert gateway.select_primary() == "binance"

    def test_failed_channel_is_never_primary(self, fake_adapter):
        gateway = _gateway(fake_adapter("cryptocom", state=ConnectionState.FAILED))
        assert gateway.select_primary() is None

    def test_custom_priority(self, fake_adapter):
        gateway = _gateway(fake_adapter("cryptocom"), fake_adapter("okx"), priority=["okx", "cryptocom"])
        assert gateway.select_primary() == "okx"

    @pytest.mark.asyncio
    async def test_reselected_on_health_change(self, fake_adapter):
        cryptocom = fake_adapter("cryptocom")
        gateway = _gateway(cryptocom, fake_adapter("binance"))
        await gateway.start()
        assert gateway.primary == "cryptocom"

        cryptocom.state = ConnectionState.FAILED
        cryptocom.publish_health()
        assert gateway.primary == "binance"

        await cryptocom.reconnect()
        assert gateway.primary == "cryptocom"

        await gateway.shutdown()
        assert gateway.primary is None


# ============================================
# Operations
# ============================================


class TestFanOut:
    """Multi-exchange calls report per-exchange results"""

    @pytest.mark.asyncio
    async def test_timeout_and_errors_are_per_exchange(self, fake_adapter):
        gateway = _gateway(
            fake_adapter("cryptocom"),
            fake_adapter("binance", call_delay=5.0),
            fake_adapter("okx", call_error=NetworkError("reset", exchange_id="okx")),
            fake_adapter("bybit", reachable=False),
            fanout_timeout_seconds=0.1,
        )

        results = await gateway.get_ticker("all", "btc/usdt")

        assert set(results) == {"cryptocom", "binance", "okx"}
        assert results["cryptocom"].ok
        assert results["cryptocom"].data.symbol == "BTC/USDT"
        assert results["binance"].error.type == "AdapterTimeoutError"
        assert results["okx"].error.type == "NetworkError"
        assert results["okx"].error.retryable is True

    @pytest.mark.asyncio
    async def test_invalid_symbol_rejected_before_fan_out(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        with pytest.raises(InvalidSymbolError):
            await gateway.get_ticker("all", "BTCUSDT")

    @pytest.mark.asyncio
    async def test_no_connected_adapters_is_empty(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance", reachable=False))
        assert await gateway.get_ticker("all", "BTC/USDT") == {}

    @pytest.mark.asyncio
    async def test_aggregated_balance_only_with_credentials(self, fake_adapter):
        gateway = _gateway(
            fake_adapter("binance"),
            fake_adapter("okx", credentials=False),
            fake_adapter("bybit", call_error=RuntimeError("unexpected")),
        )

        results = await gateway.get_aggregated_balance()

        assert set(results) == {"binance", "bybit"}
        assert results["binance"].data[0].currency == "USDT"
        assert results["bybit"].error.type == "RuntimeError"


class TestRouting:
    """Single-exchange calls and order routing"""

    @pytest.mark.asyncio
    async def test_single_exchange_ticker(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        ticker = await gateway.get_ticker("binance", "ETH/USDT")
        assert ticker.exchange_id == "binance"
        assert await gateway.get_ticker("binance", "NONE/USDT") is None

    @pytest.mark.asyncio
    async def test_unknown_exchange(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        with pytest.raises(ExchangeNotFoundError):
            await gateway.get_balance("kraken")

    @pytest.mark.asyncio
    async def test_order_goes_to_primary(self, fake_adapter):
        cryptocom, binance = fake_adapter("cryptocom"), fake_adapter("binance")
        gateway = _gateway(binance, cryptocom)

        order = await gateway.create_order(_order())

        assert order.exchange_id == "cryptocom"
        assert len(cryptocom.orders) == 1
        assert binance.orders == []

    @pytest.mark.asyncio
    async def test_order_goes_to_named_exchange(self, fake_adapter):
        cryptocom, binance = fake_adapter("cryptocom"), fake_adapter("binance")
        gateway = _gateway(cryptocom, binance)

        order = await gateway.create_order(_order(exchange_id="binance"))

        assert order.exchange_id == "binance"
        assert cryptocom.orders == []

    @pytest.mark.asyncio
    async def test_no_primary(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance", reachable=False))
        with pytest.raises(NoPrimaryAdapterError):
            await gateway.create_order(_order())

    @pytest.mark.asyncio
    async def test_cancel(self, fake_adapter):
        gateway = _gateway(fake_adapter("okx"))
        assert await gateway.cancel_order("okx", "BTC/USDT", "1001") is True
        assert await gateway.cancel_order("okx", "BTC/USDT", "42") is False


# ============================================
# Lifecycle, status and sink
# ============================================


class TestLifecycle:
    """Restart, shutdown and status"""

    @pytest.mark.asyncio
    async def test_restart_adapter(self, fake_adapter):
        binance = fake_adapter("binance")
        gateway = _gateway(binance)
        await gateway.start()

        primary = await gateway.restart_adapter("binance")

        assert binance.shutdown_calls == 1
        assert binance.initialize_calls == 2
        assert primary == "binance"
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_restart_unknown_adapter(self, fake_adapter):
        gateway = _gateway(fake_adapter("binance"))
        with pytest.raises(ExchangeNotFoundError):
            await gateway.restart_adapter("kraken")

    @pytest.mark.asyncio
    async def test_status(self, fake_adapter):
        gateway = _gateway(
            fake_adapter("binance"),
            fake_adapter("cryptocom", reachable=False),
        )
        await gateway.start()

        status = gateway.status()

        assert list(status.adapters) == ["cryptocom", "binance"]
        assert status.primary == "binance"
        assert status.connected_count == 1
        assert gateway.health("cryptocom").reachable is False
        await gateway.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_stops_every_adapter(self, fake_adapter):
        adapters = [fake_adapter("binance"), fake_adapter("okx")]
        sink = RecordingSink()
        gateway = _gateway(*adapters, sink=sink)
        await gateway.start()

        await gateway.shutdown()

        assert [a.shutdown_calls for a in adapters] == [1, 1]
        assert sink.closed


class TestEvents:
    """Ticker and health forwarding"""

    @pytest.mark.asyncio
    async def test_tickers_reach_listeners_and_sink(self, fake_adapter, ticker_factory):
        binance = fake_adapter("binance")
        sink = RecordingSink()
        gateway = _gateway(binance, sink=sink)
        received = []
        gateway.add_ticker_listener(received.append)
        await gateway.start()

        binance.publish_ticker(ticker_factory("binance", price="100"))
        binance.publish_ticker(ticker_factory("binance", price="101"))
        await gateway.shutdown()

        assert [t.last_price for t in received] == [Decimal("100"), Decimal("101")]
        assert [t.last_price for t in sink.tickers] == [Decimal("100"), Decimal("101")]
        assert any(h.exchange_id == "binance" for h in sink.health)

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_forwarding(self, fake_adapter, ticker_factory):
        binance = fake_adapter("binance")
        sink = FailingSink()
        gateway = _gateway(binance, sink=sink)
        received = []
        gateway.add_ticker_listener(received.append)
        await gateway.start()

        binance.publish_ticker(ticker_factory("binance"))
        await asyncio.wait_for(sink.ticker_written.wait(), timeout=1.0)
        binance.publish_ticker(ticker_factory("binance"))
        await gateway.shutdown()

        assert len(received) == 2
