"""
Unit tests for ConnectionManager and BackoffPolicy.

The supervisor runs for real; sockets and sleeps are replaced so the state
machine can be driven step by step.
"""

import asyncio
from typing import Any, List, Optional

import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

from exchange_gateway.connection.backoff import BackoffPolicy
from exchange_gateway.connection.manager import ConnectionManager
from exchange_gateway.errors import AuthenticationError, ConfigurationError
from exchange_gateway.interfaces.stream_channel import StreamChannel
from exchange_gateway.models.health import ConnectionState


class EchoChannel(StreamChannel):
    """Channel that subscribes once and answers "ping" frames with "pong"."""

    def __init__(self) -> None:
        self.messages: List[Any] = []
        self.received = asyncio.Event()

    @property
    def channel_name(self) -> str:
        return "test"

    async def resolve_stream_url(self) -> str:
        return "wss://stream.example.test/ws"

    def subscription_messages(self) -> List[Any]:
        return [{"op": "subscribe", "args": ["tickers.BTCUSDT"]}]

    def handle_message(self, message: Any) -> Optional[Any]:
        self.messages.append(message)
        self.received.set()
        if message == "ping":
            return "pong"
        return None


class RejectingChannel(EchoChannel):
    """Channel whose stream URL lookup is refused."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error
        self.resolve_calls = 0

    async def resolve_stream_url(self) -> str:
        self.resolve_calls += 1
        raise self.error


class HangingConnector:
    """connect() that never completes."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, url: str) -> Any:
        self.calls += 1
        await asyncio.Event().wait()


def _manager(connector, sleep, max_attempts: int = 2, connect_timeout: float = 1.0, channel=None):
    return ConnectionManager(
        channel or EchoChannel(),
        BackoffPolicy(base_delay=1.0, multiplier=2.0, max_delay=30.0, max_attempts=max_attempts),
        connect_timeout=connect_timeout,
        ping_interval=None,
        connector=connector,
        sleep=sleep,
    )


def _state_waiter(manager: ConnectionManager, state: ConnectionState) -> asyncio.Event:
    reached = asyncio.Event()

    def on_event(event):
        if event.current == state:
            reached.set()

    manager.add_listener(on_event)
    return reached


# ============================================
# Backoff policy
# ============================================


class TestBackoffPolicy:
    """delay = min(base * multiplier ** attempt, max)"""

    def test_default_sequence(self):
        policy = BackoffPolicy()
        assert [policy.delay(n) for n in range(7)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    def test_delays_are_bounded_and_non_decreasing(self):
        policy = BackoffPolicy(base_delay=0.5, multiplier=3.0, max_delay=10.0)
        delays = [policy.delay(n) for n in range(50)]
        assert all(0 <= d <= 10.0 for d in delays)
        assert delays == sorted(delays)

    def test_huge_attempt_does_not_overflow(self):
        assert BackoffPolicy().delay(10_000) == 30.0

    def test_exhausted(self):
        policy = BackoffPolicy(max_attempts=3)
        assert not policy.exhausted(2)
        assert policy.exhausted(3)


# ============================================
# State machine
# ============================================


class TestReconnection:
    """Backoff, failure and recovery"""

    @pytest.mark.asyncio
    async def test_exhausted_attempts_end_in_failed(self, fake_connector, recording_sleep):
        connector = fake_connector(OSError("refused"), OSError("refused"), OSError("refused"))
        manager = _manager(connector, recording_sleep, max_attempts=2)
        events = []
        manager.add_listener(events.append)
        failed = _state_waiter(manager, ConnectionState.FAILED)

        await manager.start()
        await asyncio.wait_for(failed.wait(), timeout=2.0)

        assert manager.state == ConnectionState.FAILED
        assert recording_sleep.delays == [1.0, 2.0]
        assert len(connector.urls) == 3
        delays = [e.delay_seconds for e in events if e.current == ConnectionState.RECONNECTING]
        assert delays == [1.0, 2.0]
        assert "refused" in events[-1].reason
        assert manager.total_reconnections == 2

    @pytest.mark.asyncio
    async def test_remote_close_reconnects_and_resubscribes(
        self, fake_connector, fake_websocket, recording_sleep
    ):
        first, second = fake_websocket(), fake_websocket()
        connector = fake_connector(first, second)
        manager = _manager(connector, recording_sleep)
        connections = []
        reconnected = asyncio.Event()

        def on_event(event):
            if event.current == ConnectionState.CONNECTED:
                connections.append(event)
                if len(connections) == 2:
                    reconnected.set()

        manager.add_listener(on_event)

        await manager.start()
        assert await manager.wait_connected(1.0)
        first.push(ConnectionClosedError(Close(1011, "server restart"), None))
        await asyncio.wait_for(reconnected.wait(), timeout=2.0)

        assert first.close_codes == [1011]
        assert recording_sleep.delays == [1.0]
        assert first.sent_json() == second.sent_json()
        assert second.sent_json() == [{"op": "subscribe", "args": ["tickers.BTCUSDT"]}]
        assert manager.attempt == 0
        assert manager.total_reconnections == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_connect_timeout(self, recording_sleep):
        connector = HangingConnector()
        manager = _manager(connector, recording_sleep, max_attempts=0, connect_timeout=0.05)
        events = []
        manager.add_listener(events.append)
        failed = _state_waiter(manager, ConnectionState.FAILED)

        await manager.start()
        await asyncio.wait_for(failed.wait(), timeout=2.0)

        assert connector.calls == 1
        assert events[-1].reason == "connect_timeout"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationError("Invalid KC-API-KEY", exchange_id="test", code="400003"),
            ConfigurationError("websocket_url is not configured", exchange_id="test", field="websocket_url"),
        ],
    )
    async def test_rejection_fails_without_backoff(self, fake_connector, recording_sleep, error):
        channel = RejectingChannel(error)
        connector = fake_connector()
        manager = _manager(connector, recording_sleep, max_attempts=5, channel=channel)
        events = []
        manager.add_listener(events.append)

        await manager.start()

        assert await manager.wait_connected(1.0) is False
        assert manager.state == ConnectionState.FAILED
        assert channel.resolve_calls == 1
        assert connector.urls == []
        assert recording_sleep.delays == []
        assert manager.attempt == 0
        assert manager.total_reconnections == 0
        assert [e.current for e in events] == [ConnectionState.CONNECTING, ConnectionState.FAILED]
        assert events[-1].reason == f"{type(error).__name__}: {error.message}"

    @pytest.mark.asyncio
    async def test_handshake_rejection_fails_without_backoff(self, fake_connector, recording_sleep):
        connector = fake_connector(AuthenticationError("HTTP 401 during handshake", exchange_id="test"))
        manager = _manager(connector, recording_sleep, max_attempts=5)

        await manager.start()

        assert await manager.wait_connected(1.0) is False
        assert manager.state == ConnectionState.FAILED
        assert len(connector.urls) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_reconnect_leaves_failed(self, fake_connector, fake_websocket, recording_sleep):
        ws = fake_websocket()
        connector = fake_connector(OSError("refused"), ws)
        manager = _manager(connector, recording_sleep, max_attempts=0)
        failed = _state_waiter(manager, ConnectionState.FAILED)

        await manager.start()
        await asyncio.wait_for(failed.wait(), timeout=2.0)
        await manager.reconnect()

        assert await manager.wait_connected(1.0)
        assert manager.state == ConnectionState.CONNECTED

        await manager.shutdown()


class TestSession:
    """Messages, replies and shutdown"""

    @pytest.mark.asyncio
    async def test_reply_is_sent_back(self, fake_connector, fake_websocket, recording_sleep):
        ws = fake_websocket()
        manager = _manager(fake_connector(ws), recording_sleep)

        await manager.start()
        assert await manager.wait_connected(1.0)
        ws.push("ping")
        await asyncio.wait_for(manager.channel.received.wait(), timeout=1.0)

        assert manager.channel.messages == ["ping"]
        assert ws.sent[-1] == "pong"
        assert manager.messages_received == 1
        assert manager.last_message_at is not None

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_json_frames_are_decoded(self, fake_connector, fake_websocket, recording_sleep):
        ws = fake_websocket()
        manager = _manager(fake_connector(ws), recording_sleep)

        await manager.start()
        await manager.wait_connected(1.0)
        ws.push({"topic": "tickers.BTCUSDT"})
        await asyncio.wait_for(manager.channel.received.wait(), timeout=1.0)

        assert manager.channel.messages == [{"topic": "tickers.BTCUSDT"}]
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_normally_without_reconnect(
        self, fake_connector, fake_websocket, recording_sleep
    ):
        ws = fake_websocket()
        connector = fake_connector(ws)
        manager = _manager(connector, recording_sleep)
        events = []
        manager.add_listener(events.append)

        await manager.start()
        assert await manager.wait_connected(1.0)
        await manager.shutdown()
        await asyncio.sleep(0)

        assert ws.close_codes == [1000]
        assert manager.state == ConnectionState.DISCONNECTED
        assert not manager.is_running
        assert len(connector.urls) == 1
        assert recording_sleep.delays == []
        assert events[-1].current == ConnectionState.DISCONNECTED
        assert events[-1].reason == "shutdown"

    @pytest.mark.asyncio
    async def test_send_requires_connection(self, fake_connector, recording_sleep):
        manager = _manager(fake_connector(), recording_sleep)
        with pytest.raises(ConnectionError):
            await manager.send({"op": "ping"})

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, fake_connector, fake_websocket, recording_sleep):
        ws = fake_websocket()
        connector = fake_connector(ws)
        manager = _manager(connector, recording_sleep)

        await manager.start()
        await manager.start()
        await manager.wait_connected(1.0)

        assert len(connector.urls) == 1
        await manager.shutdown()
