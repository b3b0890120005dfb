"""
Streaming connection lifecycle.

One ConnectionManager owns one exchange WebSocket and its state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> RECONNECTING   (remote close, send/receive error, missed pong)
    CONNECTING -> RECONNECTING  (handshake error or connect timeout)
    CONNECTING -> FAILED        (credentials or configuration rejected)
    RECONNECTING -> CONNECTING  (after the backoff delay)
    RECONNECTING -> FAILED      (max attempts exhausted)
    any -> DISCONNECTED         (caller-initiated shutdown)

All transitions happen inside a single supervised asyncio task, so two
transitions for the same channel can never race. start/reconnect/shutdown
are serialized by a lock. Every transition is published as a
ConnectionEvent.

Connection Management:
    - Exponential backoff (BackoffPolicy), attempt counter reset on connect
    - Connect timeout while CONNECTING
    - Subscriptions re-issued after every handshake
    - Application-level heartbeat or protocol ping/pong
    - Normal closure (1000) on shutdown, never followed by a reconnect
"""

import asyncio
import functools
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

import structlog
import websockets
from websockets.exceptions import ConnectionClosed

from exchange_gateway.connection.backoff import BackoffPolicy
from exchange_gateway.errors import AuthenticationError, ConfigurationError
from exchange_gateway.interfaces.stream_channel import StreamChannel
from exchange_gateway.models.health import ConnectionEvent, ConnectionState

logger = structlog.get_logger(__name__)

NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011

Connector = Callable[[str], Awaitable[Any]]
Sleeper = Callable[[float], Awaitable[None]]
ConnectionListener = Callable[[ConnectionEvent], None]


def default_connector() -> Connector:
    """websockets.connect with keepalive disabled; the manager runs its own."""
    return functools.partial(
        websockets.connect,
        ping_interval=None,
        ping_timeout=None,
        close_timeout=10,
        max_size=2**20,
    )


def _close_code(exc: ConnectionClosed) -> Optional[int]:
    frame = getattr(exc, "rcvd", None)
    return frame.code if frame is not None else None


class ConnectionManager:
    """
    Supervises one exchange streaming channel.

    Attributes:
        channel: Exchange-specific protocol (URL, subscriptions, handlers).
        policy: Backoff settings.
        connect_timeout: Seconds allowed for a handshake.
        ping_interval: Seconds between heartbeats (None disables them).
        ping_timeout: Seconds to wait for a pong.

    Example:
        >>> manager = ConnectionManager(adapter, BackoffPolicy(), connect_timeout=10)
        >>> manager.add_listener(lambda event: print(event.current))
        >>> await manager.start()
        >>> await manager.wait_connected(timeout=10)
        True
        >>> await manager.shutdown()
    """

    def __init__(
        self,
        channel: StreamChannel,
        policy: Optional[BackoffPolicy] = None,
        connect_timeout: float = 10.0,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: float = 10.0,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self.channel = channel
        self.policy = policy or BackoffPolicy()
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

        self._connector = connector or default_connector()
        self._sleep = sleep or asyncio.sleep

        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._ws: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._connected_event = asyncio.Event()
        self._stopping = False
        self._listeners: List[ConnectionListener] = []

        self._messages_received = 0
        self._last_message_at: Optional[datetime] = None
        self._total_reconnections = 0

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def attempt(self) -> int:
        """Reconnect attempts since the last successful handshake."""
        return self._attempt

    @property
    def is_running(self) -> bool:
        """Check if a supervisor task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def messages_received(self) -> int:
        """Frames received since the manager was created."""
        return self._messages_received

    @property
    def last_message_at(self) -> Optional[datetime]:
        """Time of the last received frame."""
        return self._last_message_at

    @property
    def total_reconnections(self) -> int:
        """Backoff reconnects scheduled since the manager was created."""
        return self._total_reconnections

    def add_listener(self, listener: ConnectionListener) -> None:
        """Register a callback for every state transition."""
        self._listeners.append(listener)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """
        Start the supervisor task (DISCONNECTED -> CONNECTING).

        No-op if the supervisor is already running.
        """
        async with self._lock:
            if self.is_running:
                return
            self._stopping = False
            self._attempt = 0
            self._spawn()

    async def reconnect(self) -> None:
        """
        Drop the current socket and start over with a fresh attempt counter.

        This is the only way out of FAILED.
        """
        async with self._lock:
            await self._stop_supervisor()
            self._stopping = False
            self._attempt = 0
            logger.info(
                "stream_reconnect_requested",
                channel=self.channel.channel_name,
                state=self._state.value,
            )
            self._spawn()

    async def shutdown(self) -> None:
        """
        Stop for good.

        Cancels any backoff timer and heartbeat, closes the socket with a
        normal-closure code and detaches listeners after the final event.
        """
        async with self._lock:
            self._stopping = True
            await self._stop_supervisor()
            self._set_state(ConnectionState.DISCONNECTED, reason="shutdown")
            self._listeners.clear()
            logger.info("stream_shutdown", channel=self.channel.channel_name)

    async def wait_connected(self, timeout: float) -> bool:
        """
        Wait until CONNECTED.

        Returns early with False if the supervisor stops first (FAILED).

        Returns:
            bool: True if connected within ``timeout`` seconds.
        """
        if self._state == ConnectionState.CONNECTED:
            return True
        waiter = asyncio.ensure_future(self._connected_event.wait())
        watched = [waiter]
        if self._task is not None:
            watched.append(self._task)
        try:
            await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        return self._state == ConnectionState.CONNECTED

    async def send(self, payload: Any) -> None:
        """
        Send a payload on the open socket.

        Raises:
            ConnectionError: If the channel is not connected.
        """
        if self._ws is None or self._state != ConnectionState.CONNECTED:
            raise ConnectionError(f"{self.channel.channel_name} stream is not connected")
        await self._send(self._ws, payload)

    def _spawn(self) -> None:
        self._task = asyncio.create_task(
            self._supervise(),
            name=f"stream-{self.channel.channel_name}",
        )

    async def _stop_supervisor(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._stop_heartbeat()
        await self._close_socket(NORMAL_CLOSURE, "client shutdown")

    # =========================================================================
    # SUPERVISOR
    # =========================================================================

    async def _supervise(self) -> None:
        """Run the connect / receive / backoff loop until FAILED or cancelled."""
        while not self._stopping:
            self._set_state(ConnectionState.CONNECTING)
            try:
                reason = await self._connect_and_run()
            except (AuthenticationError, ConfigurationError) as e:
                # Rejections are final until an explicit reconnect
                logger.error(
                    "stream_connect_rejected",
                    channel=self.channel.channel_name,
                    error=str(e),
                    error_type=e.error_type,
                )
                self._set_state(ConnectionState.FAILED, reason=f"{e.error_type}: {e.message}")
                return

            if self._stopping:
                return

            if self.policy.exhausted(self._attempt):
                logger.error(
                    "stream_max_reconnect_exceeded",
                    channel=self.channel.channel_name,
                    max_attempts=self.policy.max_attempts,
                    reason=reason,
                )
                self._set_state(ConnectionState.FAILED, reason=reason)
                return

            delay = self.policy.delay(self._attempt)
            self._attempt += 1
            self._total_reconnections += 1
            self._set_state(ConnectionState.RECONNECTING, reason=reason, delay=delay)
            logger.info(
                "stream_reconnecting",
                channel=self.channel.channel_name,
                attempt=self._attempt,
                max_attempts=self.policy.max_attempts,
                delay_seconds=delay,
            )
            await self._sleep(delay)

    async def _connect_and_run(self) -> str:
        """
        One connection cycle.

        Returns:
            str: Why the cycle ended.

        Raises:
            AuthenticationError: The exchange rejected the credentials while
                resolving the stream URL or connecting.
            ConfigurationError: The channel cannot be configured.
        """
        try:
            url = await asyncio.wait_for(
                self.channel.resolve_stream_url(), timeout=self.connect_timeout
            )
            ws = await asyncio.wait_for(self._connector(url), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "stream_connect_timeout",
                channel=self.channel.channel_name,
                timeout=self.connect_timeout,
            )
            return "connect_timeout"
        except (asyncio.CancelledError, AuthenticationError, ConfigurationError):
            raise
        except Exception as e:
            logger.warning(
                "stream_connect_failed",
                channel=self.channel.channel_name,
                error=str(e),
            )
            return f"connect_failed: {e}"

        self._ws = ws
        self._attempt = 0
        self._set_state(ConnectionState.CONNECTED)
        logger.info("stream_connected", channel=self.channel.channel_name, url=url)

        try:
            for message in self.channel.subscription_messages():
                await self._send(ws, message)
            self._start_heartbeat(ws)
            await self._receive_loop(ws)
            return "closed"
        except ConnectionClosed as e:
            code = _close_code(e)
            logger.warning(
                "stream_connection_closed",
                channel=self.channel.channel_name,
                code=code,
            )
            return f"closed: {code}"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "stream_error",
                channel=self.channel.channel_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return f"error: {e}"
        finally:
            if not self._stopping and self._task is asyncio.current_task():
                await self._stop_heartbeat()
                await self._close_socket(INTERNAL_ERROR, "reconnecting")

    async def _receive_loop(self, ws: Any) -> None:
        while True:
            frame = await ws.recv()
            self._messages_received += 1
            self._last_message_at = datetime.now(timezone.utc)

            if isinstance(frame, bytes):
                frame = frame.decode("utf-8")
            try:
                message = json.loads(frame)
            except ValueError:
                message = frame

            try:
                reply = self.channel.handle_message(message)
            except Exception as e:
                logger.error(
                    "stream_message_handler_error",
                    channel=self.channel.channel_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if reply is not None:
                await self._send(ws, reply)

    # =========================================================================
    # HEARTBEAT
    # =========================================================================

    def _start_heartbeat(self, ws: Any) -> None:
        if self.ping_interval:
            self._heartbeat_task = asyncio.create_task(self._heartbeat(ws))

    async def _stop_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _heartbeat(self, ws: Any) -> None:
        """
        Keep the connection alive.

        A failed ping closes the socket, which ends the receive loop and
        sends the supervisor into RECONNECTING.
        """
        try:
            while True:
                await asyncio.sleep(self.ping_interval)
                payload = self.channel.heartbeat_message()
                if payload is not None:
                    await self._send(ws, payload)
                else:
                    pong_waiter = await ws.ping()
                    await asyncio.wait_for(pong_waiter, timeout=self.ping_timeout)
                logger.debug("stream_ping_success", channel=self.channel.channel_name)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(
                "stream_ping_timeout",
                channel=self.channel.channel_name,
                timeout=self.ping_timeout,
            )
            await ws.close(code=INTERNAL_ERROR, reason="ping timeout")
        except Exception as e:
            logger.error("stream_ping_error", channel=self.channel.channel_name, error=str(e))
            await ws.close(code=INTERNAL_ERROR, reason="ping failed")

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _send(self, ws: Any, payload: Any) -> None:
        if not isinstance(payload, str):
            payload = json.dumps(payload, separators=(",", ":"))
        await ws.send(payload)

    async def _close_socket(self, code: int, reason: str) -> None:
        ws = self._ws
        self._ws = None
        if ws is None:
            return
        try:
            await ws.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(
                "stream_close_error",
                channel=self.channel.channel_name,
                error=str(e),
            )

    def _set_state(
        self,
        state: ConnectionState,
        reason: Optional[str] = None,
        delay: Optional[float] = None,
    ) -> None:
        previous = self._state
        self._state = state
        if state == ConnectionState.CONNECTED:
            self._connected_event.set()
        else:
            self._connected_event.clear()

        event = ConnectionEvent(
            exchange_id=self.channel.channel_name,
            previous=previous,
            current=state,
            attempt=self._attempt,
            delay_seconds=delay,
            reason=reason,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "connection_listener_error",
                    channel=self.channel.channel_name,
                    error=str(e),
                )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ConnectionManager(channel={self.channel.channel_name}, "
            f"state={self._state.value}, attempt={self._attempt})"
        )
