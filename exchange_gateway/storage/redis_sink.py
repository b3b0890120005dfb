"""
Redis snapshot sink.

Stores the latest ticker per (exchange, symbol) and the latest health per
exchange, each with a TTL so stale data expires on its own, and publishes a
lightweight notification for live consumers.

Key Patterns:
    - Tickers: `{prefix}:ticker:{exchange}:{symbol}` (string with TTL)
    - Health:  `{prefix}:health:{exchange}` (string with TTL)
    - Pub/Sub channels: `{prefix}:updates:ticker`, `{prefix}:updates:health`

Snapshots are stored as model JSON, so Decimal amounts stay strings.

Example:
    >>> sink = RedisSnapshotSink(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> await sink.connect()
    >>> await sink.write_ticker(ticker)
"""

from __future__ import annotations

import json
from typing import Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from exchange_gateway.config.models import RedisConnectionConfig, SinkConfig
from exchange_gateway.interfaces.snapshot_sink import SnapshotSink
from exchange_gateway.models.health import AdapterHealth
from exchange_gateway.models.ticker import Ticker

logger = structlog.get_logger(__name__)


class SinkError(Exception):
    """Base exception for sink errors."""

    pass


class SinkConnectionError(SinkError):
    """Raised when the Redis connection fails."""

    pass


class SinkWriteError(SinkError):
    """Raised when a write or publish fails."""

    pass


class RedisSnapshotSink(SnapshotSink):
    """
    SnapshotSink backed by Redis.

    Attributes:
        config: Redis connection configuration.
        sink_config: Key prefix and TTLs.
    """

    def __init__(
        self,
        config: RedisConnectionConfig,
        sink_config: Optional[SinkConfig] = None,
        client: Optional[Redis] = None,  # type: ignore[type-arg]
    ) -> None:
        """
        Initialize the sink.

        Args:
            config: Redis URL, db and pool settings.
            sink_config: Key prefix and TTLs (defaults apply when omitted).
            client: Pre-built Redis client (skips pool creation).
        """
        self.config = config
        self.sink_config = sink_config or SinkConfig()
        self._pool: Optional[ConnectionPool] = None
        self._client = client
        self._connected = client is not None

    @property
    def is_connected(self) -> bool:
        """Check if the sink has a live client."""
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Create the connection pool and verify it with PING.

        Raises:
            SinkConnectionError: If Redis is unreachable.
        """
        if self._connected:
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                max_connections=self.config.max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            self._connected = True
            logger.info("redis_sink_connected", url=self.config.url, db=self.config.db)

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error("redis_sink_connection_failed", url=self.config.url, error=str(e))
            raise SinkConnectionError(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    async def close(self) -> None:
        """Close the client and pool. Safe to call multiple times."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("redis_sink_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except RedisError as e:
                logger.warning("redis_sink_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_sink_closed")

    def _require_client(self) -> Redis:  # type: ignore[type-arg]
        if not self._connected or self._client is None:
            raise SinkConnectionError("Redis sink is not connected")
        return self._client

    # =========================================================================
    # KEYS
    # =========================================================================

    def ticker_key(self, exchange_id: str, symbol: str) -> str:
        """Key for the latest ticker, e.g. `gateway:ticker:binance:BTC/USDT`."""
        return f"{self.sink_config.key_prefix}:ticker:{exchange_id}:{symbol}"

    def health_key(self, exchange_id: str) -> str:
        """Key for the latest health snapshot."""
        return f"{self.sink_config.key_prefix}:health:{exchange_id}"

    def channel(self, kind: str) -> str:
        """Pub/sub channel for a snapshot kind ("ticker" or "health")."""
        return f"{self.sink_config.key_prefix}:updates:{kind}"

    # =========================================================================
    # WRITES
    # =========================================================================

    async def write_ticker(self, ticker: Ticker) -> None:
        """
        Store the latest ticker and notify subscribers.

        Raises:
            SinkConnectionError: If not connected.
            SinkWriteError: If Redis rejects the write.
        """
        client = self._require_client()
        key = self.ticker_key(ticker.exchange_id, ticker.symbol)
        try:
            await client.setex(key, self.sink_config.ticker_ttl_seconds, ticker.model_dump_json())
            update = {
                "exchange_id": ticker.exchange_id,
                "symbol": ticker.symbol,
                "last_price": str(ticker.last_price),
                "observed_at": ticker.observed_at.isoformat(),
            }
            await client.publish(self.channel("ticker"), json.dumps(update))
        except RedisError as e:
            logger.error(
                "ticker_store_failed",
                exchange_id=ticker.exchange_id,
                symbol=ticker.symbol,
                error=str(e),
            )
            raise SinkWriteError(f"Failed to store ticker {key}: {e}") from e

        logger.debug("ticker_stored", exchange_id=ticker.exchange_id, symbol=ticker.symbol)

    async def write_health(self, health: AdapterHealth) -> None:
        """
        Store the latest health snapshot and notify subscribers.

        Raises:
            SinkConnectionError: If not connected.
            SinkWriteError: If Redis rejects the write.
        """
        client = self._require_client()
        key = self.health_key(health.exchange_id)
        try:
            await client.setex(key, self.sink_config.health_ttl_seconds, health.model_dump_json())
            update = {
                "exchange_id": health.exchange_id,
                "connection_state": health.connection_state.value,
                "connected": health.connected,
            }
            await client.publish(self.channel("health"), json.dumps(update))
        except RedisError as e:
            logger.error(
                "health_store_failed",
                exchange_id=health.exchange_id,
                error=str(e),
            )
            raise SinkWriteError(f"Failed to store health {key}: {e}") from e

        logger.debug(
            "health_stored",
            exchange_id=health.exchange_id,
            state=health.connection_state.value,
        )

    def __repr__(self) -> str:
        return f"RedisSnapshotSink(url={self.config.url}, connected={self.is_connected})"
