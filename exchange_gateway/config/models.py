"""
Configuration models for the exchange gateway.

One ExchangeConfig per exchange (endpoints, canonical symbols, connection
and retry tuning), plus the gateway-wide sections: fan-out and primary
priority, HTTP API, logging and the Redis snapshot sink. Every model is
frozen; runtime changes go through model_copy.

Configuration files:
    - config/exchanges.yaml: Exchange endpoints, symbols and connection settings
    - config/gateway.yaml: Gateway, API, logging and sink settings

Credentials never live in YAML; they are read from the environment (see
exchange_gateway.config.credentials).

Example:
    >>> from exchange_gateway.config.models import AppConfig
    >>> config = AppConfig(...)
    >>> config.get_enabled_exchanges()
    ['cryptocom', 'binance', 'okx']
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from exchange_gateway.connection.backoff import BackoffPolicy

SUPPORTED_EXCHANGES = ("binance", "coinbase", "kucoin", "okx", "bybit", "cryptocom")

# Crypto.com first, then registration order.
DEFAULT_PRIORITY = ["cryptocom", "binance", "coinbase", "kucoin", "okx", "bybit"]


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# EXCHANGE CONFIGURATION
# =============================================================================


class ConnectionSettings(BaseModel):
    """Connection settings for an exchange."""

    model_config = {"frozen": True, "extra": "forbid"}

    connect_timeout_seconds: float = Field(
        default=10.0,
        description="Maximum time for a WebSocket handshake",
        gt=0,
        le=120,
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Per-call REST timeout",
        gt=0,
        le=120,
    )
    rate_limit_per_second: int = Field(
        default=10,
        description="Maximum REST requests per second",
        ge=1,
        le=100,
    )
    reconnect_base_delay_seconds: float = Field(
        default=1.0,
        description="Delay before the first reconnection attempt",
        ge=0,
        le=60,
    )
    reconnect_multiplier: float = Field(
        default=2.0,
        description="Backoff growth factor per attempt",
        ge=1.0,
        le=10.0,
    )
    reconnect_max_delay_seconds: float = Field(
        default=30.0,
        description="Upper bound on a single backoff delay",
        ge=0,
        le=600,
    )
    max_reconnect_attempts: int = Field(
        default=10,
        description="Maximum reconnection attempts before failure",
        ge=0,
        le=100,
    )
    ping_interval_seconds: Optional[float] = Field(
        default=20.0,
        description="Heartbeat interval (None disables heartbeats)",
        gt=0,
        le=120,
    )
    ping_timeout_seconds: float = Field(
        default=10.0,
        description="WebSocket ping timeout",
        gt=0,
        le=60,
    )
    recv_window_ms: int = Field(
        default=5000,
        description="Signed request validity window (Binance, Bybit)",
        ge=0,
        le=60000,
    )
    max_rate_limit_wait_seconds: float = Field(
        default=10.0,
        description="Longest Retry-After the adapter will wait out before retrying",
        ge=0,
    )
    ticker_max_age_seconds: float = Field(
        default=10.0,
        description="Streamed tickers younger than this are served without a REST call",
        ge=0,
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "ConnectionSettings":
        """Ensure the backoff cap is not below the base delay."""
        if self.reconnect_max_delay_seconds < self.reconnect_base_delay_seconds:
            raise ValueError(
                f"reconnect_max_delay_seconds ({self.reconnect_max_delay_seconds}) must be "
                f">= reconnect_base_delay_seconds ({self.reconnect_base_delay_seconds})"
            )
        return self

    def backoff_policy(self) -> BackoffPolicy:
        """
        Build the reconnect backoff policy.

        Returns:
            BackoffPolicy: Policy using these settings.
        """
        return BackoffPolicy(
            base_delay=self.reconnect_base_delay_seconds,
            multiplier=self.reconnect_multiplier,
            max_delay=self.reconnect_max_delay_seconds,
            max_attempts=self.max_reconnect_attempts,
        )


class ExchangeConfig(BaseModel):
    """
    Configuration for one exchange.

    Attributes:
        enabled: Disabled exchanges are not registered with the gateway.
        rest_url: REST API base URL.
        websocket_url: Streaming endpoint (None when resolved at runtime).
        symbols: Canonical symbols to subscribe to on the stream.
        connection: Timeouts, backoff and rate limits.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    enabled: bool = Field(
        default=True,
        description="Whether the exchange is enabled",
    )
    rest_url: str = Field(
        ...,
        description="REST API base URL",
        min_length=1,
    )
    websocket_url: Optional[str] = Field(
        default=None,
        description="WebSocket endpoint URL",
    )
    symbols: List[str] = Field(
        default_factory=list,
        description="Canonical BASE/QUOTE symbols streamed on connect",
    )
    connection: ConnectionSettings = Field(
        default_factory=ConnectionSettings,
        description="Connection settings",
    )

    @field_validator("symbols")
    @classmethod
    def validate_symbols(cls, v: List[str]) -> List[str]:
        """Symbols must be canonical BASE/QUOTE."""
        for symbol in v:
            base, sep, quote = symbol.partition("/")
            if not sep or not base or not quote or "/" in quote:
                raise ValueError(f"Symbol must be BASE/QUOTE: {symbol!r}")
        return [s.upper() for s in v]


# =============================================================================
# GATEWAY CONFIGURATION
# =============================================================================


class GatewaySettings(BaseModel):
    """Orchestrator settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    priority: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIORITY),
        description="Primary adapter preference order",
    )
    startup_timeout_seconds: float = Field(
        default=45.0,
        description="Maximum time one adapter may spend starting, retries included",
        gt=0,
    )
    startup_retry_attempts: int = Field(
        default=3,
        description="initialize() attempts per adapter at startup",
        ge=1,
    )
    startup_retry_delay_seconds: float = Field(
        default=2.0,
        description="Pause between startup attempts",
        ge=0,
    )
    fanout_timeout_seconds: float = Field(
        default=5.0,
        description="Overall timeout for multi-exchange calls",
        gt=0,
    )


class ApiConfig(BaseModel):
    """HTTP API settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, description="Bind port", ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Default log level",
    )


class SinkConfig(BaseModel):
    """Snapshot sink settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    enabled: bool = Field(
        default=False,
        description="Publish snapshots to Redis",
    )
    key_prefix: str = Field(
        default="gateway",
        description="Prefix for all Redis keys and channels",
        min_length=1,
    )
    ticker_ttl_seconds: int = Field(
        default=60,
        description="TTL for latest ticker keys",
        ge=1,
    )
    health_ttl_seconds: int = Field(
        default=300,
        description="TTL for health keys",
        ge=1,
    )


# =============================================================================
# REDIS (URL from the environment)
# =============================================================================


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
    )
    max_connections: int = Field(
        default=10,
        description="Maximum connection pool size",
        ge=1,
    )
    socket_timeout: int = Field(
        default=5,
        description="Socket timeout in seconds",
        ge=1,
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Everything the gateway service needs, validated together.

    Exchange ids must be among SUPPORTED_EXCHANGES.

    Example:
        >>> config = AppConfig(exchanges={"binance": ExchangeConfig(rest_url="https://api.binance.com")})
        >>> config.get_enabled_exchanges()
        ['binance']
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchanges: Dict[str, ExchangeConfig] = Field(
        ...,
        description="Exchange configurations keyed by exchange id",
    )
    gateway: GatewaySettings = Field(
        default_factory=GatewaySettings,
        description="Gateway settings",
    )
    api: ApiConfig = Field(
        default_factory=ApiConfig,
        description="HTTP API settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings",
    )
    sink: SinkConfig = Field(
        default_factory=SinkConfig,
        description="Snapshot sink settings",
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection config",
    )

    @model_validator(mode="after")
    def validate_config(self) -> "AppConfig":
        """Validate exchange ids."""
        for name in self.exchanges:
            if name not in SUPPORTED_EXCHANGES:
                raise ValueError(f"Unsupported exchange: {name}")
        return self

    def get_exchange(self, name: str) -> Optional[ExchangeConfig]:
        """Config block for one exchange id, or None."""
        return self.exchanges.get(name)

    def get_enabled_exchanges(self) -> List[str]:
        """
        Get enabled exchange ids in priority order.

        Exchanges missing from the priority list follow in file order.

        Returns:
            List[str]: Enabled exchange ids.
        """
        enabled = [name for name, config in self.exchanges.items() if config.enabled]
        ranked = [name for name in self.gateway.priority if name in enabled]
        return ranked + [name for name in enabled if name not in ranked]
