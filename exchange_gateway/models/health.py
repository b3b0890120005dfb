"""
Health and connectivity models for the exchange gateway.

Snapshots in this module are immutable: the adapter that owns a health
record publishes a fresh copy on every change, and readers never hold a
live reference to mutable state.

Models:
    ConnectionState: Streaming channel state machine states
    Capability: Operations an adapter can currently serve
    ConnectionEvent: One observed state transition
    AdapterHealth: Per-adapter health snapshot
    GatewayStatus: Health of every adapter plus the selected primary
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


class ConnectionState(str, Enum):
    """
    Streaming channel state.

    Attributes:
        DISCONNECTED: Initial state, and the state after a deliberate shutdown.
        CONNECTING: Handshake in progress.
        CONNECTED: Channel open and subscribed.
        RECONNECTING: Waiting out a backoff delay before the next attempt.
        FAILED: Attempts exhausted; only an explicit reconnect leaves this state.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"

    @property
    def is_healthy(self) -> bool:
        """Check if the channel is delivering data."""
        return self == ConnectionState.CONNECTED

    @property
    def is_transient(self) -> bool:
        """Check if the state is expected to change without intervention."""
        return self in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING)


class Capability(str, Enum):
    """Operations an adapter can serve right now."""

    TICKER = "ticker"
    BALANCE = "balance"
    TRADING = "trading"
    STREAMING = "streaming"


class ConnectionEvent(BaseModel):
    """
    A single connection state transition.

    Attributes:
        exchange_id: Exchange whose channel changed state.
        previous: State before the transition.
        current: State after the transition.
        attempt: Reconnect attempt counter at the time of the transition.
        delay_seconds: Backoff delay scheduled (RECONNECTING only).
        reason: Why the transition happened.
        timestamp: When the transition happened (UTC).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchange_id: str = Field(..., description="Exchange identifier")
    previous: ConnectionState = Field(..., description="State before")
    current: ConnectionState = Field(..., description="State after")
    attempt: int = Field(default=0, description="Reconnect attempt counter", ge=0)
    delay_seconds: Optional[float] = Field(
        default=None,
        description="Scheduled backoff delay",
        ge=0,
    )
    reason: Optional[str] = Field(default=None, description="Transition reason")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Transition time (UTC)",
    )


class AdapterHealth(BaseModel):
    """
    Immutable health snapshot of one adapter.

    Attributes:
        exchange_id: Exchange identifier.
        connection_state: Streaming channel state.
        last_successful_call_at: Time of the last successful REST call.
        consecutive_failures: Failed calls since the last success.
        capabilities: Operations the adapter can serve right now.
        credentials_configured: Whether a usable credential set is loaded.
        reachable: Result of the last public reachability check.
        reconnect_attempt: Current reconnect attempt counter.
        total_reconnections: Backoff reconnects over the stream's lifetime.
        messages_received: Stream frames received.
        last_message_at: Time of the last stream frame.
        last_error: Last error message, if any.
        features: Static exchange feature tags (spot, futures, ...).
        updated_at: When this snapshot was produced.

    Example:
        >>> health = AdapterHealth(exchange_id="okx")
        >>> health.connection_state
        <ConnectionState.DISCONNECTED: 'disconnected'>
    """

    model_config = {"frozen": True, "extra": "forbid"}

    exchange_id: str = Field(
        ...,
        description="Exchange identifier",
        min_length=1,
        max_length=50,
    )
    connection_state: ConnectionState = Field(
        default=ConnectionState.DISCONNECTED,
        description="Streaming channel state",
    )
    last_successful_call_at: Optional[datetime] = Field(
        default=None,
        description="Time of the last successful REST call (UTC)",
    )
    consecutive_failures: int = Field(
        default=0,
        description="Failed calls since the last success",
        ge=0,
    )
    capabilities: FrozenSet[Capability] = Field(
        default_factory=frozenset,
        description="Operations the adapter can serve",
    )
    credentials_configured: bool = Field(
        default=False,
        description="Whether a usable credential set is loaded",
    )
    reachable: bool = Field(
        default=False,
        description="Result of the last public reachability check",
    )
    reconnect_attempt: int = Field(
        default=0,
        description="Current reconnect attempt counter",
        ge=0,
    )
    total_reconnections: int = Field(
        default=0,
        description="Backoff reconnects since the stream was opened",
        ge=0,
    )
    messages_received: int = Field(
        default=0,
        description="Stream frames received since the stream was opened",
        ge=0,
    )
    last_message_at: Optional[datetime] = Field(
        default=None,
        description="Time of the last stream frame (UTC)",
    )
    last_error: Optional[str] = Field(
        default=None,
        description="Last error message",
    )
    features: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Static exchange feature tags",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Snapshot time (UTC)",
    )

    @property
    def connected(self) -> bool:
        """
        Check if the adapter can serve requests.

        Returns:
            bool: True if the exchange answered the reachability check and
            the streaming channel, when there is one, has not failed.
        """
        return self.reachable and self.connection_state != ConnectionState.FAILED

    @property
    def is_degraded(self) -> bool:
        """Check if the adapter is limited to public market data."""
        return Capability.BALANCE not in self.capabilities


class GatewayStatus(BaseModel):
    """
    Health of all registered adapters plus the current primary.

    Attributes:
        primary: Exchange id of the primary adapter, if any.
        adapters: Health snapshot per exchange, in priority order.
        generated_at: When this status was produced.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    primary: Optional[str] = Field(default=None, description="Primary adapter")
    adapters: Dict[str, AdapterHealth] = Field(
        default_factory=dict,
        description="Health snapshot per exchange",
    )
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Status time (UTC)",
    )

    @property
    def connected_count(self) -> int:
        """Number of adapters currently able to serve requests."""
        return sum(1 for h in self.adapters.values() if h.connected)
