"""
Response models for the HTTP API.

Domain models (Balance, Ticker, Order, ExchangeResult) are returned as-is;
the models here only cover shapes that exist for the API alone.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from exchange_gateway.models.health import AdapterHealth, ConnectionState, GatewayStatus


class ErrorResponse(BaseModel):
    """Body returned for every GatewayError."""

    error: str = Field(..., description="Error class name")
    message: str = Field(..., description="Error message")
    exchange_id: Optional[str] = Field(default=None, description="Exchange the error came from")


class AdapterStatus(BaseModel):
    """Health of one adapter as exposed over HTTP."""

    exchange_id: str = Field(..., description="Exchange identifier")
    connected: bool = Field(..., description="Whether the adapter can serve requests")
    degraded: bool = Field(..., description="Whether private operations are unavailable")
    connection_state: ConnectionState = Field(..., description="Streaming channel state")
    capabilities: List[str] = Field(default_factory=list, description="Current capabilities")
    features: List[str] = Field(default_factory=list, description="Static feature tags")
    credentials_configured: bool = Field(..., description="Whether credentials are loaded")
    reachable: bool = Field(..., description="Last reachability check result")
    reconnect_attempt: int = Field(default=0, description="Reconnect attempt counter")
    consecutive_failures: int = Field(default=0, description="Failed calls since last success")
    total_reconnections: int = Field(default=0, description="Backoff reconnects of the stream")
    messages_received: int = Field(default=0, description="Stream frames received")
    last_message_at: Optional[datetime] = Field(default=None)
    last_successful_call_at: Optional[datetime] = Field(default=None)
    last_error: Optional[str] = Field(default=None)
    updated_at: datetime = Field(..., description="Snapshot time (UTC)")

    @classmethod
    def from_health(cls, health: AdapterHealth) -> "AdapterStatus":
        return cls(
            exchange_id=health.exchange_id,
            connected=health.connected,
            degraded=health.is_degraded,
            connection_state=health.connection_state,
            capabilities=sorted(c.value for c in health.capabilities),
            features=sorted(health.features),
            credentials_configured=health.credentials_configured,
            reachable=health.reachable,
            reconnect_attempt=health.reconnect_attempt,
            consecutive_failures=health.consecutive_failures,
            total_reconnections=health.total_reconnections,
            messages_received=health.messages_received,
            last_message_at=health.last_message_at,
            last_successful_call_at=health.last_successful_call_at,
            last_error=health.last_error,
            updated_at=health.updated_at,
        )


class StatusResponse(BaseModel):
    """Gateway-wide status."""

    primary: Optional[str] = Field(default=None, description="Primary adapter")
    connected_count: int = Field(..., description="Adapters able to serve requests")
    adapters: Dict[str, AdapterStatus] = Field(default_factory=dict)
    generated_at: datetime = Field(..., description="Status time (UTC)")

    @classmethod
    def from_status(cls, status: GatewayStatus) -> "StatusResponse":
        return cls(
            primary=status.primary,
            connected_count=status.connected_count,
            adapters={ex: AdapterStatus.from_health(h) for ex, h in status.adapters.items()},
            generated_at=status.generated_at,
        )


class CancelResponse(BaseModel):
    """Result of an order cancellation."""

    cancelled: bool = Field(..., description="Whether the exchange accepted the cancel")


class RestartResponse(BaseModel):
    """Adapter health after a restart, plus the resulting primary."""

    adapter: AdapterStatus
    primary: Optional[str] = Field(default=None, description="Primary adapter after restart")


class LivenessResponse(BaseModel):
    """Process liveness."""

    status: str = Field(default="ok")
    adapters: int = Field(..., description="Registered adapters")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
