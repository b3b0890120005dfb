"""
Abstract interfaces for the exchange gateway.

The key interface is ExchangeAdapter, which defines the contract for all
exchange-specific implementations. StreamChannel describes the per-exchange
half of a streaming connection, and SnapshotSink the write-only persistence
collaborator.

Example:
    >>> from exchange_gateway.interfaces import ExchangeAdapter
    >>> class BinanceAdapter(ExchangeAdapter):
    ...     @property
    ...     def exchange_id(self) -> str:
    ...         return "binance"
    ...     # ... implement other abstract methods

Modules:
    exchange_adapter: ExchangeAdapter ABC for exchange integrations
    stream_channel: StreamChannel ABC used by the ConnectionManager
    snapshot_sink: SnapshotSink ABC for gateway output
"""

from exchange_gateway.interfaces.exchange_adapter import (
    ExchangeAdapter,
    HealthListener,
    TickerListener,
)
from exchange_gateway.interfaces.snapshot_sink import SnapshotSink
from exchange_gateway.interfaces.stream_channel import StreamChannel

__all__: list[str] = [
    "ExchangeAdapter",
    "HealthListener",
    "TickerListener",
    "SnapshotSink",
    "StreamChannel",
]
