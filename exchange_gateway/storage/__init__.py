"""
Storage for gateway output.

Modules:
    redis_sink: Latest ticker and health snapshots in Redis, with pub/sub
        notifications

Example:
    >>> from exchange_gateway.storage import RedisSnapshotSink
    >>> sink = RedisSnapshotSink(config.redis, config.sink)
    >>> await sink.connect()
"""

from exchange_gateway.storage.redis_sink import (
    RedisSnapshotSink,
    SinkConnectionError,
    SinkError,
    SinkWriteError,
)

__all__ = [
    "RedisSnapshotSink",
    "SinkError",
    "SinkConnectionError",
    "SinkWriteError",
]
