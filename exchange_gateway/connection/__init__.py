"""
Streaming connection management.

Components:
    ConnectionManager: State machine and supervisor task for one channel
    BackoffPolicy: Exponential reconnect delays
"""

from exchange_gateway.connection.backoff import BackoffPolicy
from exchange_gateway.connection.manager import (
    NORMAL_CLOSURE,
    ConnectionListener,
    ConnectionManager,
    Connector,
    default_connector,
)

__all__ = [
    "BackoffPolicy",
    "ConnectionManager",
    "ConnectionListener",
    "Connector",
    "NORMAL_CLOSURE",
    "default_connector",
]
