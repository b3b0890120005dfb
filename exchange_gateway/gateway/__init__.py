"""
Exchange Gateway orchestration.

Components:
    ExchangeGateway: Owns the adapters, routes and fans out calls, selects the primary
    HealthRegistry: Thread-safe map of immutable adapter health snapshots
"""

from exchange_gateway.gateway.gateway import ALL_EXCHANGES, ExchangeGateway
from exchange_gateway.gateway.health_registry import HealthChangeListener, HealthRegistry

__all__ = [
    "ALL_EXCHANGES",
    "ExchangeGateway",
    "HealthChangeListener",
    "HealthRegistry",
]
