"""
Thread-safe registry of adapter health snapshots.

Each adapter is the single writer of its own entry; the gateway, the HTTP
layer and the sink read. Snapshots are immutable, so readers get a
consistent view without holding the lock.
"""

import threading
from typing import Callable, Dict, List, Optional

import structlog

from exchange_gateway.models.health import AdapterHealth

logger = structlog.get_logger(__name__)

HealthChangeListener = Callable[[AdapterHealth], None]


class HealthRegistry:
    """
    Map of exchange id to the latest AdapterHealth.

    Example:
        >>> registry = HealthRegistry()
        >>> registry.update(AdapterHealth(exchange_id="okx"))
        >>> registry.get("okx").connection_state
        <ConnectionState.DISCONNECTED: 'disconnected'>
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: Dict[str, AdapterHealth] = {}
        self._listeners: List[HealthChangeListener] = []

    def update(self, health: AdapterHealth) -> None:
        """Store a new snapshot and notify listeners outside the lock."""
        with self._lock:
            self._snapshots[health.exchange_id] = health
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(health)
            except Exception as e:
                logger.error(
                    "health_change_listener_error",
                    exchange_id=health.exchange_id,
                    error=str(e),
                )

    def get(self, exchange_id: str) -> Optional[AdapterHealth]:
        """Latest snapshot for an exchange, if any."""
        with self._lock:
            return self._snapshots.get(exchange_id)

    def snapshot(self) -> Dict[str, AdapterHealth]:
        """Copy of all current snapshots."""
        with self._lock:
            return dict(self._snapshots)

    def remove(self, exchange_id: str) -> None:
        """Forget an exchange."""
        with self._lock:
            self._snapshots.pop(exchange_id, None)

    def add_listener(self, listener: HealthChangeListener) -> None:
        """Register a callback invoked after every update."""
        with self._lock:
            self._listeners.append(listener)

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def __repr__(self) -> str:
        return f"HealthRegistry(exchanges={sorted(self.snapshot())})"
