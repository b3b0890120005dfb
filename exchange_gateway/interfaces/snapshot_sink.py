"""
Write-only sink for gateway output.

Persistence is an external collaborator: the gateway pushes the latest
ticker and health snapshots to a sink and never reads them back.
"""

from abc import ABC, abstractmethod

from exchange_gateway.models.health import AdapterHealth
from exchange_gateway.models.ticker import Ticker


class SnapshotSink(ABC):
    """Destination for ticker and health snapshots."""

    @abstractmethod
    async def write_ticker(self, ticker: Ticker) -> None:
        """Store the latest ticker for (exchange, symbol)."""
        pass

    @abstractmethod
    async def write_health(self, health: AdapterHealth) -> None:
        """Store the latest health snapshot for an exchange."""
        pass

    async def close(self) -> None:
        """Release sink resources."""
        return None
