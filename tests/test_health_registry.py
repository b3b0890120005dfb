"""
Unit tests for HealthRegistry.
"""

from exchange_gateway.gateway import HealthRegistry
from exchange_gateway.models.health import AdapterHealth, ConnectionState


def test_latest_snapshot_wins():
    registry = HealthRegistry()
    registry.update(AdapterHealth(exchange_id="okx"))
    registry.update(AdapterHealth(exchange_id="okx", connection_state=ConnectionState.CONNECTED))

    assert len(registry) == 1
    assert registry.get("okx").connection_state == ConnectionState.CONNECTED
    assert registry.get("binance") is None


def test_snapshot_is_a_copy():
    registry = HealthRegistry()
    registry.update(AdapterHealth(exchange_id="okx"))

    snapshot = registry.snapshot()
    registry.remove("okx")

    assert "okx" in snapshot
    assert registry.get("okx") is None


def test_listener_errors_do_not_block_others():
    registry = HealthRegistry()
    seen = []

    def broken(health):
        raise RuntimeError("listener bug")

    registry.add_listener(broken)
    registry.add_listener(seen.append)
    registry.update(AdapterHealth(exchange_id="bybit"))

    assert [h.exchange_id for h in seen] == ["bybit"]
