"""
Binance exchange adapter module.

Components:
    BinanceAdapter: REST v3 dialect, envelope checks and ticker stream
    BinanceNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.binance.adapter import BinanceAdapter
from exchange_gateway.adapters.binance.normalizer import BinanceNormalizer

__all__ = [
    "BinanceAdapter",
    "BinanceNormalizer",
]
