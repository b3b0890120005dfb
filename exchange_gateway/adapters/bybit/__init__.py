"""
Bybit exchange adapter module.

Components:
    BybitAdapter: V5 spot dialect, retCode envelope and ticker stream
    BybitNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.bybit.adapter import BybitAdapter
from exchange_gateway.adapters.bybit.normalizer import BybitNormalizer

__all__ = [
    "BybitAdapter",
    "BybitNormalizer",
]
