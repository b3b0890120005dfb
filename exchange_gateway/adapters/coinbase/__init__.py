"""
Coinbase Exchange adapter module.

Components:
    CoinbaseAdapter: Exchange REST dialect and ticker channel
    CoinbaseNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.coinbase.adapter import CoinbaseAdapter
from exchange_gateway.adapters.coinbase.normalizer import CoinbaseNormalizer

__all__ = [
    "CoinbaseAdapter",
    "CoinbaseNormalizer",
]
