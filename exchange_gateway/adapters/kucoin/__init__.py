"""
KuCoin exchange adapter module.

Components:
    KuCoinAdapter: API v1 dialect, token-based stream endpoint
    KuCoinNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.kucoin.adapter import KuCoinAdapter
from exchange_gateway.adapters.kucoin.normalizer import KuCoinNormalizer

__all__ = [
    "KuCoinAdapter",
    "KuCoinNormalizer",
]
