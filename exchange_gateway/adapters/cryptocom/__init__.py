"""
Crypto.com Exchange adapter module.

Components:
    CryptoComAdapter: v1 RPC dialect and market stream with heartbeat replies
    CryptoComNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.cryptocom.adapter import CryptoComAdapter
from exchange_gateway.adapters.cryptocom.normalizer import CryptoComNormalizer

__all__ = [
    "CryptoComAdapter",
    "CryptoComNormalizer",
]
