"""
OKX exchange adapter module.

Components:
    OKXAdapter: API v5 dialect, code/sCode envelope and ticker stream
    OKXNormalizer: Payload normalization to canonical models
"""

from exchange_gateway.adapters.okx.adapter import OKXAdapter
from exchange_gateway.adapters.okx.normalizer import OKXNormalizer

__all__ = [
    "OKXAdapter",
    "OKXNormalizer",
]
