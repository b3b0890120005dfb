"""
Signature Engine for exchange authentication.

One strategy per exchange, each a pure function of
(request, credential, nonce):

    binance:   query-string HMAC (query.py)
    bybit:     header-based HMAC (header.py)
    okx:       passphrase, ISO timestamp (passphrase.py)
    kucoin:    passphrase, signed passphrase (passphrase.py)
    coinbase:  passphrase, base64 secret (passphrase.py)
    cryptocom: RPC payload with deterministic param string (rpc.py)

Example:
    >>> from exchange_gateway.signing import SignatureEngine, SigningRequest
    >>> engine = SignatureEngine()
    >>> signed = engine.sign("binance", SigningRequest(method="GET", path="/api/v3/account"), cred)
"""

from exchange_gateway.signing.base import (
    NonceGenerator,
    SignedRequest,
    Signer,
    SigningRequest,
    sorted_query,
)
from exchange_gateway.signing.engine import SignatureEngine, default_signers
from exchange_gateway.signing.header import BybitSigner
from exchange_gateway.signing.passphrase import (
    CoinbaseSigner,
    KucoinSigner,
    OkxSigner,
    okx_timestamp,
)
from exchange_gateway.signing.query import BinanceSigner
from exchange_gateway.signing.rpc import CryptoComSigner, deterministic_param_string

__all__ = [
    "SignatureEngine",
    "default_signers",
    "Signer",
    "SigningRequest",
    "SignedRequest",
    "NonceGenerator",
    "sorted_query",
    "BinanceSigner",
    "BybitSigner",
    "OkxSigner",
    "KucoinSigner",
    "CoinbaseSigner",
    "CryptoComSigner",
    "deterministic_param_string",
    "okx_timestamp",
]
