"""
Query-string HMAC signing (Binance).

Payload:
    <sorted params>&recvWindow=<ms>&timestamp=<ms>

Signature:
    hex(HMAC-SHA256(secret, payload)), appended as ``&signature=``.
    The API key travels in the ``X-MBX-APIKEY`` header.
"""

from exchange_gateway.models.credentials import Credential
from exchange_gateway.signing.base import (
    SignedRequest,
    Signer,
    SigningRequest,
    hmac_sha256_hex,
    sorted_query,
)


class BinanceSigner(Signer):
    """
    Binance signer.

    Params are sent in the query string for every verb, including POST.

    Example:
        >>> signer = BinanceSigner(recv_window_ms=5000)
        >>> signed = signer.sign(
        ...     SigningRequest(method="GET", path="/api/v3/account"),
        ...     credential,
        ...     nonce=1700000000000,
        ... )
        >>> signed.query.endswith(signed.signature)
        True
    """

    exchange_id = "binance"

    def __init__(self, recv_window_ms: int = 5000):
        self.recv_window_ms = recv_window_ms

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        parts = []
        base = sorted_query(request.params)
        if base:
            parts.append(base)
        if self.recv_window_ms:
            parts.append(f"recvWindow={self.recv_window_ms}")
        parts.append(f"timestamp={nonce}")
        payload = "&".join(parts)

        signature = hmac_sha256_hex(credential.api_secret, payload)
        return SignedRequest(
            signature=signature,
            headers={"X-MBX-APIKEY": credential.api_key},
            payload=payload,
            query=f"{payload}&signature={signature}",
        )
