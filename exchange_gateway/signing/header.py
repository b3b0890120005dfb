"""
Header-based HMAC signing (Bybit V5).

Payload:
    timestamp + api_key + recv_window + (sorted query | JSON body)

Headers:
    X-BAPI-API-KEY, X-BAPI-TIMESTAMP, X-BAPI-RECV-WINDOW, X-BAPI-SIGN
"""

from exchange_gateway.models.credentials import Credential
from exchange_gateway.signing.base import (
    SignedRequest,
    Signer,
    SigningRequest,
    hmac_sha256_hex,
    json_body,
    sorted_query,
)


class BybitSigner(Signer):
    """Bybit V5 signer; nothing auth-related travels in the query or body."""

    exchange_id = "bybit"

    def __init__(self, recv_window_ms: int = 5000):
        self.recv_window_ms = recv_window_ms

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        timestamp = str(nonce)
        recv_window = str(self.recv_window_ms)

        if request.has_body:
            query = ""
            body = json_body(request.params)
            param_str = body
        else:
            query = sorted_query(request.params)
            body = None
            param_str = query

        payload = f"{timestamp}{credential.api_key}{recv_window}{param_str}"
        signature = hmac_sha256_hex(credential.api_secret, payload)

        headers = {
            "X-BAPI-API-KEY": credential.api_key,
            "X-BAPI-TIMESTAMP": timestamp,
            "X-BAPI-RECV-WINDOW": recv_window,
            "X-BAPI-SIGN": signature,
        }
        if body is not None:
            headers["Content-Type"] = "application/json"

        return SignedRequest(
            signature=signature,
            headers=headers,
            payload=payload,
            query=query,
            body=body,
        )
