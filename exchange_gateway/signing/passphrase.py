"""
Passphrase-augmented signing (OKX, KuCoin, Coinbase Exchange).

All three sign ``timestamp + METHOD + path[?query] + body`` with a base64
HMAC-SHA256 and send a passphrase header, but they differ in timestamp
format, secret encoding and passphrase handling:

    OKX:      ISO-8601 UTC timestamp with milliseconds, raw passphrase
    KuCoin:   millisecond timestamp, passphrase itself HMAC-signed (key v2)
    Coinbase: seconds timestamp, secret is base64-decoded before use
"""

import base64
import binascii
from datetime import datetime, timezone
from typing import Optional, Tuple

from exchange_gateway.errors import ConfigurationError
from exchange_gateway.models.credentials import Credential
from exchange_gateway.signing.base import (
    SignedRequest,
    Signer,
    SigningRequest,
    hmac_sha256_base64,
    json_body,
    sorted_query,
)


def _path_and_body(request: SigningRequest) -> Tuple[str, str, Optional[str]]:
    """
    Split a request into (request_path, query, body).

    request_path includes the query string, as all three exchanges sign it.
    """
    if request.has_body:
        body = json_body(request.params)
        return request.path, "", body
    query = sorted_query(request.params)
    request_path = f"{request.path}?{query}" if query else request.path
    return request_path, query, None


def okx_timestamp(nonce: int) -> str:
    """
    Format a millisecond nonce as OKX expects.

    Example:
        >>> okx_timestamp(1700000000123)
        '2023-11-14T22:13:20.123Z'
    """
    moment = datetime.fromtimestamp(nonce // 1000, tz=timezone.utc)
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{nonce % 1000:03d}Z"


class _PassphraseSigner(Signer):
    requires_passphrase = True

    def _prehash(self, timestamp: str, request: SigningRequest) -> Tuple[str, str, Optional[str]]:
        request_path, query, body = _path_and_body(request)
        payload = f"{timestamp}{request.method.upper()}{request_path}{body or ''}"
        return payload, query, body

    @staticmethod
    def _with_content_type(headers: dict, body: Optional[str]) -> dict:
        if body is not None:
            headers["Content-Type"] = "application/json"
        return headers


class OkxSigner(_PassphraseSigner):
    """OKX v5 signer."""

    exchange_id = "okx"

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        timestamp = okx_timestamp(nonce)
        payload, query, body = self._prehash(timestamp, request)
        signature = hmac_sha256_base64(credential.api_secret.encode("utf-8"), payload)

        headers = self._with_content_type(
            {
                "OK-ACCESS-KEY": credential.api_key,
                "OK-ACCESS-SIGN": signature,
                "OK-ACCESS-TIMESTAMP": timestamp,
                "OK-ACCESS-PASSPHRASE": credential.passphrase or "",
            },
            body,
        )
        return SignedRequest(
            signature=signature,
            headers=headers,
            payload=payload,
            query=query,
            body=body,
        )


class KucoinSigner(_PassphraseSigner):
    """KuCoin signer (API key version 2)."""

    exchange_id = "kucoin"

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        timestamp = str(nonce)
        secret = credential.api_secret.encode("utf-8")
        payload, query, body = self._prehash(timestamp, request)
        signature = hmac_sha256_base64(secret, payload)

        headers = self._with_content_type(
            {
                "KC-API-KEY": credential.api_key,
                "KC-API-SIGN": signature,
                "KC-API-TIMESTAMP": timestamp,
                "KC-API-PASSPHRASE": hmac_sha256_base64(secret, credential.passphrase or ""),
                "KC-API-KEY-VERSION": "2",
            },
            body,
        )
        return SignedRequest(
            signature=signature,
            headers=headers,
            payload=payload,
            query=query,
            body=body,
        )


class CoinbaseSigner(_PassphraseSigner):
    """Coinbase Exchange signer."""

    exchange_id = "coinbase"

    def validate(self, credential: Credential) -> None:
        super().validate(credential)
        self._decoded_secret(credential)

    def _decoded_secret(self, credential: Credential) -> bytes:
        try:
            return base64.b64decode(credential.api_secret, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError(
                "API secret is not valid base64",
                exchange_id=self.exchange_id,
                field="api_secret",
            ) from e

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        timestamp = f"{nonce // 1000}.{nonce % 1000:03d}"
        payload, query, body = self._prehash(timestamp, request)
        signature = hmac_sha256_base64(self._decoded_secret(credential), payload)

        headers = self._with_content_type(
            {
                "CB-ACCESS-KEY": credential.api_key,
                "CB-ACCESS-SIGN": signature,
                "CB-ACCESS-TIMESTAMP": timestamp,
                "CB-ACCESS-PASSPHRASE": credential.passphrase or "",
            },
            body,
        )
        return SignedRequest(
            signature=signature,
            headers=headers,
            payload=payload,
            query=query,
            body=body,
        )
