"""
Signature Engine building blocks.

Every exchange signs requests differently. Each variant is a Signer subclass
whose ``sign`` is a pure function of (request, credential, nonce): identical
inputs always produce identical output, which keeps every payload layout
testable without network access.

Components:
    SigningRequest: What is about to be sent (method, path, params)
    SignedRequest: Signature plus the exact headers/query/body to transmit
    Signer: Strategy base class
    NonceGenerator: Monotonic millisecond nonce source
"""

import base64
import hashlib
import hmac
import json
import threading
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field

from exchange_gateway.errors import ConfigurationError
from exchange_gateway.models.credentials import Credential


class SigningRequest(BaseModel):
    """
    Request to be signed.

    Attributes:
        method: HTTP verb ("GET", "POST", ...) or RPC method name.
        path: Request path without query string (e.g., "/api/v3/account").
        params: Query parameters (GET/DELETE) or body fields (POST).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    method: str = Field(..., description="HTTP verb or RPC method", min_length=1)
    path: str = Field(default="", description="Request path")
    params: Dict[str, Any] = Field(default_factory=dict, description="Parameters")

    @property
    def has_body(self) -> bool:
        """Check if params travel in the request body."""
        return self.method.upper() in ("POST", "PUT")


class SignedRequest(BaseModel):
    """
    Output of a signer.

    Attributes:
        signature: The computed signature.
        headers: Headers to attach (auth headers included).
        payload: The exact string that was signed.
        query: Encoded query string to append to the path ("" if none).
        body: Serialized request body (None if no body).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    signature: str = Field(..., description="Computed signature")
    headers: Dict[str, str] = Field(default_factory=dict, description="Headers")
    payload: str = Field(..., description="String that was signed")
    query: str = Field(default="", description="Encoded query string")
    body: Optional[str] = Field(default=None, description="Serialized body")

    @property
    def ordered_query_or_body(self) -> str:
        """The parameter encoding actually transmitted."""
        return self.body if self.body is not None else self.query


def stringify(value: Any) -> str:
    """
    Render a parameter value the way exchanges expect it on the wire.

    Decimals keep their exact digits, booleans become lowercase.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def stringify_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop None values and render scalars as strings, recursing into dicts/lists."""
    result: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            result[key] = stringify_params(value)
        elif isinstance(value, (list, tuple)):
            result[key] = [
                stringify_params(v) if isinstance(v, Mapping) else stringify(v)
                for v in value
            ]
        else:
            result[key] = stringify(value)
    return result


def sorted_query(params: Mapping[str, Any]) -> str:
    """
    Encode params as a key-sorted query string.

    Example:
        >>> sorted_query({"symbol": "BTCUSDT", "limit": 5})
        'limit=5&symbol=BTCUSDT'
    """
    flat = stringify_params(params)
    return urlencode(sorted(flat.items()))


def json_body(params: Mapping[str, Any]) -> str:
    """Serialize params as compact JSON, preserving insertion order."""
    if not params:
        return ""
    return json.dumps(stringify_params(params), separators=(",", ":"))


def hmac_sha256(secret: bytes, payload: str) -> bytes:
    """Raw HMAC-SHA256 digest."""
    return hmac.new(secret, payload.encode("utf-8"), hashlib.sha256).digest()


def hmac_sha256_hex(secret: str, payload: str) -> str:
    """HMAC-SHA256, hex-encoded."""
    return hmac_sha256(secret.encode("utf-8"), payload).hex()


def hmac_sha256_base64(secret: bytes, payload: str) -> str:
    """HMAC-SHA256, base64-encoded."""
    return base64.b64encode(hmac_sha256(secret, payload)).decode("ascii")


class Signer(ABC):
    """
    Per-exchange signing strategy.

    Subclasses set ``exchange_id`` and implement ``_sign``. Credential
    fields are validated before ``_sign`` runs, so a missing key, secret or
    passphrase is always reported as a ConfigurationError and never reaches
    the exchange.
    """

    exchange_id: str = ""
    requires_passphrase: bool = False

    def validate(self, credential: Credential) -> None:
        """
        Check that the credential has every field this exchange needs.

        Raises:
            ConfigurationError: If a required field is missing or empty.
        """
        if not credential.api_key:
            raise ConfigurationError(
                "API key is empty", exchange_id=self.exchange_id, field="api_key"
            )
        if not credential.api_secret:
            raise ConfigurationError(
                "API secret is empty", exchange_id=self.exchange_id, field="api_secret"
            )
        if self.requires_passphrase and not credential.has_passphrase:
            raise ConfigurationError(
                "API passphrase is required for this exchange",
                exchange_id=self.exchange_id,
                field="passphrase",
            )

    def sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        """
        Sign a request.

        Args:
            request: Method, path and params to sign.
            credential: Credential set for this exchange.
            nonce: Millisecond timestamp / nonce.

        Returns:
            SignedRequest: Signature, headers and encoded params.

        Raises:
            ConfigurationError: If the credential is incomplete.
        """
        self.validate(credential)
        return self._sign(request, credential, nonce)

    @abstractmethod
    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(exchange_id={self.exchange_id!r})"


class NonceGenerator:
    """
    Monotonic millisecond nonce source.

    Successive calls never return the same value, even when the wall clock
    stalls or steps backwards.

    Example:
        >>> nonces = NonceGenerator()
        >>> a, b = nonces.next(), nonces.next()
        >>> b > a
        True
    """

    def __init__(self, clock: Optional[Any] = None):
        self._clock = clock or time.time
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next nonce in milliseconds."""
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return self._last
