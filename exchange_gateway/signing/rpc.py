"""
RPC-style signing (Crypto.com Exchange).

Payload:
    method + id + api_key + param_string + nonce

``param_string`` is produced by deterministic_param_string: keys sorted at
every nesting level, values concatenated with no separators. A single
character of drift invalidates the signature, and the exchange only
answers "authentication failed", so the serializer is kept separate and
tested on its own.

Request body:
    {"id": ..., "method": ..., "api_key": ..., "params": {...},
     "nonce": ..., "sig": ...}
"""

import json
from typing import Any, Mapping, Sequence

from exchange_gateway.models.credentials import Credential
from exchange_gateway.signing.base import (
    SignedRequest,
    Signer,
    SigningRequest,
    hmac_sha256_hex,
    stringify,
    stringify_params,
)


def _value_to_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        return deterministic_param_string(value)
    if isinstance(value, (list, tuple)):
        return _sequence_to_string(value)
    return stringify(value)


def _sequence_to_string(values: Sequence[Any]) -> str:
    return "".join(_value_to_string(v) for v in values)


def deterministic_param_string(params: Any) -> str:
    """
    Serialize params for the RPC signature payload.

    Args:
        params: Parameter object (may be None).

    Returns:
        str: Concatenation of key + value for every key in sorted order,
        recursing into nested objects and arrays.

    Example:
        >>> deterministic_param_string({"b": "2", "a": {"d": [1, 2], "c": "x"}})
        'acxd12b2'
    """
    if params is None:
        return ""
    return "".join(f"{key}{_value_to_string(params[key])}" for key in sorted(params))


class CryptoComSigner(Signer):
    """
    Crypto.com Exchange signer.

    ``request.method`` is the RPC method name (e.g. "private/user-balance").
    The request id is the nonce.
    """

    exchange_id = "cryptocom"

    def _sign(
        self,
        request: SigningRequest,
        credential: Credential,
        nonce: int,
    ) -> SignedRequest:
        params = stringify_params(request.params)
        request_id = nonce
        payload = (
            f"{request.method}{request_id}{credential.api_key}"
            f"{deterministic_param_string(params)}{nonce}"
        )
        signature = hmac_sha256_hex(credential.api_secret, payload)

        body = json.dumps(
            {
                "id": request_id,
                "method": request.method,
                "api_key": credential.api_key,
                "params": params,
                "nonce": nonce,
                "sig": signature,
            },
            separators=(",", ":"),
        )
        return SignedRequest(
            signature=signature,
            headers={"Content-Type": "application/json"},
            payload=payload,
            body=body,
        )
