"""
Mapping of GatewayError subclasses to HTTP responses.

Lookup walks the exception's MRO, so subclasses inherit their parent's
status unless listed explicitly (CredentialsMissingError is a
ConfigurationError but answers 409).
"""

from typing import Dict, Type

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from exchange_gateway.api.schemas import ErrorResponse
from exchange_gateway.errors import (
    AdapterTimeoutError,
    AuthenticationError,
    ConfigurationError,
    CredentialsMissingError,
    ExchangeNotFoundError,
    ExchangeRejectionError,
    GatewayError,
    InvalidSymbolError,
    NetworkError,
    NoPrimaryAdapterError,
    NormalizationError,
    ProtocolError,
    RateLimitError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES: Dict[Type[GatewayError], int] = {
    ExchangeNotFoundError: 404,
    CredentialsMissingError: 409,
    ConfigurationError: 400,
    InvalidSymbolError: 400,
    AuthenticationError: 401,
    RateLimitError: 429,
    ExchangeRejectionError: 422,
    NoPrimaryAdapterError: 503,
    AdapterTimeoutError: 504,
    NetworkError: 502,
    ProtocolError: 502,
    NormalizationError: 502,
}


def status_code_for(exc: GatewayError) -> int:
    """HTTP status for an error (500 when unmapped)."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "api_request_failed",
        path=request.url.path,
        status_code=status_code,
        error_type=exc.error_type,
        exchange_id=exc.exchange_id,
        error=exc.message,
    )

    body = ErrorResponse(error=exc.error_type, message=exc.message, exchange_id=exc.exchange_id)
    headers = {}
    if isinstance(exc, RateLimitError) and exc.retry_after is not None:
        headers["Retry-After"] = str(max(1, int(exc.retry_after)))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Install the GatewayError handler on an app."""
    app.add_exception_handler(GatewayError, gateway_error_handler)  # type: ignore[arg-type]
