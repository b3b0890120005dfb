"""
Async REST transport shared by all exchange adapters.

Handles session lifecycle, client-side throttling and the mapping of
transport-level failures onto the gateway error taxonomy. Exchange-specific
envelopes (retCode, code, sCode, ...) are left to each adapter.

Status mapping:
    401, 403     -> AuthenticationError
    418, 429     -> RateLimitError (Retry-After honoured)
    5xx          -> NetworkError
    timeout, DNS, reset -> NetworkError
    non-JSON body -> ProtocolError
    other 4xx    -> returned to the adapter for envelope inspection
"""

import asyncio
import json
from typing import Any, Dict, Mapping, Optional

import aiohttp
import structlog
from pydantic import BaseModel, Field
from yarl import URL

from exchange_gateway.errors import (
    AuthenticationError,
    NetworkError,
    ProtocolError,
    RateLimitError,
)

logger = structlog.get_logger(__name__)

USER_AGENT = "exchange-gateway/0.1"


class RestResponse(BaseModel):
    """
    Decoded HTTP response.

    Attributes:
        status: HTTP status code.
        data: Parsed JSON body (None for an empty body).
        headers: Response headers.
    """

    model_config = {"frozen": True}

    status: int = Field(..., description="HTTP status code")
    data: Any = Field(default=None, description="Parsed JSON body")
    headers: Dict[str, str] = Field(default_factory=dict, description="Response headers")

    @property
    def ok(self) -> bool:
        """Check for a 2xx status."""
        return 200 <= self.status < 300


def _retry_after(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class RestClient:
    """
    Async REST API client for one exchange.

    Implements simple time-based throttling and error mapping.

    Attributes:
        exchange_id: Exchange identifier, attached to every error.
        base_url: REST API base URL.
        rate_limit_per_second: Maximum requests per second.
        timeout_seconds: Per-call timeout.

    Example:
        >>> client = RestClient("binance", "https://api.binance.com", rate_limit_per_second=10)
        >>> response = await client.request("GET", "/api/v3/time")
        >>> response.data["serverTime"]
        1700000000000
    """

    def __init__(
        self,
        exchange_id: str,
        base_url: str,
        rate_limit_per_second: int = 10,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize REST client.

        Args:
            exchange_id: Exchange identifier.
            base_url: REST API base URL.
            rate_limit_per_second: Maximum requests per second.
            timeout_seconds: Request timeout in seconds.
            session: Pre-built session (owned by the caller).
        """
        self.exchange_id = exchange_id
        self.base_url = base_url.rstrip("/")
        self.rate_limit_per_second = rate_limit_per_second
        self.timeout_seconds = timeout_seconds

        self._session = session
        self._owns_session = session is None
        self._last_request_time: float = 0.0
        self._request_interval = 1.0 / rate_limit_per_second
        self._throttle_lock = asyncio.Lock()

        logger.debug(
            "rest_client_initialized",
            exchange_id=exchange_id,
            base_url=self.base_url,
            rate_limit=rate_limit_per_second,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Lazily open the owned session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this client opened it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            logger.debug("rest_client_session_closed", exchange_id=self.exchange_id)

    async def _rate_limit(self) -> None:
        """Space requests at least 1/rate_limit_per_second apart."""
        async with self._throttle_lock:
            loop = asyncio.get_running_loop()
            time_since_last = loop.time() - self._last_request_time

            if time_since_last < self._request_interval:
                await asyncio.sleep(self._request_interval - time_since_last)

            self._last_request_time = loop.time()

    def build_url(self, path: str, query: str = "") -> URL:
        """
        Build a request URL without re-encoding the query.

        Signed query strings must reach the exchange byte-for-byte.
        """
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        return URL(url, encoded=True)

    async def request(
        self,
        method: str,
        path: str,
        query: str = "",
        body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> RestResponse:
        """
        Send one request and map the outcome onto RestResponse or a GatewayError.

        Args:
            method: HTTP method (GET, POST, DELETE).
            path: API endpoint path.
            query: Pre-encoded query string.
            body: Pre-serialized request body.
            headers: Extra headers (auth headers included).

        Returns:
            RestResponse: Status, parsed body and headers.

        Raises:
            AuthenticationError: On 401/403.
            RateLimitError: On 418/429.
            NetworkError: On 5xx, timeouts and connection failures.
            ProtocolError: If the body is not JSON.
        """
        session = await self._ensure_session()
        await self._rate_limit()

        url = self.build_url(path, query)
        request_headers = dict(headers or {})
        if body is not None and "Content-Type" not in request_headers:
            request_headers["Content-Type"] = "application/json"

        try:
            async with session.request(
                method.upper(),
                url,
                data=body,
                headers=request_headers,
            ) as response:
                text = await response.text()
                status = response.status
                response_headers = dict(response.headers)

        except asyncio.TimeoutError as e:
            logger.warning(
                "rest_request_timeout",
                exchange_id=self.exchange_id,
                method=method,
                path=path,
                timeout=self.timeout_seconds,
            )
            raise NetworkError(
                f"Request timeout after {self.timeout_seconds}s: {method} {path}",
                exchange_id=self.exchange_id,
            ) from e
        except aiohttp.ClientError as e:
            logger.warning(
                "rest_request_failed",
                exchange_id=self.exchange_id,
                method=method,
                path=path,
                error=str(e),
            )
            raise NetworkError(
                f"Request failed: {method} {path}: {e}",
                exchange_id=self.exchange_id,
            ) from e

        return self._handle_response(method, path, status, text, response_headers)

    def _handle_response(
        self,
        method: str,
        path: str,
        status: int,
        text: str,
        headers: Dict[str, str],
    ) -> RestResponse:
        if status in (418, 429):
            retry_after = _retry_after(headers)
            logger.warning(
                "rest_rate_limited",
                exchange_id=self.exchange_id,
                path=path,
                retry_after=retry_after,
            )
            raise RateLimitError(
                f"Rate limited on {method} {path}",
                exchange_id=self.exchange_id,
                retry_after=retry_after,
            )

        if status in (401, 403):
            logger.warning(
                "rest_authentication_rejected",
                exchange_id=self.exchange_id,
                path=path,
                status=status,
            )
            raise AuthenticationError(
                f"HTTP {status} on {method} {path}: {text[:200]}",
                exchange_id=self.exchange_id,
                code=str(status),
            )

        if status >= 500:
            raise NetworkError(
                f"HTTP {status} on {method} {path}",
                exchange_id=self.exchange_id,
            )

        if not text:
            data = None
        else:
            try:
                data = json.loads(text)
            except ValueError as e:
                raise ProtocolError(
                    f"Non-JSON response (HTTP {status}) on {method} {path}",
                    exchange_id=self.exchange_id,
                    raw=text[:1000],
                ) from e

        return RestResponse(status=status, data=data, headers=headers)

    def __repr__(self) -> str:
        return f"RestClient(exchange={self.exchange_id}, base_url={self.base_url})"
