"""Base HTTP client for the gateways the engine drives.

Provides:
- Connection pooling (one ``httpx.AsyncClient`` per gateway)
- Transport-level retries for timeouts and network errors
- Request/response logging with timing
- Injection of a preconfigured client (tests pass one backed by
  ``httpx.MockTransport``)

HTTP error statuses are raised as ``httpx.HTTPStatusError`` and left to the
caller to classify.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Self

import httpx

from notification_service.utils.retry import retry

logger = logging.getLogger(__name__)

RETRYABLE_TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class BaseHTTPClient:
    """Base HTTP client for external gateway integrations.

    Example:
        class UserServiceClient(BaseHTTPClient):
            async def get_identity(self, user_id: str) -> dict:
                return await self.post("/user/get-user-identity", json={"user_id": user_id})
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: Base URL for the gateway.
            timeout: Request timeout in seconds.
            max_retries: Extra attempts after a timeout or network error.
            retry_delay: Initial delay between transport retries in seconds.
            headers: Default headers included in every request.
            client: Preconfigured client to use instead of creating one.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.default_headers = headers or {}

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
            ),
        )

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transport failures ``max_retries`` times.

        Raises:
            httpx.HTTPStatusError: On 4xx/5xx responses.
            RetryError: When every attempt failed with a transport error.
        """
        url = self.url_for(path)
        merged_headers = {**self.default_headers, **(headers or {})}

        @retry(
            max_attempts=self.max_retries + 1,
            initial_delay=self.retry_delay,
            max_delay=10.0,
            exceptions=RETRYABLE_TRANSPORT_ERRORS,
        )
        async def _send() -> httpx.Response:
            start_time = time.time()
            response = await self.client.request(
                method,
                url,
                json=json,
                data=data,
                headers=merged_headers,
                timeout=timeout if timeout is not None else self.timeout,
                auth=auth if auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"{method} {url} -> {response.status_code}",
                extra={
                    "url": url,
                    "method": method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "operation": "http.request",
                },
            )
            return response

        response = await _send()
        response.raise_for_status()
        return response

    async def post(
        self,
        path: str,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """POST and decode the JSON response body (empty bodies decode to ``{}``)."""
        response = await self.request("POST", path, json=json, data=data, headers=headers, **kwargs)
        if not response.content:
            return {}
        return response.json()
