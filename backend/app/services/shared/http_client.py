"""Base async HTTP client with retry logic, timeouts, and error handling.

All external API clients (exchange rate providers, blockchain readers)
inherit from this class to get consistent behavior for retries, timeouts,
and error handling.
"""

import logging
from typing import Any, Self

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings

logger = logging.getLogger(__name__)


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class HTTPClient:
    """Base async HTTP client with retry logic, timeouts, and error handling.

    Example usage:
        class FrankfurterRateProvider(HTTPClient):
            def __init__(self):
                super().__init__(base_url="https://api.frankfurter.dev/v1")

            async def latest(self, base: str) -> dict:
                return await self.get_json("/latest", params={"base": base})

    ``transport`` is forwarded to ``httpx.AsyncClient`` so tests can plug in
    an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or ""
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.default_headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        url: str,
        params: dict | None,
        json: Any,
        headers: dict[str, str],
    ) -> httpx.Response:
        return await self.client.request(
            method=method, url=url, params=params, json=json, headers=headers
        )

    async def _request(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make HTTP request with retry logic.

        Timeouts and connection errors are retried (3 attempts, exponential
        backoff) before being reported.

        Args:
            method: HTTP method (GET, POST)
            url: URL path (joined with base_url if set) or absolute URL
            params: Query parameters
            json: JSON body (for POST)
            headers: Additional headers to merge with defaults

        Returns:
            httpx.Response object

        Raises:
            HTTPClientError: On HTTP errors, timeouts, or connection failures
        """
        merged_headers = {**self.default_headers, **(headers or {})}

        try:
            response = await self._send(method, url, params, json, merged_headers)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"HTTP {e.response.status_code} for {method} {url}: {e.response.text[:200]}"
            )
            raise HTTPClientError(
                message=f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                status_code=e.response.status_code,
                response_body=e.response.text,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout for {method} {url}")
            raise HTTPClientError(f"Request timed out: {url}") from e
        except httpx.TransportError as e:
            logger.warning(f"Connection error for {method} {url}: {e}")
            raise HTTPClientError(f"Connection failed: {url}") from e

    async def get(
        self,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """HTTP GET request."""
        return await self._request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """HTTP POST request."""
        return await self._request("POST", url, json=json, headers=headers)

    async def get_json(self, url: str, params: dict | None = None) -> Any:
        """HTTP GET returning parsed JSON."""
        response = await self.get(url, params=params)
        return _parse_json(response, url)

    async def post_json(self, url: str, json: Any = None) -> Any:
        """HTTP POST returning parsed JSON."""
        response = await self.post(url, json=json)
        return _parse_json(response, url)


def _parse_json(response: httpx.Response, url: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise HTTPClientError(
            f"Malformed JSON from {url}",
            status_code=response.status_code,
            response_body=response.text[:200],
        ) from e
