"""Base HTTP client with timeouts and error handling.

All external API clients inherit from this class to get consistent
timeout and error behavior. Requests are attempted exactly once: callers
decide what a failure means (fall through to the next rate source, or
report a failed sync).
"""

import logging
from typing import Any, Self

import httpx

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
    """Base HTTP client with a lazily created httpx.Client.

    Example usage:
        class OpenExchangeRateSource(HTTPClient):
            def __init__(self):
                super().__init__(base_url="https://open.er-api.com", timeout=10.0)

            def latest(self) -> dict:
                return self.get_json("/v6/latest/USD")
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.default_headers = headers or {}
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url or "",
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json: dict | None = None,
        data: dict | None = None,
        headers: dict | None = None,
        timeout: float | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            url: URL path (will be joined with base_url if set)
            params: Query parameters
            json: JSON body (for POST/PUT)
            data: Form data (for POST/PUT)
            headers: Additional headers to merge with defaults
            timeout: Per-request timeout overriding the client default
            raise_for_status: Raise HTTPClientError on 4xx/5xx responses

        Returns:
            httpx.Response object

        Raises:
            HTTPClientError: On HTTP errors, timeouts, or connection failures
        """
        merged_headers = {**self.default_headers, **(headers or {})}

        try:
            response = self.client.request(
                method=method,
                url=url,
                params=params,
                json=json,
                data=data,
                headers=merged_headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
            if raise_for_status:
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
        except httpx.HTTPError as e:
            logger.warning(f"Connection error for {method} {url}: {e}")
            raise HTTPClientError(f"Connection failed: {url}") from e

    def get(
        self,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """HTTP GET request."""
        return self._request("GET", url, params=params, headers=headers, timeout=timeout)

    def post(
        self,
        url: str,
        json: dict | None = None,
        data: dict | None = None,
        headers: dict | None = None,
        timeout: float | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """HTTP POST request."""
        return self._request(
            "POST",
            url,
            json=json,
            data=data,
            headers=headers,
            timeout=timeout,
            raise_for_status=raise_for_status,
        )

    def get_json(self, url: str, params: dict | None = None, timeout: float | None = None) -> Any:
        """HTTP GET returning parsed JSON."""
        response = self.get(url, params=params, timeout=timeout)
        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(f"Invalid JSON from {url}", response.status_code) from e

    def post_json(
        self,
        url: str,
        json: dict | None = None,
        timeout: float | None = None,
        raise_for_status: bool = True,
    ) -> Any:
        """HTTP POST returning parsed JSON."""
        response = self.post(url, json=json, timeout=timeout, raise_for_status=raise_for_status)
        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(f"Invalid JSON from {url}", response.status_code) from e
