"""Base HTTP client for page source integrations.

Provides a base class for HTTP-backed page sources with:
- Connection pooling
- Retry logic with exponential backoff for retryable failures
- Request/response logging
- Mapping of transport and status errors onto the feed error taxonomy
"""

from __future__ import annotations

import logging
import time
from typing import Any, Self

import httpx

from feed_pagination.core.exceptions import NetworkError, RequestTimeoutError, ServerError
from feed_pagination.utils.retry import RetryPolicy, retry

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429})


class BaseHTTPClient:
    """Base HTTP client raising feed errors.

    Transport failures become ``NetworkError``, timeouts become
    ``RequestTimeoutError``, 5xx and 429 responses become retryable
    ``ServerError`` and other 4xx responses non-retryable ``ServerError``.
    Retryable errors are retried with backoff; once attempts run out the
    last error is raised unchanged.

    Example:
        ```python
        class PostsClient(BaseHTTPClient):
            async def list_posts(self, page: int) -> dict:
                return await self.get("/posts", params={"page": page})
        ```
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_initial_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: Base URL for the API.
            timeout: Request timeout in seconds.
            max_retries: Total attempts for retryable failures.
            retry_initial_delay: First backoff delay in seconds.
            retry_max_delay: Upper bound of a single backoff delay in seconds.
            headers: Default headers to include in all requests.
            transport: Custom transport (e.g. ``httpx.MockTransport`` in tests).
            retry_policy: Complete retry policy; replaces ``max_retries`` and
                the delay arguments when given.
        """
        self.base_url = base_url
        self.timeout = timeout
        self.default_headers = headers or {}

        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers=self.default_headers,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
            ),
            transport=transport,
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=max_retries,
            initial_delay=retry_initial_delay,
            max_delay=retry_max_delay,
        )
        self.max_retries = self.retry_policy.max_attempts
        self._get_with_retry = retry(self.retry_policy, operation="http_get")(self._get_once)

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request and return the decoded JSON body.

        Raises:
            NetworkError: On transport failures.
            RequestTimeoutError: On timeout.
            ServerError: On error status codes or an undecodable body.
        """
        return await self._get_with_retry(path, params)

    async def _get_once(self, path: str, params: dict[str, Any] | None) -> Any:
        logger.debug(
            f"GET request to {self.base_url}{path}",
            extra={"path": path, "params": params},
        )
        started = time.perf_counter()
        try:
            response = await self.client.get(path, params=params)
        except httpx.TimeoutException as e:
            msg = f"GET {path} timed out after {self.timeout}s"
            raise RequestTimeoutError(msg, timeout=self.timeout) from e
        except httpx.TransportError as e:
            msg = f"GET {path} failed: {e}"
            raise NetworkError(msg, extra={"path": path}) from e

        logger.debug(
            f"GET response from {self.base_url}{path}",
            extra={
                "path": path,
                "status_code": response.status_code,
                "duration_ms": (time.perf_counter() - started) * 1000,
            },
        )

        status = response.status_code
        if status >= 500 or status in RETRYABLE_STATUS_CODES:
            msg = f"GET {path} returned {status}"
            raise ServerError(msg, status_code=status, retryable=True, extra={"path": path})
        if status >= 400:
            msg = f"GET {path} returned {status}"
            raise ServerError(msg, status_code=status, retryable=False, extra={"path": path})

        try:
            return response.json()
        except ValueError as e:
            msg = f"GET {path} returned a body that is not valid JSON"
            raise ServerError(msg, status_code=status, type="malformed-response") from e
