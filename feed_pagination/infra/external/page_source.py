"""Page sources: HTTP-backed and in-memory implementations of PageSource."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Mapping, Sequence
import logging
from typing import Any

import httpx

from feed_pagination.core.exceptions import ServerError
from feed_pagination.core.pagination.models import PageResult
from feed_pagination.core.settings import HttpSourceSettings, get_http_source_settings
from feed_pagination.infra.external.base_client import BaseHTTPClient
from feed_pagination.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


class HttpPageSource(BaseHTTPClient):
    """Fetch feed pages from a JSON endpoint.

    Requests ``GET {path}?page=N&limit=S`` plus one query parameter per
    filter entry, and expects ``{"items": [...], "totalCount": N}`` back
    (keys are configurable).

    Example:
        ```python
        async with HttpPageSource(HttpSourceSettings(base_url="https://api.example.com")) as source:
            page = await source.fetch_page(1, 15, {"genre": "jazz"})
        ```
    """

    def __init__(
        self,
        settings: HttpSourceSettings | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_http_source_settings()
        super().__init__(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout,
            headers=headers,
            transport=transport,
            retry_policy=RetryPolicy.from_settings(self.settings),
        )

    async def fetch_page(self, page: int, page_size: int, filters: Any = None) -> PageResult:
        params: dict[str, Any] = {
            self.settings.page_param: page,
            self.settings.limit_param: page_size,
        }
        if filters is not None:
            if not isinstance(filters, Mapping):
                msg = f"HTTP page filters must be a mapping of query parameters, got {type(filters).__name__}"
                raise TypeError(msg)
            params.update({str(k): v for k, v in filters.items() if v is not None})

        payload = await self.get(self.settings.path, params=params)
        return self._parse(payload, page)

    def _parse(self, payload: Any, page: int) -> PageResult:
        if not isinstance(payload, Mapping):
            msg = f"Page {page} response is not a JSON object"
            raise ServerError(msg, type="malformed-response")

        items = payload.get(self.settings.items_key)
        total = payload.get(self.settings.total_key, payload.get("total_count"))
        if not isinstance(items, list):
            msg = f"Page {page} response has no '{self.settings.items_key}' list"
            raise ServerError(msg, type="malformed-response")
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            msg = f"Page {page} response has no valid '{self.settings.total_key}'"
            raise ServerError(msg, type="malformed-response")

        return PageResult(items=items, total_count=total)


class StaticPageSource:
    """Serve pages from an in-memory sequence.

    Useful for demos, offline feeds and tests. Failures can be queued with
    :meth:`fail_next`, and every call is recorded in :attr:`calls`.

    Example:
        source = StaticPageSource([{"id": str(i)} for i in range(40)])
        page = await source.fetch_page(2, 15)  # items 15..29, total 40
    """

    def __init__(
        self,
        items: Sequence[Any],
        total_count: int | None = None,
        delay: float = 0.0,
        filter_func: Callable[[Any, Any], bool] | None = None,
    ) -> None:
        self.items = list(items)
        self.total_count = total_count
        self.delay = delay
        self.filter_func = filter_func
        self.calls: list[tuple[int, int, Any]] = []
        self._failures: deque[Exception] = deque()

    def fail_next(self, error: Exception, times: int = 1) -> None:
        """Make the next ``times`` fetches raise ``error``."""
        self._failures.extend([error] * times)

    async def fetch_page(self, page: int, page_size: int, filters: Any = None) -> PageResult:
        if page < 1 or page_size < 1:
            msg = f"page and page_size must be positive, got {page} and {page_size}"
            raise ValueError(msg)
        self.calls.append((page, page_size, filters))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._failures:
            raise self._failures.popleft()

        items = self.items
        if filters is not None and self.filter_func is not None:
            items = [item for item in items if self.filter_func(item, filters)]
        start = (page - 1) * page_size
        total = self.total_count if self.total_count is not None else len(items)
        logger.debug(
            f"Serving static page {page}",
            extra={"page": page, "page_size": page_size, "total": total},
        )
        return PageResult(items=items[start : start + page_size], total_count=total)
