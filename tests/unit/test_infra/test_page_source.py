"""Unit tests for the HTTP and static page sources."""
from __future__ import annotations

import httpx
import pytest

from feed_pagination.core.exceptions import NetworkError, RequestTimeoutError, ServerError
from feed_pagination.core.pagination import PageSource
from feed_pagination.core.settings import HttpSourceSettings
from feed_pagination.infra.external import HttpPageSource, StaticPageSource
from tests.utils import ids, make_items


def make_source(handler, **overrides) -> HttpPageSource:
    options = {"max_retries": 3, "retry_initial_delay": 0.0, "retry_max_delay": 0.0, **overrides}
    settings = HttpSourceSettings(base_url="https://feed.test", **options)
    return HttpPageSource(settings, transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestHttpPageSource:
    """Test suite for HttpPageSource."""

    async def test_fetch_page(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"items": make_items(15, start=15), "totalCount": 42})

        async with make_source(handler) as source:
            page = await source.fetch_page(2, 15, {"genre": "jazz", "year": None})

        assert ids(page.items) == [f"item-{i}" for i in range(15, 30)]
        assert page.total_count == 42
        params = requests[0].url.params
        assert requests[0].url.path == "/posts"
        assert params["page"] == "2"
        assert params["limit"] == "15"
        assert params["genre"] == "jazz"
        assert "year" not in params

    async def test_custom_keys(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["p"] == "1"
            return httpx.Response(200, json={"data": make_items(2), "total": 2})

        async with make_source(handler, page_param="p", items_key="data", total_key="total") as source:
            page = await source.fetch_page(1, 15)

        assert page.total_count == 2

    async def test_snake_case_total_fallback(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": [], "total_count": 0})

        async with make_source(handler) as source:
            page = await source.fetch_page(1, 15)

        assert page.items == []
        assert page.total_count == 0

    async def test_server_error_is_retried(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"items": make_items(1), "totalCount": 1})

        async with make_source(handler) as source:
            page = await source.fetch_page(1, 15)

        assert attempts == 3
        assert len(page.items) == 1

    async def test_retries_exhausted_raise_last_error(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(502)

        async with make_source(handler) as source:
            with pytest.raises(ServerError) as exc_info:
                await source.fetch_page(1, 15)

        assert attempts == 3
        assert exc_info.value.status_code == 502
        assert exc_info.value.retryable is True

    async def test_client_error_is_not_retried(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(404)

        async with make_source(handler) as source:
            with pytest.raises(ServerError) as exc_info:
                await source.fetch_page(1, 15)

        assert attempts == 1
        assert exc_info.value.retryable is False

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_source(handler, max_retries=1) as source:
            with pytest.raises(NetworkError):
                await source.fetch_page(1, 15)

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow upstream", request=request)

        async with make_source(handler, max_retries=1) as source:
            with pytest.raises(RequestTimeoutError):
                await source.fetch_page(1, 15)

    async def test_transport_error_retried_per_settings(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("connection refused", request=request)

        async with make_source(handler, max_retries=2) as source:
            assert source.retry_policy.max_attempts == 2
            with pytest.raises(NetworkError):
                await source.fetch_page(1, 15)

        assert attempts == 2

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[1, 2, 3]",
            b'{"items": "nope", "totalCount": 3}',
            b'{"items": [], "totalCount": -1}',
            b'{"items": []}',
        ],
    )
    async def test_malformed_response(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        async with make_source(handler) as source:
            with pytest.raises(ServerError) as exc_info:
                await source.fetch_page(1, 15)

        assert exc_info.value.type == "malformed-response"
        assert exc_info.value.retryable is False

    async def test_non_mapping_filters_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": [], "totalCount": 0})

        async with make_source(handler) as source:
            with pytest.raises(TypeError):
                await source.fetch_page(1, 15, ["jazz"])

    def test_satisfies_protocol(self):
        source = HttpPageSource(HttpSourceSettings(base_url="https://feed.test"))

        assert isinstance(source, PageSource)


@pytest.mark.unit
class TestStaticPageSource:
    """Test suite for StaticPageSource."""

    async def test_pages(self):
        source = StaticPageSource(make_items(40))

        second = await source.fetch_page(2, 15)
        last = await source.fetch_page(3, 15)
        beyond = await source.fetch_page(4, 15)

        assert ids(second.items)[0] == "item-15"
        assert len(last.items) == 10
        assert beyond.items == []
        assert second.total_count == 40
        assert source.calls == [(2, 15, None), (3, 15, None), (4, 15, None)]

    async def test_reported_total_override(self):
        source = StaticPageSource(make_items(10), total_count=500)

        page = await source.fetch_page(1, 15)

        assert page.total_count == 500

    async def test_filter_func(self):
        source = StaticPageSource(make_items(10), filter_func=lambda item, f: item["tag"] == f["tag"])

        page = await source.fetch_page(1, 15, {"tag": "odd"})

        assert ids(page.items) == ["item-1", "item-3", "item-5", "item-7", "item-9"]
        assert page.total_count == 5

    async def test_queued_failures(self):
        source = StaticPageSource(make_items(5))
        source.fail_next(NetworkError("offline"), times=2)

        for _ in range(2):
            with pytest.raises(NetworkError):
                await source.fetch_page(1, 15)
        page = await source.fetch_page(1, 15)

        assert len(page.items) == 5

    async def test_invalid_page(self):
        with pytest.raises(ValueError):
            await StaticPageSource([]).fetch_page(0, 15)
