"""Unit tests for the request optimizer."""
from __future__ import annotations

import asyncio

import pytest

from feed_pagination.core.exceptions import NetworkError, RequestTimeoutError
from feed_pagination.core.settings import OptimizerSettings
from feed_pagination.infra.cache import NetworkCondition, RequestOptimizer


@pytest.fixture
def heuristics(optimizer_settings: OptimizerSettings) -> RequestOptimizer:
    """Optimizer used only for its synchronous heuristics."""
    return RequestOptimizer(optimizer_settings)


class CountingProducer:
    """Producer that counts invocations and can block until released."""

    def __init__(self, value="page", error: Exception | None = None, delay: float = 0.0):
        self.value = value
        self.error = error
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


@pytest.mark.unit
class TestDeduplication:
    """Test suite for in-flight request sharing."""

    async def test_concurrent_callers_share_one_fetch(self, optimizer):
        producer = CountingProducer(value=["a", "b"], delay=0.01)

        results = await asyncio.gather(*(optimizer.optimize("k", producer) for _ in range(5)))

        assert producer.calls == 1
        assert all(result == ["a", "b"] for result in results)
        metrics = optimizer.get_metrics()
        assert metrics.dedup_hits == 4
        assert metrics.request_count == 1

    async def test_distinct_keys_fetch_separately(self, optimizer):
        producer = CountingProducer(delay=0.01)

        await asyncio.gather(optimizer.optimize("a", producer), optimizer.optimize("b", producer))

        assert producer.calls == 2

    async def test_failure_reaches_every_waiter(self, optimizer):
        producer = CountingProducer(error=NetworkError("offline"), delay=0.01)

        results = await asyncio.gather(
            optimizer.optimize("k", producer),
            optimizer.optimize("k", producer),
            return_exceptions=True,
        )

        assert producer.calls == 1
        assert all(isinstance(result, NetworkError) for result in results)
        assert optimizer.is_inflight("k") is False

    async def test_cancelled_waiter_leaves_fetch_running(self, optimizer):
        producer = CountingProducer(value="v", delay=0.05)
        first = asyncio.create_task(optimizer.optimize("k", producer))
        second = asyncio.create_task(optimizer.optimize("k", producer))
        await asyncio.sleep(0)

        first.cancel()

        assert await second == "v"
        assert producer.calls == 1


@pytest.mark.unit
class TestCaching:
    """Test suite for TTL caching."""

    async def test_settled_result_is_cached(self, optimizer):
        producer = CountingProducer()

        await optimizer.optimize("k", producer)
        await optimizer.optimize("k", producer)

        assert producer.calls == 1
        assert optimizer.is_cached("k") is True
        assert optimizer.get_metrics().cache_hits == 1

    async def test_expired_entry_is_refetched(self, optimizer, clock):
        producer = CountingProducer()

        await optimizer.optimize("k", producer, ttl=10)
        clock.advance(11)
        await optimizer.optimize("k", producer, ttl=10)

        assert producer.calls == 2

    async def test_zero_ttl_disables_cache(self, optimizer):
        producer = CountingProducer()

        await optimizer.optimize("k", producer, ttl=0)
        await optimizer.optimize("k", producer, ttl=0)

        assert producer.calls == 2
        assert optimizer.get_metrics().cache_size == 0

    async def test_failures_are_not_cached(self, optimizer):
        failing = CountingProducer(error=NetworkError("offline"))
        succeeding = CountingProducer(value="ok")

        with pytest.raises(NetworkError):
            await optimizer.optimize("k", failing)
        result = await optimizer.optimize("k", succeeding)

        assert result == "ok"
        assert optimizer.get_metrics().error_count == 1

    async def test_unexpected_errors_propagate(self, optimizer):
        with pytest.raises(ValueError):
            await optimizer.optimize("k", CountingProducer(error=ValueError("bad page")))

        assert optimizer.get_metrics().error_count == 1

    async def test_cache_size_bound(self, clock):
        optimizer = RequestOptimizer(OptimizerSettings(cache_size=2), clock=clock)

        for key in ("a", "b", "c"):
            await optimizer.optimize(key, CountingProducer())

        assert optimizer.is_cached("a") is False
        assert optimizer.is_cached("c") is True
        assert optimizer.get_metrics().cache_size == 2

    async def test_cleanup_and_invalidate(self, optimizer, clock):
        await optimizer.optimize("old", CountingProducer(), ttl=5)
        await optimizer.optimize("new", CountingProducer(), ttl=60)
        clock.advance(10)

        assert optimizer.cleanup_expired() == 1
        assert optimizer.is_cached("new") is True

        optimizer.invalidate("new")
        assert optimizer.is_cached("new") is False

    async def test_close_clears_state(self, optimizer):
        await optimizer.optimize("k", CountingProducer())
        pending = asyncio.create_task(optimizer.optimize("slow", CountingProducer(delay=1)))
        await asyncio.sleep(0)

        await optimizer.close()

        assert optimizer.get_metrics().cache_size == 0
        assert optimizer.is_inflight("slow") is False
        with pytest.raises(asyncio.CancelledError):
            await pending


@pytest.mark.unit
class TestTimeout:
    """Test suite for request timeouts."""

    async def test_slow_request_times_out(self, clock):
        optimizer = RequestOptimizer(OptimizerSettings(request_timeout=0.01), clock=clock)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await optimizer.optimize("k", CountingProducer(delay=1))

        assert exc_info.value.retryable is True
        assert optimizer.is_inflight("k") is False
        metrics = optimizer.get_metrics()
        assert metrics.timeout_count == 1
        assert metrics.error_count == 1

    async def test_key_is_usable_after_timeout(self, clock):
        optimizer = RequestOptimizer(OptimizerSettings(request_timeout=0.01), clock=clock)
        with pytest.raises(RequestTimeoutError):
            await optimizer.optimize("k", CountingProducer(delay=1))

        assert await optimizer.optimize("k", CountingProducer(value="late")) == "late"


@pytest.mark.unit
class TestHeuristics:
    """Test suite for batch sizing and prefetch decisions."""

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (NetworkCondition.NORMAL, 15),
            (NetworkCondition.FAST, 23),
            (NetworkCondition.SLOW, 10),
            ("fast", 23),
        ],
    )
    def test_batch_size_by_condition(self, heuristics, condition, expected):
        assert heuristics.optimize_batch_size(0, 1000, condition) == expected

    def test_fast_batch_capped_at_max(self):
        optimizer = RequestOptimizer(OptimizerSettings(batch_size=20, max_batch_size=25))

        assert optimizer.optimize_batch_size(0, 1000, "fast") == 25

    def test_batch_never_exceeds_remaining(self, heuristics):
        assert heuristics.optimize_batch_size(95, 100, "fast") == 5

    def test_nothing_remaining(self, heuristics):
        assert heuristics.optimize_batch_size(100, 100) == 0
        assert heuristics.optimize_batch_size(120, 100) == 0

    def test_unknown_condition_rejected(self, heuristics):
        with pytest.raises(ValueError):
            heuristics.optimize_batch_size(0, 10, "satellite")

    @pytest.mark.parametrize(
        ("index", "loaded", "velocity", "time_on_page", "expected"),
        [
            (95, 100, 0.0, 0.0, True),
            (10, 100, 0.0, 0.0, False),
            (10, 100, 1500.0, 0.0, True),
            (10, 100, 0.0, 45.0, True),
            (99, 100, 5000.0, 100.0, False),
            (0, 0, 0.0, 0.0, False),
        ],
    )
    def test_should_prefetch(self, heuristics, index, loaded, velocity, time_on_page, expected):
        assert heuristics.should_prefetch(index, loaded, velocity, time_on_page) is expected


@pytest.mark.unit
class TestMetrics:
    """Test suite for performance metrics."""

    async def test_hit_rate_and_timing(self, optimizer):
        producer = CountingProducer()

        await optimizer.optimize("k", producer)
        await optimizer.optimize("k", producer)
        await optimizer.optimize("k", producer)
        await optimizer.optimize("other", producer)

        metrics = optimizer.get_metrics()
        assert metrics.lookups == 4
        assert metrics.request_count == 2
        assert metrics.cache_hit_rate == pytest.approx(0.5)
        assert metrics.average_fetch_time_ms >= 0.0
        assert metrics.extra == {"inflight": 0}

    def test_empty_metrics(self, heuristics):
        metrics = heuristics.get_metrics()

        assert metrics.cache_hit_rate == 0.0
        assert metrics.average_fetch_time_ms == 0.0
