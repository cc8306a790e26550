"""Request optimizer: in-flight deduplication, TTL caching and fetch heuristics."""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
import logging
import math
import time
from typing import Any, TypeVar

from feed_pagination.core.exceptions import FeedError, RequestTimeoutError
from feed_pagination.core.pagination.models import PerformanceMetrics
from feed_pagination.core.settings import OptimizerSettings, get_optimizer_settings
from feed_pagination.infra.metrics import tracking

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NetworkCondition(StrEnum):
    """Connection quality hint used to size fetch batches."""

    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"


@dataclass
class CacheEntry:
    """A settled result held by the optimizer.

    Attributes:
        value: The producer's result
        timestamp: Clock reading when the result was stored
        ttl: Seconds the entry stays valid
        hit_count: Lookups served from this entry
    """

    value: Any
    timestamp: float
    ttl: float
    hit_count: int = 0

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class RequestOptimizer:
    """Deduplicate concurrent identical requests and cache recent results.

    Concurrent callers asking for a key that is already being fetched share
    the same task, so the producer runs once. Callers are shielded from each
    other: cancelling one waiting caller leaves the shared fetch running.
    Settled results are cached per key for a TTL; failures are never cached.

    Example:
        optimizer = RequestOptimizer(OptimizerSettings(request_timeout=5))

        page = await optimizer.optimize(
            "posts:page:2:size:15:filters:none",
            lambda: source.fetch_page(2, 15),
        )
    """

    def __init__(
        self,
        settings: OptimizerSettings | None = None,
        feed_name: str = "feed",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize request optimizer.

        Args:
            settings: Optimizer configuration (loaded from env if None)
            feed_name: Feed label used in logs and metrics
            clock: Time source for cache timestamps, in seconds
        """
        self.settings = settings or get_optimizer_settings()
        self.feed_name = feed_name
        self._clock = clock
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[Any]] = {}

        self._lookups = 0
        self._request_count = 0
        self._cache_hits = 0
        self._dedup_hits = 0
        self._error_count = 0
        self._timeout_count = 0
        self._successful_fetches = 0
        self._total_fetch_time = 0.0

    # ──────────────────────────────────────────────────────────────
    # Deduplication and caching
    # ──────────────────────────────────────────────────────────────

    async def optimize(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the result for ``key``, invoking ``producer`` at most once.

        Args:
            key: Request key identifying the logical request
            producer: Zero-argument coroutine factory performing the fetch
            ttl: Seconds to cache the result (settings default if None, 0 disables)

        Returns:
            The producer's result, possibly shared or cached.

        Raises:
            RequestTimeoutError: If the producer does not settle in time.
            Exception: Whatever the producer raised.
        """
        self._lookups += 1

        task = self._inflight.get(key)
        if task is not None:
            self._dedup_hits += 1
            tracking.track_cache_lookup(self.feed_name, "dedup")
            logger.debug(f"Joining in-flight request {key}", extra={"key": key})
            return await asyncio.shield(task)

        entry = self._cache.get(key)
        if entry is not None:
            if entry.is_fresh(self._clock()):
                entry.hit_count += 1
                self._cache_hits += 1
                tracking.track_cache_lookup(self.feed_name, "hit")
                logger.debug(f"Cache hit for {key}", extra={"key": key, "hits": entry.hit_count})
                return entry.value
            del self._cache[key]

        tracking.track_cache_lookup(self.feed_name, "miss")
        effective_ttl = self.settings.cache_ttl if ttl is None else ttl
        task = asyncio.create_task(self._run(key, producer, effective_ttl))
        self._inflight[key] = task
        tracking.set_inflight_requests(self.feed_name, len(self._inflight))
        return await asyncio.shield(task)

    async def _run(self, key: str, producer: Callable[[], Awaitable[T]], ttl: float) -> T:
        self._request_count += 1
        started = time.perf_counter()
        try:
            async with asyncio.timeout(self.settings.request_timeout):
                value = await producer()
        except FeedError:
            self._error_count += 1
            tracking.track_request(self.feed_name, "error")
            raise
        except TimeoutError as e:
            self._timeout_count += 1
            self._error_count += 1
            tracking.track_request(self.feed_name, "timeout")
            logger.warning(
                f"Request {key} timed out after {self.settings.request_timeout}s",
                extra={"key": key, "timeout": self.settings.request_timeout},
            )
            msg = f"Request {key} did not complete within {self.settings.request_timeout}s"
            raise RequestTimeoutError(msg, timeout=self.settings.request_timeout) from e
        except Exception:
            self._error_count += 1
            tracking.track_request(self.feed_name, "error")
            raise
        else:
            duration = time.perf_counter() - started
            self._successful_fetches += 1
            self._total_fetch_time += duration
            tracking.track_request(self.feed_name, "success", duration)
            if ttl > 0:
                self._store(key, value, ttl)
            return value
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
            tracking.set_inflight_requests(self.feed_name, len(self._inflight))

    def _store(self, key: str, value: Any, ttl: float) -> None:
        self._cache[key] = CacheEntry(value=value, timestamp=self._clock(), ttl=ttl)
        self._cache.move_to_end(key)
        while len(self._cache) > self.settings.cache_size:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Evicted cached result {evicted}", extra={"key": evicted})

    def cleanup_expired(self) -> int:
        """Drop stale cache entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.info(
                f"Removed {len(expired)} expired cache entries",
                extra={"feed": self.feed_name, "removed": len(expired)},
            )
        return len(expired)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one cached result, or all of them when ``key`` is None."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

    def is_cached(self, key: str) -> bool:
        entry = self._cache.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    # ──────────────────────────────────────────────────────────────
    # Heuristics
    # ──────────────────────────────────────────────────────────────

    def optimize_batch_size(
        self,
        loaded_count: int,
        total_available: int,
        condition: NetworkCondition | str = NetworkCondition.NORMAL,
    ) -> int:
        """Choose how many items to fetch next.

        Args:
            loaded_count: Items already loaded
            total_available: Items the server reports in total
            condition: Connection quality hint ('slow', 'normal' or 'fast')

        Returns:
            A batch size in ``[1, total_available - loaded_count]``, or 0 when
            nothing remains.
        """
        remaining = total_available - loaded_count
        if remaining <= 0:
            return 0

        base = self.settings.batch_size
        match NetworkCondition(condition):
            case NetworkCondition.FAST:
                size = min(self.settings.max_batch_size, math.ceil(base * 1.5))
            case NetworkCondition.SLOW:
                size = max(self.settings.min_batch_size, math.floor(base * 0.7))
            case _:
                size = base

        return max(1, min(size, remaining))

    def should_prefetch(
        self,
        current_index: int,
        total_loaded: int,
        scroll_velocity: float = 0.0,
        time_on_page: float = 0.0,
    ) -> bool:
        """Decide whether the next page should be fetched ahead of the user.

        Args:
            current_index: Index of the item currently in view
            total_loaded: Number of loaded items
            scroll_velocity: Scroll speed in pixels per second
            time_on_page: Seconds the user has spent on the feed

        Returns:
            False when ``current_index`` is at or past the last item;
            otherwise True if the user is near the end, scrolling fast, or
            has been on the page for a long time.
        """
        if total_loaded <= 0 or current_index >= total_loaded - 1:
            return False

        remaining = total_loaded - current_index - 1
        return (
            remaining <= self.settings.near_end_threshold
            or scroll_velocity > self.settings.fast_scroll_threshold
            or time_on_page > self.settings.long_session_threshold
        )

    # ──────────────────────────────────────────────────────────────
    # Metrics and lifecycle
    # ──────────────────────────────────────────────────────────────

    def get_metrics(self) -> PerformanceMetrics:
        """Return request, cache and timing statistics."""
        hit_rate = self._cache_hits / self._lookups if self._lookups else 0.0
        average_ms = (
            self._total_fetch_time / self._successful_fetches * 1000
            if self._successful_fetches
            else 0.0
        )
        return PerformanceMetrics(
            request_count=self._request_count,
            lookups=self._lookups,
            cache_hits=self._cache_hits,
            dedup_hits=self._dedup_hits,
            error_count=self._error_count,
            timeout_count=self._timeout_count,
            cache_size=len(self._cache),
            cache_hit_rate=hit_rate,
            average_fetch_time_ms=average_ms,
            extra={"inflight": len(self._inflight)},
        )

    async def close(self) -> None:
        """Cancel in-flight requests and drop cached results."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        self._cache.clear()
        tracking.set_inflight_requests(self.feed_name, 0)
