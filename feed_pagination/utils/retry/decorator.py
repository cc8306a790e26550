"""Async retry decorator driven by a RetryPolicy."""

from __future__ import annotations

import asyncio
from functools import wraps
import logging
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from feed_pagination.infra.metrics.tracking import (
    track_retry_attempt,
    track_retry_exhausted,
    track_retry_success,
)
from feed_pagination.utils.retry.exceptions import RetryExhaustedError, RetryStatistics
from feed_pagination.utils.retry.policy import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def retry(
    policy: RetryPolicy | None = None,
    *,
    operation: str | None = None,
    reraise: bool = True,
    on_retry: Callable[[BaseException, int], None] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async callable while ``policy`` accepts the failure.

    Args:
        policy: Backoff schedule and retry predicate (defaults to
            ``RetryPolicy()``, which retries retryable ``FeedError``s).
        operation: Name used in logs and metrics (defaults to the function name).
        reraise: Once attempts run out, raise the last failure unchanged.
            When False it is wrapped in ``RetryExhaustedError``.
        on_retry: Called with the failure and the attempt number before
            each backoff sleep.

    Example:
        @retry(RetryPolicy(max_attempts=4), operation="fetch_page")
        async def fetch(page: int) -> PageResult: ...
    """
    active = policy or RetryPolicy()

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        name = operation or func.__name__

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            statistics = RetryStatistics()
            attempt = 0
            while True:
                attempt += 1
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    if not active.retry_if(e):
                        logger.debug(
                            f"{name} failed with a non-retryable error: {e}",
                            extra={"operation": name, "attempt": attempt},
                        )
                        raise

                    if not active.should_retry(e, attempt):
                        statistics.record_failure(e)
                        statistics.finish()
                        track_retry_exhausted(name)
                        logger.error(
                            f"Giving up on {name} after {attempt} attempts",
                            extra={
                                "operation": name,
                                "attempts": attempt,
                                "errors": statistics.errors,
                                "total_delay": statistics.total_delay,
                                "duration": statistics.duration,
                            },
                        )
                        if reraise:
                            raise
                        raise RetryExhaustedError(name, e, statistics) from e

                    delay = active.delay_for(attempt - 1)
                    statistics.record_failure(e, delay)
                    track_retry_attempt(name, attempt + 1)
                    logger.warning(
                        f"Retrying {name} in {delay:.2f}s ({attempt}/{active.max_attempts} failed)",
                        extra={"operation": name, "attempt": attempt, "delay": delay, "error": str(e)},
                    )
                    if on_retry is not None:
                        on_retry(e, attempt)
                    await asyncio.sleep(delay)
                else:
                    if attempt > 1:
                        track_retry_success(name, attempt)
                    return result

        return wrapper

    return decorator
