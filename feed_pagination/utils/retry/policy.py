"""Retry policy: which failures are retried and how long to wait between attempts."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import random
from typing import TYPE_CHECKING

from feed_pagination.core.exceptions import FeedError

if TYPE_CHECKING:
    from feed_pagination.core.settings import HttpSourceSettings


def is_retryable(exception: BaseException) -> bool:
    """Default retry predicate: retry feed errors flagged as retryable."""
    return isinstance(exception, FeedError) and exception.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule plus the predicate selecting retryable failures.

    The wait before retry ``n`` (0-based) is
    ``min(initial_delay * exponential_base ** n, max_delay)``, scaled by a
    random factor from ``jitter_range`` when ``jitter`` is on.

    Example:
        policy = RetryPolicy(max_attempts=4, initial_delay=0.5)
        policy.delay_for(2)  # ~2.0s before jitter
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: tuple[float, float] = (0.5, 1.5)
    retry_if: Callable[[BaseException], bool] = is_retryable

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.initial_delay < 0 or self.max_delay < 0:
            msg = "Retry delays must be non-negative"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: HttpSourceSettings) -> RetryPolicy:
        """Build the policy configured for an HTTP page source."""
        return cls(
            max_attempts=settings.max_retries,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
        )

    def should_retry(self, exception: BaseException, attempt: int) -> bool:
        """Whether ``exception`` raised by attempt ``attempt`` (1-based) gets another try."""
        return attempt < self.max_attempts and self.retry_if(exception)

    def delay_for(self, retry_index: int) -> float:
        delay = min(self.initial_delay * self.exponential_base**retry_index, self.max_delay)
        if self.jitter:
            low, high = self.jitter_range
            delay *= random.uniform(low, high)
        return delay
