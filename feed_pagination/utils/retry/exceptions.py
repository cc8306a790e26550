"""Retry bookkeeping and the error raised when a policy gives up."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any

from feed_pagination.core.exceptions import FeedError


@dataclass
class RetryStatistics:
    """What happened across the attempts of one call."""

    attempts: int = 0
    total_delay: float = 0.0
    started: float = field(default_factory=time.monotonic)
    finished: float | None = None
    errors: list[str] = field(default_factory=list)

    def record_failure(self, exception: BaseException, delay: float = 0.0) -> None:
        self.attempts += 1
        self.total_delay += delay
        self.errors.append(type(exception).__name__)

    def finish(self) -> None:
        self.finished = time.monotonic()

    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else time.monotonic()
        return end - self.started


class RetryExhaustedError(FeedError):
    """Every attempt failed and the caller asked for a wrapped error."""

    default_title = "Retries Exhausted"

    def __init__(
        self,
        operation: str,
        last_exception: BaseException,
        statistics: RetryStatistics,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.operation = operation
        self.last_exception = last_exception
        self.statistics = statistics
        super().__init__(
            detail=f"{operation} failed after {statistics.attempts} attempts: {last_exception}",
            type="retry-exhausted",
            retryable=False,
            extra=extra,
        )
