"""Retry helpers for page fetches."""

from __future__ import annotations

from feed_pagination.utils.retry.decorator import retry
from feed_pagination.utils.retry.exceptions import RetryExhaustedError, RetryStatistics
from feed_pagination.utils.retry.policy import RetryPolicy, is_retryable

__all__ = ["RetryExhaustedError", "RetryPolicy", "RetryStatistics", "is_retryable", "retry"]
