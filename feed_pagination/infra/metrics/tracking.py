"""Helper functions for tracking feed metrics."""

from __future__ import annotations

import logging

from feed_pagination.infra.metrics import business

logger = logging.getLogger(__name__)


# ============================================================================
# Request Tracking
# ============================================================================


def track_request(feed: str, outcome: str, duration: float | None = None) -> None:
    """Track a producer invocation.

    Args:
        feed: Feed name
        outcome: 'success', 'error' or 'timeout'
        duration: Fetch duration in seconds, recorded for successful fetches

    Example:
            track_request("posts", "success", 0.21)
    """
    business.feed_requests_total.labels(feed=feed, outcome=outcome).inc()
    if duration is not None and outcome == "success":
        business.feed_fetch_duration_seconds.labels(feed=feed).observe(duration)


def track_cache_lookup(feed: str, result: str) -> None:
    """Track a request optimizer lookup.

    Args:
        feed: Feed name
        result: 'hit', 'miss' or 'dedup'
    """
    business.feed_cache_lookups_total.labels(feed=feed, result=result).inc()


def set_inflight_requests(feed: str, count: int) -> None:
    """Record how many requests are currently in flight."""
    business.feed_inflight_requests.labels(feed=feed).set(count)


# ============================================================================
# Load-More Tracking
# ============================================================================


def track_load_more(feed: str, strategy: str, outcome: str, added: int = 0) -> None:
    """Track a load-more trigger.

    Args:
        feed: Feed name
        strategy: Strategy chosen for the trigger
        outcome: 'success', 'error', 'skipped' or 'stale'
        added: New unique items merged by the cycle

    Example:
            track_load_more("posts", "server_fetch", "success", added=15)
    """
    business.feed_load_more_total.labels(feed=feed, strategy=strategy, outcome=outcome).inc()
    if outcome in ("success", "stale"):
        business.feed_items_added.labels(feed=feed).observe(added)

    logger.debug(
        f"Tracked load-more: {strategy} -> {outcome}",
        extra={"feed": feed, "strategy": strategy, "outcome": outcome, "added": added},
    )


# ============================================================================
# Store Tracking
# ============================================================================


def track_items_evicted(feed: str, count: int) -> None:
    """Track items dropped by the memory governor."""
    business.feed_items_evicted_total.labels(feed=feed).inc(count)


def track_state_repair(feed: str, violation: str) -> None:
    """Track an invariant repair.

    Args:
        feed: Feed name
        violation: Short violation identifier (e.g. 'duplicate_ids')
    """
    business.feed_state_repairs_total.labels(feed=feed, violation=violation).inc()


# ============================================================================
# Retry Tracking
# ============================================================================


def track_retry_attempt(operation: str, attempt_number: int) -> None:
    """Track a retry attempt.

    Args:
        operation: Name of the operation being retried
        attempt_number: Current attempt number (1-indexed)

    Example:
            track_retry_attempt("fetch_page", 2)
    """
    business.retry_attempts_total.labels(
        operation=operation,
        attempt_number=str(attempt_number),
    ).inc()


def track_retry_exhausted(operation: str) -> None:
    """Track when all retry attempts are exhausted."""
    business.retry_exhausted_total.labels(operation=operation).inc()


def track_retry_success(operation: str, attempts_needed: int) -> None:
    """Track successful operation after retries."""
    business.retry_success_after_failure_total.labels(
        operation=operation,
        attempts_needed=str(attempts_needed),
    ).inc()
