"""Feed metrics: requests, cache efficiency, load-more cycles and memory."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from feed_pagination.infra.metrics.prometheus import (
    BATCH_SIZE_BUCKETS,
    FETCH_LATENCY_BUCKETS,
    REGISTRY,
)

# ============================================================================
# Request Optimizer Metrics
# ============================================================================

feed_requests_total = Counter(
    "feed_requests_total",
    "Total page requests that reached the producer",
    ["feed", "outcome"],  # outcome: success, error, timeout
    registry=REGISTRY,
)

feed_cache_lookups_total = Counter(
    "feed_cache_lookups_total",
    "Total request optimizer lookups by result",
    ["feed", "result"],  # result: hit, miss, dedup
    registry=REGISTRY,
)

feed_fetch_duration_seconds = Histogram(
    "feed_fetch_duration_seconds",
    "Duration of successful page fetches in seconds",
    ["feed"],
    buckets=FETCH_LATENCY_BUCKETS,
    registry=REGISTRY,
)

feed_inflight_requests = Gauge(
    "feed_inflight_requests",
    "Page requests currently in flight",
    ["feed"],
    registry=REGISTRY,
)

# ============================================================================
# Load-More Metrics
# ============================================================================

feed_load_more_total = Counter(
    "feed_load_more_total",
    "Total load-more triggers by strategy and outcome",
    ["feed", "strategy", "outcome"],  # outcome: success, error, skipped, stale
    registry=REGISTRY,
)

feed_items_added = Histogram(
    "feed_items_added",
    "New unique items merged per load-more cycle",
    ["feed"],
    buckets=BATCH_SIZE_BUCKETS,
    registry=REGISTRY,
)

# ============================================================================
# Store Metrics
# ============================================================================

feed_items_evicted_total = Counter(
    "feed_items_evicted_total",
    "Total items evicted by the memory governor",
    ["feed"],
    registry=REGISTRY,
)

feed_state_repairs_total = Counter(
    "feed_state_repairs_total",
    "Total invariant repairs performed on pagination state",
    ["feed", "violation"],
    registry=REGISTRY,
)

# ============================================================================
# Retry Metrics
# ============================================================================

retry_attempts_total = Counter(
    "feed_retry_attempts_total",
    "Total number of retry attempts",
    ["operation", "attempt_number"],
    registry=REGISTRY,
)

retry_exhausted_total = Counter(
    "feed_retry_exhausted_total",
    "Total number of operations that exhausted all retries",
    ["operation"],
    registry=REGISTRY,
)

retry_success_after_failure_total = Counter(
    "feed_retry_success_after_failure_total",
    "Total number of operations that succeeded after retry",
    ["operation", "attempts_needed"],
    registry=REGISTRY,
)
