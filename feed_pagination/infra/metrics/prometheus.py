"""Prometheus registry and shared bucket definitions."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

# Package registry so embedding applications decide what to expose
REGISTRY = CollectorRegistry()

# Covers page fetch times from 10ms to 30s
FETCH_LATENCY_BUCKETS = (
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)

# Items added per load-more cycle
BATCH_SIZE_BUCKETS = (0, 1, 5, 10, 15, 25, 50, 100)
