"""Request caching and deduplication."""

from feed_pagination.infra.cache.optimizer import CacheEntry, NetworkCondition, RequestOptimizer

__all__ = ["CacheEntry", "NetworkCondition", "RequestOptimizer"]
