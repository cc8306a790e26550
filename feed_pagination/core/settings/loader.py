"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from feed_pagination.core.settings.loader import get_pagination_settings

    settings = get_pagination_settings()  # First call: loads and validates
    settings = get_pagination_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_pagination_settings.cache_clear()

    Or construct settings directly:
    settings = PaginationSettings(items_per_page=5)
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .optimizer import OptimizerSettings
from .pagination import PaginationSettings
from .source import HttpSourceSettings


@lru_cache(maxsize=1)
def get_pagination_settings() -> PaginationSettings:
    """Get cached pagination settings.

    Returns:
        Validated and frozen PaginationSettings instance.
    """
    return PaginationSettings()


@lru_cache(maxsize=1)
def get_optimizer_settings() -> OptimizerSettings:
    """Get cached request optimizer settings.

    Returns:
        Validated and frozen OptimizerSettings instance.
    """
    return OptimizerSettings()


@lru_cache(maxsize=1)
def get_http_source_settings() -> HttpSourceSettings:
    """Get cached HTTP page source settings.

    Returns:
        Validated and frozen HttpSourceSettings instance.
    """
    return HttpSourceSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Clear every cached settings instance (used by tests)."""
    get_pagination_settings.cache_clear()
    get_optimizer_settings.cache_clear()
    get_http_source_settings.cache_clear()
    get_logging_settings.cache_clear()
