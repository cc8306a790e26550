"""Pydantic Settings v2 configuration for the feed pagination engine.

Import settings via cached loaders:
    from feed_pagination.core.settings import get_pagination_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import (
    clear_settings_cache,
    get_http_source_settings,
    get_logging_settings,
    get_optimizer_settings,
    get_pagination_settings,
)
from .logs import LoggingSettings
from .optimizer import OptimizerSettings
from .pagination import PaginationSettings
from .source import HttpSourceSettings

__all__ = [
    "HttpSourceSettings",
    "LoggingSettings",
    "OptimizerSettings",
    "PaginationSettings",
    "clear_settings_cache",
    "get_http_source_settings",
    "get_logging_settings",
    "get_optimizer_settings",
    "get_pagination_settings",
]
