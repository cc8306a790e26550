"""Pagination store and controller settings.

These settings control page size, the memory ceiling of the item store and
how far client-mode auto-fetch may reach into the server in one trigger.

Environment variables use FEED_PAGINATION_ prefix.
Example: FEED_PAGINATION_ITEMS_PER_PAGE=20, FEED_PAGINATION_MAX_MEMORY_ITEMS=1000
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaginationSettings(BaseSettings):
    """Pagination configuration settings.

    Attributes:
        feed_name: Prefix used for request keys, log context and metric labels.
        items_per_page: Number of items revealed per load-more step.
        max_memory_items: Ceiling on loaded items before eviction runs.
        cleanup_threshold: Fraction of the ceiling kept after eviction.
        auto_fetch_max_items: Upper bound of raw items pulled by one auto-fetch.
        discard_stale_results: Drop results that settle after the filter changed.

    Example:
        settings = PaginationSettings(items_per_page=20)
        store = PaginationStore(items_per_page=settings.items_per_page)
    """

    feed_name: str = Field(
        default="feed",
        min_length=1,
        description="Feed identifier used in request keys and metric labels",
    )
    items_per_page: int = Field(
        default=15,
        ge=1,
        le=1000,
        description="Items revealed per load-more step",
    )
    max_memory_items: int = Field(
        default=500,
        ge=1,
        le=100_000,
        description="Maximum items held in memory before eviction",
    )
    cleanup_threshold: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Fraction of max_memory_items kept after eviction",
    )
    auto_fetch_max_items: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Maximum raw items fetched by a single client-mode auto-fetch",
    )
    discard_stale_results: bool = Field(
        default=False,
        description="Drop fetch results that settle after the active filter changed",
    )

    model_config = SettingsConfigDict(
        env_prefix="FEED_PAGINATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
