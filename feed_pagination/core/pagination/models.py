"""Pagination data models.

Items are opaque to the engine: anything with an ``id`` attribute, or a
mapping with an ``"id"`` key, can be paginated. Filters are opaque too; the
engine only needs a stable key to compare them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from feed_pagination.core.exceptions import DuplicateKeyError, StateValidationError


class PaginationMode(StrEnum):
    """Where the visible page window comes from."""

    SERVER = "server"
    CLIENT = "client"


class LoadMoreStrategy(StrEnum):
    """How a load-more trigger is satisfied."""

    SERVER_FETCH = "server_fetch"
    CLIENT_PAGINATE = "client_paginate"
    AUTO_FETCH = "auto_fetch"
    NONE = "none"


def get_item_id(item: Any) -> str:
    """Return the identity of an item.

    Raises:
        StateValidationError: If the item carries no id.
    """
    if isinstance(item, Mapping):
        item_id = item.get("id")
    else:
        item_id = getattr(item, "id", None)
    if item_id is None:
        msg = f"Item has no id: {item!r}"
        raise StateValidationError(msg)
    return str(item_id)


def filter_key(filters: Any) -> str:
    """Build a comparison key for an opaque filter value.

    Mappings compare by their items regardless of insertion order; ``None``
    and empty mappings both mean "no filters".
    """
    if filters is None:
        return "none"
    if isinstance(filters, Mapping):
        if not filters:
            return "none"
        parts = (f"{key}={filters[key]!r}" for key in sorted(filters, key=str))
        return "&".join(parts)
    return repr(filters)


def has_filters(filters: Any) -> bool:
    """Return True when ``filters`` restricts anything."""
    return filter_key(filters) != "none"


class ItemIndex:
    """Set of loaded item ids.

    Example:
        index = ItemIndex()
        index.add("a")
        index.add("a")  # raises DuplicateKeyError
    """

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set()
        for item_id in ids:
            self.add(item_id)

    def add(self, item_id: str) -> None:
        if item_id in self._ids:
            raise DuplicateKeyError(item_id)
        self._ids.add(item_id)

    def discard(self, item_id: str) -> None:
        self._ids.discard(item_id)

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(slots=True)
class Metadata:
    """Server-side totals as last reported by the page source.

    Attributes:
        total_server_items: Total matching items the server reports.
        loaded_server_items: Raw items received from the server so far.
        current_batch: Number of non-empty ingests since the last reset.
        last_fetch_timestamp: Epoch seconds of the last ingest.
        server_page: Last server page ingested; 0 before the first page.
    """

    total_server_items: int = 0
    loaded_server_items: int = 0
    current_batch: int = 0
    last_fetch_timestamp: float | None = None
    server_page: int = 0

    @property
    def server_has_more(self) -> bool:
        return self.loaded_server_items < self.total_server_items


@dataclass(frozen=True, slots=True)
class PaginationState:
    """Immutable snapshot of the pagination store.

    ``paginated_items`` is the load-more window, the first
    ``current_page * items_per_page`` display items. ``page_items`` is the
    single current page inside that window. ``search_extendable`` marks a
    search whose matches can grow as more server data is fetched; a search
    without it is final, so ``has_more`` ignores the server in that case.
    """

    all_items: tuple[Any, ...] = ()
    display_items: tuple[Any, ...] = ()
    paginated_items: tuple[Any, ...] = ()
    page_items: tuple[Any, ...] = ()
    items_per_page: int = 15
    current_page: int = 1
    total_pages: int = 0
    has_more: bool = False
    mode: PaginationMode = PaginationMode.SERVER
    is_filter_active: bool = False
    search_extendable: bool = False
    active_query: str = ""
    active_filters: Any = None
    metadata: Metadata | None = None
    is_loading: bool = False
    is_loading_more: bool = False
    last_error: str | None = None
    generation: int = 0

    @property
    def server_has_more(self) -> bool:
        return self.metadata is not None and self.metadata.server_has_more


@dataclass(frozen=True, slots=True)
class PageResult:
    """One page returned by a page source."""

    items: Sequence[Any]
    total_count: int

    def __post_init__(self) -> None:
        if self.total_count < 0:
            msg = f"total_count must be non-negative, got {self.total_count}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class LoadMoreResult:
    """Outcome of a single load-more trigger.

    Attributes:
        success: False only when the cycle failed.
        strategy: Strategy chosen for the trigger.
        added: New unique items merged into the store.
        revealed: Items that became visible in the load-more window.
        has_more: ``has_more`` after the cycle settled.
        skipped: The trigger was ignored (already loading or nothing to do).
        reason: Short explanation for skipped or stale cycles.
        error: Human-readable error for failed cycles.
    """

    success: bool
    strategy: LoadMoreStrategy
    added: int = 0
    revealed: int = 0
    has_more: bool = False
    skipped: bool = False
    reason: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    """Request optimizer statistics."""

    request_count: int = 0
    lookups: int = 0
    cache_hits: int = 0
    dedup_hits: int = 0
    error_count: int = 0
    timeout_count: int = 0
    cache_size: int = 0
    cache_hit_rate: float = 0.0
    average_fetch_time_ms: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)
