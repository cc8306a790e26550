"""Client-side feed pagination state.

The package holds the state owned by a single feed view:

- PaginationStore: single writer of PaginationState, with subscribe/notify
- MemoryGovernor: bounds the loaded item set without touching the visible window
- LoadMoreStateMachine: validates the load-more cycle transitions
- validation helpers: invariant checks used by the store's self-repair

Fetching and orchestration live in feed_pagination.features.feed.
"""

from feed_pagination.core.pagination.memory import MemoryGovernor, MemoryStatistics
from feed_pagination.core.pagination.models import (
    ItemIndex,
    LoadMoreResult,
    LoadMoreStrategy,
    Metadata,
    PageResult,
    PaginationMode,
    PaginationState,
    PerformanceMetrics,
    filter_key,
    get_item_id,
    has_filters,
)
from feed_pagination.core.pagination.protocols import ItemMatcher, PageSource, StateListener
from feed_pagination.core.pagination.state_machine import (
    VALID_TRANSITIONS,
    LoadMoreState,
    LoadMoreStateMachine,
    TransitionRecord,
)
from feed_pagination.core.pagination.store import PaginationStore
from feed_pagination.core.pagination.validation import assert_consistent, find_violations

__all__ = [
    "ItemIndex",
    "ItemMatcher",
    "LoadMoreResult",
    "LoadMoreState",
    "LoadMoreStateMachine",
    "LoadMoreStrategy",
    "MemoryGovernor",
    "MemoryStatistics",
    "Metadata",
    "PageResult",
    "PageSource",
    "PaginationMode",
    "PaginationState",
    "PaginationStore",
    "PerformanceMetrics",
    "StateListener",
    "TransitionRecord",
    "VALID_TRANSITIONS",
    "assert_consistent",
    "filter_key",
    "find_violations",
    "get_item_id",
    "has_filters",
]
