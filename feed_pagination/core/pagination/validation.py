"""Consistency checks for pagination state snapshots."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from feed_pagination.core.exceptions import StateValidationError
from feed_pagination.core.pagination.models import PaginationMode, PaginationState, get_item_id

DUPLICATE_IDS = "duplicate_ids"
MODE_MISMATCH = "mode_mismatch"
DISPLAY_MISMATCH = "display_mismatch"
TOTAL_PAGES = "total_pages"
PAGE_OUT_OF_RANGE = "page_out_of_range"
WINDOW_LENGTH = "window_length"


def expected_total_pages(item_count: int, items_per_page: int) -> int:
    """Return ``ceil(item_count / items_per_page)``; 0 for an empty set."""
    return math.ceil(item_count / items_per_page) if item_count else 0


def expected_page_length(item_count: int, current_page: int, items_per_page: int) -> int:
    """Return the size of page ``current_page`` over ``item_count`` items."""
    if item_count <= 0:
        return 0
    return max(0, min(items_per_page, item_count - (current_page - 1) * items_per_page))


def _ids(items: Iterable[Any]) -> list[str]:
    return [get_item_id(item) for item in items]


def find_violations(state: PaginationState) -> list[str]:
    """Return the names of every invariant ``state`` breaks.

    An empty list means the snapshot is consistent.
    """
    violations: list[str] = []
    ipp = state.items_per_page

    all_ids = _ids(state.all_items)
    if len(all_ids) != len(set(all_ids)):
        violations.append(DUPLICATE_IDS)

    if (state.mode == PaginationMode.CLIENT) != state.is_filter_active:
        violations.append(MODE_MISMATCH)

    if not state.is_filter_active and _ids(state.display_items) != all_ids:
        violations.append(DISPLAY_MISMATCH)

    display_count = len(state.display_items)
    if state.total_pages != expected_total_pages(display_count, ipp):
        violations.append(TOTAL_PAGES)

    if state.current_page < 1 or state.current_page > max(1, state.total_pages):
        violations.append(PAGE_OUT_OF_RANGE)

    expected_window = min(display_count, state.current_page * ipp)
    if len(state.page_items) != expected_page_length(
        display_count, state.current_page, ipp
    ) or len(state.paginated_items) != expected_window:
        violations.append(WINDOW_LENGTH)

    return violations


def assert_consistent(state: PaginationState) -> None:
    """Raise ``StateValidationError`` when ``state`` breaks an invariant."""
    violations = find_violations(state)
    if violations:
        msg = f"Pagination state is inconsistent: {', '.join(violations)}"
        raise StateValidationError(msg, violations=violations)
