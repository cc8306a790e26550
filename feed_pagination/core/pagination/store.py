"""Pagination state store.

The store is the only writer of :class:`PaginationState`. Every public
mutation rebuilds an immutable snapshot and fans it out to subscribers
synchronously, in subscription order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields, replace
import logging
import time
from typing import Any

from feed_pagination.core.exceptions import DuplicateKeyError, StateValidationError
from feed_pagination.core.pagination.memory import MemoryGovernor
from feed_pagination.core.pagination.models import (
    ItemIndex,
    Metadata,
    PaginationMode,
    PaginationState,
    filter_key,
    get_item_id,
)
from feed_pagination.core.pagination.protocols import StateListener
from feed_pagination.core.pagination.validation import (
    DISPLAY_MISMATCH,
    DUPLICATE_IDS,
    MODE_MISMATCH,
    PAGE_OUT_OF_RANGE,
    assert_consistent,
    expected_total_pages,
    find_violations,
)
from feed_pagination.core.settings import PaginationSettings, get_pagination_settings
from feed_pagination.infra.metrics.tracking import track_state_repair

logger = logging.getLogger(__name__)

_METADATA_FIELDS = frozenset(f.name for f in fields(Metadata))


class PaginationStore:
    """Single source of truth for a feed view.

    Example:
        store = PaginationStore(PaginationSettings(items_per_page=15))
        unsubscribe = store.subscribe(render)

        store.update_items(first_page, reset_pagination=True,
                           update_metadata={"total_server_items": 120})
        store.update_search(results, "jazz", {"genre": "jazz"})
        store.advance_page()
        store.clear_search()
        unsubscribe()
    """

    def __init__(
        self,
        settings: PaginationSettings | None = None,
        governor: MemoryGovernor | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty store.

        Args:
            settings: Pagination configuration (loaded from env if None).
            governor: Memory governor applied after each merge.
            clock: Epoch-seconds clock used for fetch timestamps.
        """
        self.settings = settings or get_pagination_settings()
        self.items_per_page = self.settings.items_per_page
        self.feed_name = self.settings.feed_name
        self.governor = governor or MemoryGovernor(
            max_items=self.settings.max_memory_items,
            cleanup_threshold=self.settings.cleanup_threshold,
            feed_name=self.feed_name,
        )
        self._clock = clock
        self._listeners: list[StateListener] = []
        self._generation = 0
        self._reset_fields()
        self._state = self._build_state()

    def _reset_fields(self) -> None:
        self._all: list[Any] = []
        self._index = ItemIndex()
        self._display: list[Any] = []
        self._mode = PaginationMode.SERVER
        self._filter_active = False
        self._extendable = False
        self._query = ""
        self._filters: Any = None
        self._current_page = 1
        self._metadata: Metadata | None = None
        self._is_loading = False
        self._is_loading_more = False
        self._last_error: str | None = None

    # ──────────────────────────────────────────────────────────────
    # Reads and subscriptions
    # ──────────────────────────────────────────────────────────────

    def get_state(self) -> PaginationState:
        """Return the current immutable snapshot."""
        return self._state

    @property
    def generation(self) -> int:
        """Counter bumped whenever the active query or filters change."""
        return self._generation

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ──────────────────────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────────────────────

    def update_items(
        self,
        new_items: Iterable[Any],
        reset_pagination: bool = False,
        update_metadata: Mapping[str, Any] | None = None,
    ) -> int:
        """Merge fetched items into the store.

        Args:
            new_items: Items in arrival order.
            reset_pagination: Replace the loaded set and return to page 1.
            update_metadata: Metadata fields to set explicitly. Unless given,
                ``loaded_server_items`` counts the raw items received.

        Returns:
            Number of new unique items added.

        Raises:
            StateValidationError: If an item has no id or a metadata key is unknown.
        """
        incoming = list(new_items)
        overrides = dict(update_metadata or {})
        unknown = set(overrides) - _METADATA_FIELDS
        if unknown:
            msg = f"Unknown metadata fields: {', '.join(sorted(unknown))}"
            raise StateValidationError(msg)
        incoming_ids = [get_item_id(item) for item in incoming]

        if reset_pagination:
            protected: set[str] = set()
            self._all = []
            self._index.clear()
            self._current_page = 1
        else:
            protected = {get_item_id(item) for item in self._state.paginated_items}

        added = 0
        skipped = 0
        for item, item_id in zip(incoming, incoming_ids, strict=True):
            try:
                self._index.add(item_id)
            except DuplicateKeyError:
                skipped += 1
                continue
            self._all.append(item)
            added += 1

        if skipped:
            logger.debug(
                f"Skipped {skipped} already loaded items",
                extra={"feed": self.feed_name, "skipped": skipped, "added": added},
            )

        self._record_fetch(len(incoming), reset_pagination, overrides)

        kept = self.governor.optimize(self._all, protected_ids=protected)
        if len(kept) != len(self._all):
            self._all = kept
            self._rebuild_index()

        if not self._filter_active:
            self._display = list(self._all)

        self._commit()
        return added

    def _record_fetch(self, raw_count: int, reset: bool, overrides: dict[str, Any]) -> None:
        if self._metadata is None:
            self._metadata = Metadata()
        metadata = self._metadata
        if reset:
            metadata.loaded_server_items = raw_count
            metadata.current_batch = 0
            metadata.server_page = 0
        else:
            metadata.loaded_server_items += raw_count
        if raw_count:
            metadata.current_batch += 1
        metadata.last_fetch_timestamp = self._clock()
        for name, value in overrides.items():
            setattr(metadata, name, value)

    def update_search(
        self,
        results: Iterable[Any],
        query: str,
        filters: Any = None,
        reset_page: bool = True,
        extendable: bool = False,
    ) -> None:
        """Show ``results`` as the filtered set and switch to client mode.

        Args:
            results: Matching items, in display order.
            query: Active search text.
            filters: Opaque filter descriptor.
            reset_page: Return to page 1. When False the current page is kept
                (clamped to the new page count).
            extendable: The matches grow when more server pages are merged.
                Otherwise ``results`` are final and ``has_more`` only looks
                at the filtered pages.
        """
        changed = (
            not self._filter_active
            or query != self._query
            or filter_key(filters) != filter_key(self._filters)
        )
        if changed:
            self._generation += 1

        self._display = self._dedupe(results)
        self._filter_active = True
        self._extendable = extendable
        self._mode = PaginationMode.CLIENT
        self._query = query
        self._filters = filters
        if reset_page:
            self._current_page = 1
        else:
            self._clamp_page()
        self._commit()

    def clear_search(self) -> None:
        """Leave client mode and show every loaded item again."""
        if self._filter_active:
            self._generation += 1
        self._filter_active = False
        self._extendable = False
        self._mode = PaginationMode.SERVER
        self._query = ""
        self._filters = None
        self._display = list(self._all)
        self._current_page = 1
        self._commit()

    def advance_page(self) -> bool:
        """Grow the load-more window by one page.

        Returns:
            True if the window grew; False when every display item is
            already visible (fetch more data first).
        """
        if self._current_page >= expected_total_pages(len(self._display), self.items_per_page):
            return False
        self._current_page += 1
        self._commit()
        return True

    def set_loading_state(self, is_loading: bool, is_loading_more: bool | None = None) -> None:
        """Set the loading flags; ``is_loading_more`` is left alone when None."""
        self._is_loading = is_loading
        if is_loading_more is not None:
            self._is_loading_more = is_loading_more
        self._commit()

    def set_error(self, message: str | None) -> None:
        """Record the error shown to the user, or clear it with None."""
        self._last_error = message
        self._commit()

    def reset(self) -> None:
        """Return to an empty session, keeping subscribers."""
        self._generation += 1
        self._reset_fields()
        self._commit()

    def close(self) -> None:
        """Drop subscribers; the store is not used after this."""
        self._listeners.clear()

    # ──────────────────────────────────────────────────────────────
    # Consistency
    # ──────────────────────────────────────────────────────────────

    def validate_and_recover(self) -> bool:
        """Check every invariant and repair the state in place.

        Returns:
            Whether the state was valid before any repair.
        """
        self._state = self._build_state()
        violations = find_violations(self._state)
        if not violations:
            return True

        logger.warning(
            f"Repairing inconsistent pagination state for {self.feed_name}",
            extra={"feed": self.feed_name, "violations": violations},
        )
        for violation in violations:
            track_state_repair(self.feed_name, violation)

        if DUPLICATE_IDS in violations:
            self._all = self._dedupe(self._all)
            self._rebuild_index()
        if MODE_MISMATCH in violations:
            self._mode = PaginationMode.CLIENT if self._filter_active else PaginationMode.SERVER
        if DISPLAY_MISMATCH in violations or (DUPLICATE_IDS in violations and not self._filter_active):
            self._display = list(self._all)
        if self._filter_active:
            self._display = self._dedupe(self._display)
        if PAGE_OUT_OF_RANGE in violations:
            self._clamp_page()

        # Derived fields (total pages, windows) are rebuilt by the commit
        self._commit()
        return False

    def assert_consistent(self) -> None:
        """Raise ``StateValidationError`` if the current snapshot is inconsistent."""
        assert_consistent(self._state)

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    @staticmethod
    def _dedupe(items: Iterable[Any]) -> list[Any]:
        seen: set[str] = set()
        unique: list[Any] = []
        for item in items:
            item_id = get_item_id(item)
            if item_id not in seen:
                seen.add(item_id)
                unique.append(item)
        return unique

    def _rebuild_index(self) -> None:
        self._index = ItemIndex(get_item_id(item) for item in self._all)

    def _clamp_page(self) -> None:
        total_pages = expected_total_pages(len(self._display), self.items_per_page)
        self._current_page = min(max(1, self._current_page), max(1, total_pages))

    def _build_state(self) -> PaginationState:
        ipp = self.items_per_page
        display = tuple(self._display)
        total_pages = expected_total_pages(len(display), ipp)
        page = self._current_page
        metadata = replace(self._metadata) if self._metadata is not None else None
        server_has_more = metadata is not None and metadata.server_has_more
        if self._filter_active and not self._extendable:
            server_has_more = False
        return PaginationState(
            all_items=tuple(self._all),
            display_items=display,
            paginated_items=display[: max(0, page * ipp)],
            page_items=display[max(0, (page - 1) * ipp) : max(0, page * ipp)],
            items_per_page=ipp,
            current_page=page,
            total_pages=total_pages,
            has_more=page < total_pages or server_has_more,
            mode=self._mode,
            is_filter_active=self._filter_active,
            search_extendable=self._filter_active and self._extendable,
            active_query=self._query,
            active_filters=self._filters,
            metadata=metadata,
            is_loading=self._is_loading,
            is_loading_more=self._is_loading_more,
            last_error=self._last_error,
            generation=self._generation,
        )

    def _commit(self) -> None:
        self._state = self._build_state()
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception(
                    f"State listener failed for {self.feed_name}",
                    extra={"feed": self.feed_name},
                )
