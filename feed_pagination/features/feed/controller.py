"""Feed controller orchestrating load-more cycles.

The controller wires a page source to the request optimizer, the
pagination store and the load-more state machine, and exposes the
entry points a UI layer calls: initial load, load-more triggers,
search/filter application and prefetch hints.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING, Any, Self

from feed_pagination.core.exceptions import FeedError
from feed_pagination.core.pagination import (
    LoadMoreResult,
    LoadMoreState,
    LoadMoreStateMachine,
    LoadMoreStrategy,
    PageResult,
    PaginationState,
    PaginationStore,
    PerformanceMetrics,
    filter_key,
    has_filters,
)
from feed_pagination.core.settings import PaginationSettings, get_pagination_settings
from feed_pagination.infra.cache.optimizer import NetworkCondition, RequestOptimizer
from feed_pagination.infra.logging.context import log_context
from feed_pagination.infra.metrics.tracking import track_load_more

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from feed_pagination.core.pagination import ItemMatcher, PageSource, StateListener

logger = logging.getLogger(__name__)


class FeedController:
    """Drive one feed view's pagination.

    Example:
        ```python
        async with FeedController(source, matcher=matches_query) as feed:
            feed.subscribe(render)
            await feed.load_initial()
            await feed.trigger_load_more()
            feed.apply_search("jazz", {"genre": "jazz"})
            await feed.trigger_load_more()  # auto-fetches if matches run out
            feed.clear_filters()
        ```
    """

    def __init__(
        self,
        source: PageSource,
        settings: PaginationSettings | None = None,
        optimizer: RequestOptimizer | None = None,
        store: PaginationStore | None = None,
        machine: LoadMoreStateMachine | None = None,
        matcher: ItemMatcher | None = None,
        base_filters: Any = None,
        network_condition: NetworkCondition | str = NetworkCondition.NORMAL,
    ) -> None:
        """Initialize feed controller.

        Args:
            source: Page source the feed is fetched from.
            settings: Pagination configuration (loaded from env if None).
            optimizer: Request optimizer shared by every fetch of this feed.
            store: Pagination store owned by this feed view.
            machine: Load-more state machine.
            matcher: Client-side predicate ``(item, query, filters) -> bool``
                used by searches and client-mode auto-fetch.
            base_filters: Server-side filters sent with every page request.
            network_condition: Connection quality hint for batch sizing.
        """
        self.settings = settings or get_pagination_settings()
        self.feed_name = self.settings.feed_name
        self.source = source
        self.store = store or PaginationStore(self.settings)
        self.optimizer = optimizer or RequestOptimizer(feed_name=self.feed_name)
        self.machine = machine or LoadMoreStateMachine(name=self.feed_name)
        self.matcher = matcher
        self.base_filters = base_filters
        self.network_condition = NetworkCondition(network_condition)
        self.page_size = self.store.items_per_page

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    def get_state(self) -> PaginationState:
        return self.store.get_state()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def get_performance_metrics(self) -> PerformanceMetrics:
        return self.optimizer.get_metrics()

    def set_network_condition(self, condition: NetworkCondition | str) -> None:
        self.network_condition = NetworkCondition(condition)

    def determine_strategy(self) -> LoadMoreStrategy:
        """Decide how the next load-more trigger would be satisfied."""
        state = self.store.get_state()
        if state.current_page < state.total_pages:
            return LoadMoreStrategy.CLIENT_PAGINATE
        if not state.is_filter_active:
            if state.metadata is None or state.server_has_more:
                return LoadMoreStrategy.SERVER_FETCH
            return LoadMoreStrategy.NONE
        if state.server_has_more and self.matcher is not None and state.search_extendable:
            return LoadMoreStrategy.AUTO_FETCH
        return LoadMoreStrategy.NONE

    # ──────────────────────────────────────────────────────────────
    # Loading
    # ──────────────────────────────────────────────────────────────

    async def load_initial(self, refresh: bool = False) -> LoadMoreResult:
        """Fetch the first page and replace whatever was loaded.

        Args:
            refresh: Drop cached pages first so the source is queried again.
        """
        with log_context(feed=self.feed_name):
            return await self._load_initial(refresh)

    async def _load_initial(self, refresh: bool) -> LoadMoreResult:
        strategy = LoadMoreStrategy.SERVER_FETCH
        if self.machine.state == LoadMoreState.ERROR:
            self.acknowledge_error()
        if self.machine.is_busy:
            return self._skipped(strategy, "load already in progress")
        if self.machine.error_limit_reached:
            return self._skipped(strategy, "too many consecutive errors")

        if refresh:
            self.optimizer.invalidate()

        self.machine.transition(LoadMoreState.LOADING_SERVER, "initial load", {"page": 1})
        self.store.set_loading_state(True, False)
        try:
            result = await self._fetch(1)
        except asyncio.CancelledError:
            self._abort()
            raise
        except Exception as exc:
            return self._fail(strategy, exc)

        self.machine.transition(LoadMoreState.SETTLING, "initial page fetched")
        try:
            added = self.store.update_items(
                result.items,
                reset_pagination=True,
                update_metadata=self._page_metadata(1, result),
            )
            if self.store.get_state().search_extendable:
                self._refilter(reset_page=True)
        except Exception as exc:
            return self._fail(strategy, exc)

        logger.info(
            f"Loaded initial page of {self.feed_name}",
            extra={"feed": self.feed_name, "added": added, "total": result.total_count},
        )
        return self._finish(strategy, added=added, revealed=len(self.store.get_state().paginated_items))

    async def trigger_load_more(self) -> LoadMoreResult:
        """Reveal or fetch the next page.

        A trigger while a cycle is running is ignored, as is a trigger with
        nothing left to load. A trigger after a failure acknowledges the
        error and proceeds as a normal trigger.
        """
        with log_context(feed=self.feed_name):
            return await self._trigger_load_more()

    async def _trigger_load_more(self) -> LoadMoreResult:
        if self.machine.state == LoadMoreState.ERROR:
            self.acknowledge_error()

        if self.machine.is_busy:
            return self._skipped(LoadMoreStrategy.NONE, "load already in progress")
        if self.machine.error_limit_reached:
            return self._skipped(LoadMoreStrategy.NONE, "too many consecutive errors")

        strategy = self.determine_strategy()
        match strategy:
            case LoadMoreStrategy.CLIENT_PAGINATE:
                return self._paginate_client()
            case LoadMoreStrategy.SERVER_FETCH:
                return await self._fetch_server()
            case LoadMoreStrategy.AUTO_FETCH:
                return await self._auto_fetch()
            case _:
                return self._skipped(strategy, "nothing more to load")

    async def retry(self) -> LoadMoreResult:
        """Retry after a failure, clearing the consecutive error limit."""
        if self.machine.error_limit_reached:
            self.machine.force_recovery()
            self.store.set_error(None)
        if self.store.get_state().metadata is None:
            return await self.load_initial()
        return await self.trigger_load_more()

    def acknowledge_error(self) -> bool:
        """Clear a failed cycle so the machine accepts triggers again.

        Returns:
            True if there was an error to acknowledge.
        """
        if self.machine.state != LoadMoreState.ERROR:
            return False
        self.machine.transition(LoadMoreState.IDLE, "error acknowledged")
        self.store.set_error(None)
        return True

    async def prefetch(
        self,
        current_index: int,
        scroll_velocity: float = 0.0,
        time_on_page: float = 0.0,
    ) -> bool:
        """Warm the optimizer cache with the next server page.

        Nothing is merged into the store; the next load-more trigger picks
        the page up from the cache.

        Args:
            current_index: Index of the item in view within the visible window.
            scroll_velocity: Scroll speed in pixels per second.
            time_on_page: Seconds the user has spent on the feed.

        Returns:
            True if a page was fetched.
        """
        state = self.store.get_state()
        if self.machine.is_busy or state.is_filter_active or not state.server_has_more:
            return False
        if not self.optimizer.should_prefetch(
            current_index, len(state.paginated_items), scroll_velocity, time_on_page
        ):
            return False

        page = self._next_server_page()
        key = self._request_key(page)
        if self.optimizer.is_cached(key) or self.optimizer.is_inflight(key):
            return False

        try:
            await self._fetch(page)
        except FeedError as exc:
            logger.info(
                f"Prefetch of page {page} failed for {self.feed_name}: {exc}",
                extra={"feed": self.feed_name, "page": page, "error_type": exc.type},
            )
            return False
        logger.debug(f"Prefetched page {page} of {self.feed_name}", extra={"feed": self.feed_name, "page": page})
        return True

    # ──────────────────────────────────────────────────────────────
    # Search and filters
    # ──────────────────────────────────────────────────────────────

    def apply_search(
        self,
        query: str,
        filters: Any = None,
        results: Sequence[Any] | None = None,
    ) -> PaginationState:
        """Switch to client mode showing the items that match.

        Args:
            query: Search text.
            filters: Opaque filter descriptor.
            results: Precomputed matches (e.g. from a search endpoint). When
                omitted, the matcher filters the loaded items.

        Returns:
            The new state snapshot.

        Raises:
            ValueError: If no results are given and no matcher is configured.
        """
        if results is None and not query and not has_filters(filters):
            return self.clear_filters()

        if results is not None:
            self.store.update_search(results, query, filters)
        else:
            if self.matcher is None:
                msg = "apply_search needs either results or a matcher"
                raise ValueError(msg)
            matches = [
                item for item in self.store.get_state().all_items if self.matcher(item, query, filters)
            ]
            self.store.update_search(matches, query, filters, extendable=True)

        logger.debug(
            f"Applied search on {self.feed_name}",
            extra={
                "feed": self.feed_name,
                "query": query,
                "filters": filter_key(filters),
                "matches": len(self.store.get_state().display_items),
            },
        )
        return self.store.get_state()

    def clear_filters(self) -> PaginationState:
        """Return to server mode showing every loaded item."""
        self.store.clear_search()
        return self.store.get_state()

    # ──────────────────────────────────────────────────────────────
    # Cycle implementations
    # ──────────────────────────────────────────────────────────────

    def _paginate_client(self) -> LoadMoreResult:
        strategy = LoadMoreStrategy.CLIENT_PAGINATE
        before = len(self.store.get_state().paginated_items)
        self.machine.transition(LoadMoreState.LOADING_CLIENT, "reveal loaded items")
        self.machine.transition(LoadMoreState.SETTLING, "slice ready")
        self.store.advance_page()
        revealed = len(self.store.get_state().paginated_items) - before
        return self._finish(strategy, revealed=revealed)

    async def _fetch_server(self) -> LoadMoreResult:
        strategy = LoadMoreStrategy.SERVER_FETCH
        page = self._next_server_page()
        before = len(self.store.get_state().paginated_items)
        generation = self.store.generation

        self.machine.transition(LoadMoreState.LOADING_SERVER, "fetch next page", {"page": page})
        self.store.set_loading_state(self.store.get_state().is_loading, True)
        try:
            result = await self._fetch(page)
        except asyncio.CancelledError:
            self._abort()
            raise
        except Exception as exc:
            return self._fail(strategy, exc)

        self.machine.transition(LoadMoreState.SETTLING, "page fetched", {"page": page})
        stale = self.store.generation != generation
        if stale and self.settings.discard_stale_results:
            return self._discard(strategy, page)

        try:
            added = self.store.update_items(result.items, update_metadata=self._page_metadata(page, result))
            if stale:
                if self.store.get_state().search_extendable:
                    self._refilter(reset_page=False)
            else:
                self.store.advance_page()
        except Exception as exc:
            return self._fail(strategy, exc)

        revealed = len(self.store.get_state().paginated_items) - before
        return self._finish(strategy, added=added, revealed=revealed, stale=stale)

    async def _auto_fetch(self) -> LoadMoreResult:
        strategy = LoadMoreStrategy.AUTO_FETCH
        state = self.store.get_state()
        metadata = state.metadata
        if metadata is None or self.matcher is None:
            return self._skipped(strategy, "auto-fetch needs loaded metadata and a matcher")

        budget = min(
            self.optimizer.optimize_batch_size(
                metadata.loaded_server_items,
                metadata.total_server_items,
                self.network_condition,
            ),
            self.settings.auto_fetch_max_items,
        )
        rounds = max(1, math.ceil(budget / self.page_size))
        needed = state.current_page * self.page_size + 1
        query, filters = state.active_query, state.active_filters
        start_page = self._next_server_page()
        before = len(state.paginated_items)
        generation = self.store.generation

        self.machine.transition(
            LoadMoreState.LOADING_SERVER,
            "auto-fetch for filtered results",
            {"page": start_page, "rounds": rounds},
        )
        self.store.set_loading_state(state.is_loading, True)

        fetched: list[Any] = []
        loaded = metadata.loaded_server_items
        total = metadata.total_server_items
        last_page = metadata.server_page
        matches = len(state.display_items)
        for offset in range(rounds):
            page = start_page + offset
            try:
                result = await self._fetch(page)
                matches += sum(1 for item in result.items if self.matcher(item, query, filters))
            except asyncio.CancelledError:
                self._abort()
                raise
            except Exception as exc:
                return self._fail(strategy, exc)
            fetched.extend(result.items)
            last_page = page
            loaded += len(result.items)
            total = result.total_count if result.items else loaded
            if not result.items or loaded >= total or matches >= needed:
                break

        self.machine.transition(LoadMoreState.SETTLING, "auto-fetch finished", {"fetched": len(fetched)})
        stale = self.store.generation != generation
        if stale and self.settings.discard_stale_results:
            return self._discard(strategy, start_page)

        try:
            added = self.store.update_items(
                fetched,
                update_metadata={"total_server_items": total, "server_page": last_page},
            )
            if self.store.get_state().search_extendable:
                self._refilter(reset_page=False)
            if not stale:
                self.store.advance_page()
        except Exception as exc:
            return self._fail(strategy, exc)

        revealed = len(self.store.get_state().paginated_items) - before
        return self._finish(strategy, added=added, revealed=revealed, stale=stale)

    # ──────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────

    def _next_server_page(self) -> int:
        metadata = self.store.get_state().metadata
        return (metadata.server_page if metadata is not None else 0) + 1

    def _page_metadata(self, page: int, result: PageResult) -> dict[str, int]:
        total = result.total_count
        if not result.items:
            # An empty page ends the feed whatever total the server reports
            metadata = self.store.get_state().metadata
            total = metadata.loaded_server_items if metadata is not None and page > 1 else 0
        return {"total_server_items": total, "server_page": page}

    def _request_key(self, page: int) -> str:
        return f"{self.feed_name}:page:{page}:size:{self.page_size}:filters:{filter_key(self.base_filters)}"

    async def _fetch(self, page: int) -> PageResult:
        return await self.optimizer.optimize(
            self._request_key(page),
            lambda: self.source.fetch_page(page, self.page_size, self.base_filters),
        )

    def _refilter(self, reset_page: bool) -> None:
        state = self.store.get_state()
        if self.matcher is None:
            return
        matches = [
            item
            for item in state.all_items
            if self.matcher(item, state.active_query, state.active_filters)
        ]
        self.store.update_search(
            matches, state.active_query, state.active_filters, reset_page=reset_page, extendable=True
        )

    def _finish(
        self,
        strategy: LoadMoreStrategy,
        added: int = 0,
        revealed: int = 0,
        stale: bool = False,
    ) -> LoadMoreResult:
        self.store.set_loading_state(False, False)
        if self.store.get_state().last_error is not None:
            self.store.set_error(None)
        self.store.validate_and_recover()
        self.machine.transition(LoadMoreState.COMPLETE, "cycle settled")
        self.machine.transition(LoadMoreState.IDLE, "ready")

        outcome = "stale" if stale else "success"
        track_load_more(self.feed_name, strategy.value, outcome, added)
        return LoadMoreResult(
            success=True,
            strategy=strategy,
            added=added,
            revealed=revealed,
            has_more=self.store.get_state().has_more,
            reason="filters changed during fetch" if stale else None,
        )

    def _discard(self, strategy: LoadMoreStrategy, page: int) -> LoadMoreResult:
        logger.info(
            f"Discarding stale page {page} of {self.feed_name}",
            extra={"feed": self.feed_name, "page": page},
        )
        self.store.set_loading_state(False, False)
        self.machine.transition(LoadMoreState.COMPLETE, "stale result discarded")
        self.machine.transition(LoadMoreState.IDLE, "ready")
        track_load_more(self.feed_name, strategy.value, "stale")
        return LoadMoreResult(
            success=True,
            strategy=strategy,
            has_more=self.store.get_state().has_more,
            reason="stale result discarded",
        )

    def _fail(self, strategy: LoadMoreStrategy, exc: Exception) -> LoadMoreResult:
        if isinstance(exc, FeedError):
            message = exc.to_summary()
            logger.warning(
                f"Load-more failed for {self.feed_name}: {message}",
                extra={
                    "feed": self.feed_name,
                    "strategy": strategy.value,
                    "error_type": exc.type,
                    "retryable": exc.retryable,
                },
            )
        else:
            message = f"Unexpected error: {exc}"
            logger.exception(
                f"Unexpected load-more failure for {self.feed_name}",
                extra={"feed": self.feed_name, "strategy": strategy.value},
            )

        self.machine.transition(LoadMoreState.ERROR, message)
        self.store.set_loading_state(False, False)
        self.store.set_error(message)
        track_load_more(self.feed_name, strategy.value, "error")
        return LoadMoreResult(
            success=False,
            strategy=strategy,
            has_more=self.store.get_state().has_more,
            error=message,
        )

    def _skipped(self, strategy: LoadMoreStrategy, reason: str) -> LoadMoreResult:
        track_load_more(self.feed_name, strategy.value, "skipped")
        return LoadMoreResult(
            success=True,
            strategy=strategy,
            has_more=self.store.get_state().has_more,
            skipped=True,
            reason=reason,
        )

    def _abort(self) -> None:
        self.machine.force_recovery()
        self.store.set_loading_state(False, False)

    async def close(self) -> None:
        """Cancel pending fetches and release subscribers."""
        await self.optimizer.close()
        self.store.close()
        self.machine.reset()
