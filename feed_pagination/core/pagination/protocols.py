"""Protocols for the collaborators the feed engine depends on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from feed_pagination.core.pagination.models import PageResult, PaginationState


@runtime_checkable
class PageSource(Protocol):
    """Protocol for anything that can serve numbered pages of a feed.

    Implementations raise ``FeedError`` subclasses on failure: a retryable
    ``NetworkError``/``ServerError``/``RequestTimeoutError`` or a
    non-retryable ``ServerError``.
    """

    async def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: Any = None,
    ) -> PageResult:
        """Fetch one page.

        Args:
            page: 1-based page number.
            page_size: Fixed number of items per page.
            filters: Opaque server-side filters, passed through unchanged.

        Returns:
            The page items plus the server's total matching count.
        """
        ...


class ItemMatcher(Protocol):
    """Client-side predicate used to filter loaded items in client mode."""

    def __call__(self, item: Any, query: str, filters: Any) -> bool: ...


class StateListener(Protocol):
    """Callback notified with a fresh snapshot after each store mutation."""

    def __call__(self, state: PaginationState) -> None: ...
