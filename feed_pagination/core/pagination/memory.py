"""Memory governor bounding the number of loaded feed items."""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
import logging
import time
from typing import Any

from feed_pagination.core.pagination.models import get_item_id
from feed_pagination.infra.metrics.tracking import track_items_evicted

logger = logging.getLogger(__name__)


@dataclass
class MemoryStatistics:
    """Counters describing eviction activity."""

    cleanup_count: int = 0
    evicted_total: int = 0
    ceiling_raises: int = 0
    last_cleanup_time: float | None = None


class MemoryGovernor:
    """Trim the oldest items once the loaded set grows past a ceiling.

    When ``len(items)`` exceeds ``max_items`` the head of the sequence is
    dropped until ``max_items * cleanup_threshold`` items remain, so a run of
    single appends does not trigger a cleanup each time. Items whose ids are
    protected (the visible window) are never dropped: if the cut would reach
    one, the cut stops just before it and the ceiling is effectively raised
    for that cycle.

    Example:
        governor = MemoryGovernor(max_items=500, cleanup_threshold=0.8)
        kept = governor.optimize(items, protected_ids={"a", "b"})
    """

    def __init__(
        self,
        max_items: int = 500,
        cleanup_threshold: float = 0.8,
        feed_name: str = "feed",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._validate(max_items, cleanup_threshold)
        self.max_items = max_items
        self.cleanup_threshold = cleanup_threshold
        self.feed_name = feed_name
        self._clock = clock
        self.statistics = MemoryStatistics()

    @staticmethod
    def _validate(max_items: int, cleanup_threshold: float) -> None:
        if max_items < 1:
            msg = f"max_items must be at least 1, got {max_items}"
            raise ValueError(msg)
        if not 0.0 < cleanup_threshold <= 1.0:
            msg = f"cleanup_threshold must be in (0, 1], got {cleanup_threshold}"
            raise ValueError(msg)

    def optimize(
        self,
        items: Sequence[Any],
        protected_ids: Collection[str] = (),
        max_items: int | None = None,
        cleanup_threshold: float | None = None,
    ) -> list[Any]:
        """Return ``items`` trimmed to the memory ceiling.

        Args:
            items: Loaded items, oldest first.
            protected_ids: Ids that must survive the cleanup.
            max_items: Override of the configured ceiling for this call.
            cleanup_threshold: Override of the configured threshold for this call.

        Returns:
            The surviving items in their original order. When no cleanup is
            needed the input is returned as a new list with the same items.
        """
        ceiling = self.max_items if max_items is None else max_items
        threshold = self.cleanup_threshold if cleanup_threshold is None else cleanup_threshold
        self._validate(ceiling, threshold)

        if len(items) <= ceiling:
            return list(items)

        keep = max(1, int(ceiling * threshold))
        cut = len(items) - keep

        if protected_ids:
            for index, item in enumerate(items[:cut]):
                if get_item_id(item) in protected_ids:
                    # A protected head is the normal state of a growing window
                    logger.log(
                        logging.WARNING if index else logging.DEBUG,
                        f"Raising memory ceiling to keep visible items for {self.feed_name}",
                        extra={
                            "feed": self.feed_name,
                            "max_items": ceiling,
                            "requested_cut": cut,
                            "applied_cut": index,
                            "item_count": len(items),
                        },
                    )
                    cut = index
                    self.statistics.ceiling_raises += 1
                    break

        if cut <= 0:
            return list(items)

        self.statistics.cleanup_count += 1
        self.statistics.evicted_total += cut
        self.statistics.last_cleanup_time = self._clock()
        track_items_evicted(self.feed_name, cut)

        logger.info(
            f"Evicted {cut} items from {self.feed_name}",
            extra={
                "feed": self.feed_name,
                "evicted": cut,
                "remaining": len(items) - cut,
                "max_items": ceiling,
            },
        )
        return list(items[cut:])
