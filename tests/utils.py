"""Test utilities and helper functions.

Usage:
    from tests.utils import FakeClock, ids, make_items, tag_matcher

    items = make_items(30)          # ids item-0 .. item-29
    assert ids(items[:2]) == ["item-0", "item-1"]
"""

from __future__ import annotations

from typing import Any


def make_items(count: int, start: int = 0, prefix: str = "item") -> list[dict[str, Any]]:
    """Build ``count`` feed items with ids ``{prefix}-{start}`` onwards.

    Even-numbered items are tagged "even", odd-numbered ones "odd".
    """
    return [
        {"id": f"{prefix}-{i}", "title": f"Post {i}", "tag": "even" if i % 2 == 0 else "odd"}
        for i in range(start, start + count)
    ]


def ids(items: Any) -> list[str]:
    """Return the ids of ``items`` in order."""
    return [item["id"] for item in items]


def tag_matcher(item: Any, query: str, filters: Any) -> bool:
    """Match items whose tag equals the query."""
    return item["tag"] == query


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
