"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so fields such as the feed name are attached to every log message emitted
while a load-more cycle runs, without passing them explicitly.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from contextvars import ContextVar
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Set logging context for the current async task/thread.

    Args:
        **kwargs: Key-value pairs to add to logging context.

    Example:
        ```python
        set_log_context(feed="posts")
        logger.info("Loading page")  # Includes feed="posts"
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current async task/thread."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[dict[str, Any]]:
    """Add fields to the log context for the duration of a block.

    The previous context is restored on exit, so a cycle's fields never
    leak into the caller's later log records.

    Example:
        ```python
        with log_context(feed="posts", strategy="server_fetch"):
            logger.info("Fetching page 2")  # Includes feed and strategy
        ```
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield _log_context.get().copy()
    finally:
        _log_context.reset(token)


def remove_from_log_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars log context into records.

    Applied to the root logger so every logger benefits.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            # Don't overwrite existing attributes
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
