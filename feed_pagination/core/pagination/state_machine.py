"""Load-more finite state machine.

States:
    - IDLE: Ready for the next trigger
    - LOADING_SERVER: Fetching raw data from the page source
    - LOADING_CLIENT: Revealing already-loaded items, no network
    - SETTLING: Merging results into the store
    - COMPLETE: Cycle finished, about to return to IDLE
    - ERROR: Cycle failed, waiting to be acknowledged

Transitions:
    IDLE -> LOADING_SERVER | LOADING_CLIENT: Trigger accepted
    LOADING_* -> SETTLING: Data obtained
    LOADING_* -> ERROR: Fetch failed
    SETTLING -> COMPLETE: Store updated
    SETTLING -> ERROR: Merge failed
    COMPLETE -> IDLE: Ready again
    ERROR -> IDLE: Error acknowledged or retry triggered

The machine only validates and records transitions; the controller drives it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


class LoadMoreState(StrEnum):
    """Load-more cycle states."""

    IDLE = "idle"
    LOADING_SERVER = "loading-server"
    LOADING_CLIENT = "loading-client"
    SETTLING = "settling"
    COMPLETE = "complete"
    ERROR = "error"


VALID_TRANSITIONS: dict[LoadMoreState, frozenset[LoadMoreState]] = {
    LoadMoreState.IDLE: frozenset({LoadMoreState.LOADING_SERVER, LoadMoreState.LOADING_CLIENT}),
    LoadMoreState.LOADING_SERVER: frozenset({LoadMoreState.SETTLING, LoadMoreState.ERROR}),
    LoadMoreState.LOADING_CLIENT: frozenset({LoadMoreState.SETTLING, LoadMoreState.ERROR}),
    LoadMoreState.SETTLING: frozenset({LoadMoreState.COMPLETE, LoadMoreState.ERROR}),
    LoadMoreState.COMPLETE: frozenset({LoadMoreState.IDLE}),
    LoadMoreState.ERROR: frozenset({LoadMoreState.IDLE}),
}

LOADING_STATES = frozenset({LoadMoreState.LOADING_SERVER, LoadMoreState.LOADING_CLIENT})


@dataclass(frozen=True)
class TransitionRecord:
    """One accepted transition."""

    from_state: LoadMoreState
    to_state: LoadMoreState
    reason: str
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)


class LoadMoreStateMachine:
    """Explicit state controller for load-more cycles.

    Consecutive errors are counted; once ``max_error_count`` is reached the
    machine refuses new cycles until :meth:`force_recovery` is called or
    ``error_reset_interval`` seconds pass without a new error.

    Example:
        machine = LoadMoreStateMachine(name="posts")
        if machine.transition(LoadMoreState.LOADING_SERVER, "trigger"):
            ...
            machine.transition(LoadMoreState.SETTLING, "fetched")
    """

    def __init__(
        self,
        name: str = "feed",
        max_history: int = 50,
        max_error_count: int = 5,
        error_reset_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.max_error_count = max_error_count
        self.error_reset_interval = error_reset_interval
        self._clock = clock
        self._state = LoadMoreState.IDLE
        self._last_valid_state = LoadMoreState.IDLE
        self._history: deque[TransitionRecord] = deque(maxlen=max_history)
        self._error_count = 0
        self._last_error_time: float | None = None
        self._transition_count = 0
        self._rejected_count = 0

    @property
    def state(self) -> LoadMoreState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state in LOADING_STATES

    @property
    def is_busy(self) -> bool:
        """True from the start of loading until the cycle completes."""
        return self._state in LOADING_STATES or self._state == LoadMoreState.SETTLING

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def error_limit_reached(self) -> bool:
        self._expire_errors()
        return self._error_count >= self.max_error_count

    @property
    def history(self) -> list[TransitionRecord]:
        return list(self._history)

    def can_transition(self, target: LoadMoreState) -> bool:
        return target in VALID_TRANSITIONS[self._state]

    def can_load_more(self) -> bool:
        """Whether a new cycle may start now."""
        return self._state == LoadMoreState.IDLE and not self.error_limit_reached

    def transition(
        self,
        target: LoadMoreState,
        reason: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Move to ``target`` if the transition table allows it.

        Returns:
            True if the transition happened; False if it was rejected.
        """
        if not self.can_transition(target):
            self._rejected_count += 1
            logger.warning(
                f"Rejected load-more transition {self._state} -> {target} for {self.name}",
                extra={
                    "feed": self.name,
                    "from_state": self._state.value,
                    "to_state": target.value,
                    "reason": reason,
                },
            )
            return False

        previous = self._state
        self._state = target
        self._transition_count += 1
        if target != LoadMoreState.ERROR:
            self._last_valid_state = target
        self._history.append(
            TransitionRecord(
                from_state=previous,
                to_state=target,
                reason=reason,
                timestamp=self._clock(),
                metadata=dict(metadata or {}),
            )
        )

        if target == LoadMoreState.ERROR:
            self._expire_errors()
            self._error_count += 1
            self._last_error_time = self._clock()
        elif target == LoadMoreState.COMPLETE:
            self._error_count = 0
            self._last_error_time = None

        logger.debug(
            f"Load-more {self.name}: {previous} -> {target}",
            extra={"feed": self.name, "from_state": previous.value, "to_state": target.value, "reason": reason},
        )
        return True

    def _expire_errors(self) -> None:
        if (
            self._last_error_time is not None
            and self._clock() - self._last_error_time >= self.error_reset_interval
        ):
            self._error_count = 0
            self._last_error_time = None

    def force_recovery(self) -> None:
        """Return to IDLE from any state and clear the error count."""
        previous = self._state
        self._state = LoadMoreState.IDLE
        self._last_valid_state = LoadMoreState.IDLE
        self._error_count = 0
        self._last_error_time = None
        self._history.append(
            TransitionRecord(
                from_state=previous,
                to_state=LoadMoreState.IDLE,
                reason="forced recovery",
                timestamp=self._clock(),
            )
        )
        logger.info(
            f"Load-more state machine {self.name} forced back to idle",
            extra={"feed": self.name, "from_state": previous.value},
        )

    def reset(self) -> None:
        """Clear state, counters and history."""
        self._state = LoadMoreState.IDLE
        self._last_valid_state = LoadMoreState.IDLE
        self._history.clear()
        self._error_count = 0
        self._last_error_time = None
        self._transition_count = 0
        self._rejected_count = 0

    def statistics(self) -> dict[str, Any]:
        """Return a snapshot of the machine's counters.

        Returns:
            Dictionary with the following keys:
                - state: Current state
                - last_valid_state: Most recent non-error state
                - error_count: Consecutive errors
                - transition_count: Accepted transitions
                - rejected_count: Rejected transitions
                - history_size: Retained transition records
        """
        return {
            "state": self._state.value,
            "last_valid_state": self._last_valid_state.value,
            "error_count": self._error_count,
            "transition_count": self._transition_count,
            "rejected_count": self._rejected_count,
            "history_size": len(self._history),
        }
