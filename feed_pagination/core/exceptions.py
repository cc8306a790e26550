"""Exception classes for the feed pagination engine."""

from __future__ import annotations

from typing import Any


class FeedError(Exception):
    """Base feed exception.

    All errors raised by page sources, the request optimizer and the
    pagination store inherit from this class. The shape mirrors RFC 7807
    problem details so errors can be rendered by any UI layer.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier.
        title: Short, human-readable summary of the problem type.
        retryable: Whether repeating the same request may succeed.
        extra: Additional context-specific information about the error.

    Example:
            raise FeedError(
            detail="Page 3 could not be decoded",
            type="malformed-page",
            title="Malformed Page",
            extra={"page": 3}
        )
    """

    default_title = "Feed Error"

    def __init__(
        self,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        retryable: bool = False,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize feed exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            retryable: Whether the failed operation may be retried.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type
        self.title = title or self.default_title
        self.retryable = retryable
        self.extra = extra or {}
        super().__init__(detail)

    def to_summary(self) -> str:
        """Return the message shown to users as the store's last error."""
        return f"{self.title}: {self.detail}"


class NetworkError(FeedError):
    """Raised when the transport fails before a response arrives."""

    default_title = "Network Error"

    def __init__(
        self,
        detail: str,
        type: str = "network-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail=detail, type=type, retryable=True, extra=extra)


class ServerError(FeedError):
    """Raised when the server answers with an error or an unusable body.

    Example:
            raise ServerError(
            detail="Upstream returned 503",
            status_code=503,
            retryable=True,
        )
    """

    default_title = "Server Error"

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        type: str = "server-error",
        retryable: bool = False,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(detail=detail, type=type, retryable=retryable, extra=extra)


class RequestTimeoutError(FeedError, TimeoutError):
    """Raised when a request does not settle within the configured timeout."""

    default_title = "Request Timeout"

    def __init__(
        self,
        detail: str,
        timeout: float | None = None,
        type: str = "request-timeout",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(detail=detail, type=type, retryable=True, extra=extra)


class StateValidationError(FeedError):
    """Raised when pagination state violates its consistency rules."""

    default_title = "Invalid Pagination State"

    def __init__(
        self,
        detail: str,
        violations: list[str] | None = None,
        type: str = "state-validation",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.violations = violations or []
        super().__init__(detail=detail, type=type, retryable=False, extra=extra)


class DuplicateKeyError(FeedError):
    """Raised when an item id is already present in the item index."""

    default_title = "Duplicate Item"

    def __init__(self, item_id: str, extra: dict[str, Any] | None = None) -> None:
        self.item_id = item_id
        super().__init__(
            detail=f"Item {item_id!r} is already loaded",
            type="duplicate-key",
            retryable=False,
            extra=extra,
        )
