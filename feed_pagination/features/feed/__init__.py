"""Feed orchestration: the controller UI layers talk to."""

from feed_pagination.features.feed.controller import FeedController

__all__ = ["FeedController"]
