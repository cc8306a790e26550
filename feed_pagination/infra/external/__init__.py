"""Page source integrations."""

from feed_pagination.infra.external.base_client import BaseHTTPClient
from feed_pagination.infra.external.page_source import HttpPageSource, StaticPageSource

__all__ = ["BaseHTTPClient", "HttpPageSource", "StaticPageSource"]
