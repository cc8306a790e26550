"""HTTP page source settings.

Environment variables use FEED_SOURCE_ prefix.
Example: FEED_SOURCE_BASE_URL=https://api.example.com, FEED_SOURCE_PATH=/posts
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpSourceSettings(BaseSettings):
    """Configuration for fetching feed pages over HTTP."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the feed API",
    )
    path: str = Field(
        default="/posts",
        description="Endpoint path returning one page of items",
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Per-request HTTP timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for retryable failures (including the first)",
    )
    retry_initial_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="First backoff delay in seconds",
    )
    retry_max_delay: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound of a single backoff delay in seconds",
    )
    page_param: str = Field(default="page", description="Query parameter carrying the page number")
    limit_param: str = Field(default="limit", description="Query parameter carrying the page size")
    items_key: str = Field(default="items", description="Response key holding the item list")
    total_key: str = Field(default="totalCount", description="Response key holding the total count")

    model_config = SettingsConfigDict(
        env_prefix="FEED_SOURCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
