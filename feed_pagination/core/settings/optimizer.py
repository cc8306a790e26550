"""Request optimizer settings.

Environment variables use FEED_OPTIMIZER_ prefix.
Example: FEED_OPTIMIZER_REQUEST_TIMEOUT=5, FEED_OPTIMIZER_CACHE_TTL=60
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OptimizerSettings(BaseSettings):
    """Deduplication, caching and batch-sizing configuration.

    All durations are in seconds.
    """

    # ──────────────────────────────────────────────────────────────
    # Requests and cache
    # ──────────────────────────────────────────────────────────────

    request_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Seconds before an in-flight request is abandoned",
    )
    cache_ttl: float = Field(
        default=300.0,
        ge=0.0,
        description="Default seconds a settled result stays cached",
    )
    cache_size: int = Field(
        default=100,
        ge=1,
        le=100_000,
        description="Maximum cached results; oldest entries are evicted first",
    )

    # ──────────────────────────────────────────────────────────────
    # Batch sizing
    # ──────────────────────────────────────────────────────────────

    batch_size: int = Field(
        default=15,
        ge=1,
        description="Batch size on a normal connection",
    )
    min_batch_size: int = Field(
        default=10,
        ge=1,
        description="Smallest batch requested on a slow connection",
    )
    max_batch_size: int = Field(
        default=25,
        ge=1,
        description="Largest batch requested on a fast connection",
    )

    # ──────────────────────────────────────────────────────────────
    # Prefetch heuristics
    # ──────────────────────────────────────────────────────────────

    near_end_threshold: int = Field(
        default=5,
        ge=0,
        description="Prefetch once this many loaded items or fewer remain below the viewport",
    )
    fast_scroll_threshold: float = Field(
        default=1000.0,
        gt=0.0,
        description="Scroll velocity (px/s) above which prefetch starts early",
    )
    long_session_threshold: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds on page after which prefetch starts early",
    )

    model_config = SettingsConfigDict(
        env_prefix="FEED_OPTIMIZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_batch_bounds(self) -> OptimizerSettings:
        """Ensure the slow and fast batch sizes bracket the normal one."""
        if not self.min_batch_size <= self.batch_size <= self.max_batch_size:
            raise ValueError(
                "Batch sizes must satisfy min_batch_size <= batch_size <= max_batch_size"
            )
        return self
