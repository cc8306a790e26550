"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings caches are cleared around every test
    - Clock Fixtures: a controllable clock (helpers live in tests.utils)
    - Component Fixtures: settings, store, optimizer, page source
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from feed_pagination.core.pagination import PaginationStore
from feed_pagination.core.settings import (
    OptimizerSettings,
    PaginationSettings,
    clear_settings_cache,
)
from feed_pagination.infra.cache import RequestOptimizer
from feed_pagination.infra.external import StaticPageSource
from tests.utils import FakeClock, make_items


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Make every test load settings from a clean cache."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock starting at t=1000s."""
    return FakeClock()


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def pagination_settings() -> PaginationSettings:
    """Pagination settings with the default page size and a small feed name."""
    return PaginationSettings(feed_name="test-feed", items_per_page=15)


@pytest.fixture
def optimizer_settings() -> OptimizerSettings:
    """Optimizer settings with a short timeout for fast tests."""
    return OptimizerSettings(request_timeout=0.5, cache_ttl=300.0)


@pytest.fixture
def store(pagination_settings: PaginationSettings, clock: FakeClock) -> PaginationStore:
    """Empty pagination store."""
    return PaginationStore(pagination_settings, clock=clock)


@pytest.fixture
async def optimizer(optimizer_settings: OptimizerSettings, clock: FakeClock):
    """Request optimizer closed after the test."""
    optimizer = RequestOptimizer(optimizer_settings, feed_name="test-feed", clock=clock)
    yield optimizer
    await optimizer.close()


@pytest.fixture
def source() -> StaticPageSource:
    """Static page source holding 100 items."""
    return StaticPageSource(make_items(100))
