"""Unit tests for feed pagination settings."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from feed_pagination.core.settings import (
    HttpSourceSettings,
    LoggingSettings,
    OptimizerSettings,
    PaginationSettings,
    get_optimizer_settings,
    get_pagination_settings,
)


@pytest.mark.unit
class TestPaginationSettings:
    """Test suite for PaginationSettings."""

    def test_defaults(self):
        """Test default pagination values."""
        settings = PaginationSettings()

        assert settings.items_per_page == 15
        assert settings.max_memory_items == 500
        assert settings.cleanup_threshold == 0.8
        assert settings.auto_fetch_max_items == 50
        assert settings.discard_stale_results is False

    def test_frozen(self):
        """Test that settings instances are immutable."""
        settings = PaginationSettings()

        with pytest.raises(ValidationError):
            settings.items_per_page = 30

    @pytest.mark.parametrize("threshold", [0.0, 1.5, -0.1])
    def test_cleanup_threshold_bounds(self, threshold):
        """Test that the cleanup threshold must lie in (0, 1]."""
        with pytest.raises(ValidationError):
            PaginationSettings(cleanup_threshold=threshold)

    def test_env_prefix(self, monkeypatch):
        """Test that FEED_PAGINATION_ variables are read."""
        monkeypatch.setenv("FEED_PAGINATION_ITEMS_PER_PAGE", "20")
        monkeypatch.setenv("FEED_PAGINATION_FEED_NAME", "tracks")

        settings = get_pagination_settings()

        assert settings.items_per_page == 20
        assert settings.feed_name == "tracks"

    def test_loader_is_cached(self):
        """Test that the loader returns the same instance."""
        assert get_pagination_settings() is get_pagination_settings()


@pytest.mark.unit
class TestOptimizerSettings:
    """Test suite for OptimizerSettings."""

    def test_defaults(self):
        settings = OptimizerSettings()

        assert settings.request_timeout == 10.0
        assert settings.cache_ttl == 300.0
        assert settings.cache_size == 100
        assert (settings.min_batch_size, settings.batch_size, settings.max_batch_size) == (10, 15, 25)
        assert settings.fast_scroll_threshold == 1000.0
        assert settings.long_session_threshold == 30.0

    def test_batch_bounds_must_bracket_batch_size(self):
        with pytest.raises(ValidationError):
            OptimizerSettings(batch_size=30, max_batch_size=25)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FEED_OPTIMIZER_REQUEST_TIMEOUT", "2.5")

        assert get_optimizer_settings().request_timeout == 2.5


@pytest.mark.unit
class TestOtherSettings:
    """Test suite for source and logging settings."""

    def test_http_source_defaults(self):
        settings = HttpSourceSettings()

        assert settings.path == "/posts"
        assert settings.items_key == "items"
        assert settings.total_key == "totalCount"
        assert settings.max_retries == 3

    def test_logging_kwargs(self):
        settings = LoggingSettings(level="DEBUG", json_logs=False)

        kwargs = settings.to_logging_kwargs()

        assert kwargs["log_level"] == "DEBUG"
        assert kwargs["json_logs"] is False
        assert kwargs["file_path"] is None

    def test_logging_file_path_only_when_enabled(self, tmp_path):
        log_file = tmp_path / "feed.jsonl"
        settings = LoggingSettings(file_enabled=True, file_path=log_file)

        assert settings.to_logging_kwargs()["file_path"] == str(log_file)
