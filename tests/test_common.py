"""Tests for common utilities."""

import pytest
from pydantic import ValidationError

from docsearch.common import logging as logging_module
from docsearch.common.config import SearchConfig, ServiceConfig, get_config
from docsearch.common.logging import configure_logging, log_performance
from docsearch.common.metrics import MetricsCollector, get_metrics_collector
from docsearch.exceptions import DocSearchError, DuplicateChunkError, ModelLoadError


def test_config_loading():
    """Test configuration loading."""
    config = SearchConfig()
    assert config.docsearch_env == "local"
    assert config.docsearch_log_level == "INFO"
    assert config.docsearch_corpus_cache_ttl == 24 * 60 * 60
    assert config.docsearch_metadata_cache_ttl == 60 * 60
    assert config.field_boosts == {"title": 3.0, "category": 2.0, "content": 1.0}


def test_fusion_defaults():
    config = SearchConfig()
    assert config.docsearch_keyword_weight == 0.4
    assert config.docsearch_semantic_weight == 0.6
    assert config.docsearch_similarity_threshold == 0.3
    assert (config.docsearch_min_boost, config.docsearch_max_boost) == (1.2, 3.0)


@pytest.mark.parametrize("threshold", [1.0, 1.5, -2.0])
def test_similarity_threshold_must_leave_a_boost_range(threshold):
    with pytest.raises(ValidationError):
        SearchConfig(docsearch_similarity_threshold=threshold)


def test_config_from_environment(monkeypatch):
    """Environment variables override defaults."""
    monkeypatch.setenv("DOCSEARCH_REDIS_URL", "redis://cache:6380")
    monkeypatch.setenv("DOCSEARCH_ENHANCEMENT_ENABLED", "false")

    config = SearchConfig()

    assert config.docsearch_redis_url == "redis://cache:6380"
    assert config.docsearch_enhancement_enabled is False


def test_service_config():
    """Test service configuration."""
    config = get_config("service")
    assert isinstance(config, ServiceConfig)
    assert config.docsearch_service_port == 9007
    assert type(get_config("unknown")) is SearchConfig


def test_logging_configuration():
    """Test logging configuration."""
    # This should not raise an exception
    configure_logging("test-service", "INFO", "json")
    configure_logging("test-service", "DEBUG", "console", env="test")
    log_performance("search", 1.5, mode="keyword")


def test_log_performance_fields(monkeypatch):
    events = []

    class Recorder:
        def info(self, event, **kwargs):
            events.append((event, kwargs))

    monkeypatch.setattr(logging_module, "_performance_logger", Recorder())

    log_performance("search", 12.3456, mode="hybrid", results=4)

    assert events == [
        ("Operation completed", {"operation": "search", "duration_ms": 12.35, "mode": "hybrid", "results": 4})
    ]


def test_metrics_collector():
    """Test metrics collector."""
    collector = MetricsCollector("test-service")
    assert collector.service_name == "test-service"

    # Test metrics recording
    collector.record_http_request("GET", "/test", 200, 0.1)
    collector.record_search("hybrid", 0.02, 3)
    collector.record_cache_miss("corpus")

    # Test metrics retrieval
    metrics = collector.get_metrics()
    assert isinstance(metrics, str)
    assert "http_requests_total" in metrics
    assert 'docsearch_search_requests_total{mode="hybrid"} 1.0' in metrics


def test_gauges_track_current_value_only():
    collector = MetricsCollector("test-service")

    collector.set_corpus_size("cache", 4)
    collector.set_corpus_size("network", 9)
    collector.set_enhancement_state("loading")
    collector.set_enhancement_state("ready")

    metrics = collector.get_metrics()
    assert 'origin="cache"' not in metrics
    assert 'docsearch_corpus_chunks{origin="network"} 9.0' in metrics
    assert 'state="loading"' not in metrics


def test_global_metrics_collector():
    assert get_metrics_collector("a") is get_metrics_collector("b")


def test_exception_hierarchy():
    error = DuplicateChunkError("a-0", "a")
    assert isinstance(error, DocSearchError)
    assert error.chunk_id == "a-0"
    with pytest.raises(DocSearchError):
        raise ModelLoadError("timed out")
