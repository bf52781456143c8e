"""Metrics collection for the search core and service.

Provides a thin convenience wrapper around ``prometheus_client`` so the
engine and the HTTP layer record search, cache, corpus and enhancement
metrics consistently.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (can be injected for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name used for scoping
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'docsearch_search_requests_total',
            'Total search requests',
            ['mode'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'docsearch_search_duration_seconds',
            'Search duration in seconds',
            ['mode'],
            registry=self.registry
        )

        self.search_results = Histogram(
            'docsearch_search_results',
            'Number of results returned per search',
            ['mode'],
            buckets=(0, 1, 5, 10, 20, 50, 100),
            registry=self.registry
        )

        self.cache_hits = Counter(
            'docsearch_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'docsearch_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

        self.corpus_chunks = Gauge(
            'docsearch_corpus_chunks',
            'Number of chunks in the loaded corpus',
            ['origin'],
            registry=self.registry
        )

        self.enhancement_state = Gauge(
            'docsearch_enhancement_state',
            'Current semantic enhancement state (1 for the active state)',
            ['state'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(self, mode: str, duration: float, result_count: int) -> None:
        """Record search metrics."""
        self.search_requests.labels(mode=mode).inc()
        self.search_duration.labels(mode=mode).observe(duration)
        self.search_results.labels(mode=mode).observe(result_count)

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def set_corpus_size(self, origin: str, chunk_count: int) -> None:
        """Set the chunk gauge for the corpus that is currently live."""
        self.corpus_chunks.clear()
        self.corpus_chunks.labels(origin=origin).set(chunk_count)

    def set_enhancement_state(self, state: str) -> None:
        """Flip the enhancement-state gauge to ``state``."""
        self.enhancement_state.clear()
        self.enhancement_state.labels(state=state).set(1)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
