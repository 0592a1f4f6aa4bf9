"""Metrics collection for the search package.

Provides a thin convenience wrapper around ``prometheus_client`` so the
search manager, embedding gateway, and HTTP service record the same metric
families with consistent label sets.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (inject one for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name of the process owning the registry
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
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'search_requests_total',
            'Total search requests',
            ['mode', 'path'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'search_duration_seconds',
            'Search duration including embedding and store queries',
            ['mode', 'path'],
            registry=self.registry
        )

        self.search_results = Histogram(
            'search_results_returned',
            'Number of results returned per search',
            ['mode'],
            buckets=(0, 1, 2, 5, 10, 20, 50, 100),
            registry=self.registry
        )

        self.search_failures = Counter(
            'search_failures_total',
            'Searches aborted by a collaborator failure',
            ['mode', 'stage'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'embedding_requests_total',
            'Embedding requests answered, by provider',
            ['provider'],
            registry=self.registry
        )

        self.embedding_failures = Counter(
            'embedding_failures_total',
            'Embedding requests that failed, by provider',
            ['provider'],
            registry=self.registry
        )

        self.embedding_fallbacks = Counter(
            'embedding_fallbacks_total',
            'Times the gateway moved on to a fallback provider',
            ['from_provider'],
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

    def record_search(
        self,
        mode: str,
        path: str,
        duration: float,
        results_count: int
    ) -> None:
        """Record a completed search."""
        self.search_requests.labels(mode=mode, path=path).inc()
        self.search_duration.labels(mode=mode, path=path).observe(duration)
        self.search_results.labels(mode=mode).observe(results_count)

    def record_search_failure(self, mode: str, stage: str) -> None:
        """Record a search aborted at ``stage`` (embedding, vector, lexical, hybrid)."""
        self.search_failures.labels(mode=mode, stage=stage).inc()

    def record_embedding(self, provider: str, success: bool = True) -> None:
        """Record one embedding call outcome for ``provider``."""
        if success:
            self.embedding_requests.labels(provider=provider).inc()
        else:
            self.embedding_failures.labels(provider=provider).inc()

    def record_embedding_fallback(self, from_provider: str) -> None:
        """Record a fallback away from ``from_provider``."""
        self.embedding_fallbacks.labels(from_provider=from_provider).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str = "semsearch") -> MetricsCollector:
    """Get or create the process-wide metrics collector.

    Returns a singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
