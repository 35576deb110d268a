"""
Prometheus metrics for monitoring the aggregation and dispatch pipeline.

Defines and exposes metrics for:
- Feed fetch outcomes and latency
- Discovery provider outcomes
- Dispatch outcomes
- Detached dispatch units in flight

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from signal_digest.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the signal-digest pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_fetch("reddit", ok=True, latency=0.4)
    """

    def __init__(self):
        self.feed_fetches = Counter(
            "signal_digest_feed_fetches_total",
            "Feed fetch attempts",
            ["source_type", "status"],  # status: ok, error
        )

        self.feed_fetch_latency = Histogram(
            "signal_digest_feed_fetch_latency_seconds",
            "Time to fetch and parse one feed",
            ["source_type"],
            buckets=LATENCY_BUCKETS,
        )

        self.items_aggregated = Counter(
            "signal_digest_items_aggregated_total",
            "Content items surviving the recency window and dedup",
        )

        self.discovery_results = Counter(
            "signal_digest_discovery_results_total",
            "Discovery provider invocations",
            ["provider", "status"],  # status: ok, empty, error
        )

        self.dispatches = Counter(
            "signal_digest_dispatches_total",
            "Dispatch outcomes",
            ["outcome"],  # accepted, skipped, sent, no_content, dry_run, failed
        )

        self.dispatch_latency = Histogram(
            "signal_digest_dispatch_latency_seconds",
            "Duration of the detached dispatch unit",
            buckets=LATENCY_BUCKETS + (60.0, 120.0),
        )

        self.units_in_flight = Gauge(
            "signal_digest_detached_units_in_flight",
            "Detached dispatch units currently running",
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            logger.warning("Metrics server already started")
            return

        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_fetch(self, source_type: str, ok: bool, latency: float) -> None:
        """Record one feed fetch outcome."""
        self.feed_fetches.labels(
            source_type=source_type,
            status="ok" if ok else "error",
        ).inc()
        if latency > 0:
            self.feed_fetch_latency.labels(source_type=source_type).observe(latency)

    def record_discovery(self, provider: str, status: str) -> None:
        """Record one discovery provider outcome."""
        self.discovery_results.labels(provider=provider, status=status).inc()

    def record_dispatch(self, outcome: str, latency: float | None = None) -> None:
        """
        Record a dispatch outcome.

        Args:
            outcome: accepted, skipped, sent, no_content, dry_run or failed
            latency: Detached unit duration in seconds, when the unit ran
        """
        self.dispatches.labels(outcome=outcome).inc()
        if latency is not None and latency > 0:
            self.dispatch_latency.observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
