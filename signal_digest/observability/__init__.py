"""Observability: structured logging and Prometheus metrics."""

from signal_digest.observability.logging import bind_context, clear_context, log_context, setup_logging
from signal_digest.observability.metrics import MetricsCollector, get_metrics

__all__ = [
    "MetricsCollector",
    "bind_context",
    "clear_context",
    "log_context",
    "get_metrics",
    "setup_logging",
]
