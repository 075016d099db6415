"""
Metrics and observability components.

Internal metrics collection and Prometheus exposition.
"""

from realtime_gateway.components.metrics.collector import (
    MetricsCollector,
    BroadcastMetrics,
    ConnectionMetrics,
    EventMetrics,
    PersistenceMetrics,
)
from realtime_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
)

__all__ = [
    # Metrics collector
    "MetricsCollector",
    "BroadcastMetrics",
    "ConnectionMetrics",
    "EventMetrics",
    "PersistenceMetrics",
    # Prometheus
    "PrometheusFormatter",
    "generate_prometheus_metrics",
]
