"""
Prometheus Metrics Export for the realtime gateway.

Formats internal metrics in Prometheus text exposition format.
No external dependencies required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from realtime_gateway.connection_manager import ConnectionManager


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    """
    Definition of one exported metric.

    source is "stats" for manager-level gauges and "metrics" for collector
    counters; key is the field name in that dictionary.
    """

    name: str
    help_text: str
    metric_type: MetricType
    source: str
    key: str


METRIC_DEFINITIONS: list[MetricDefinition] = [
    # Gauges
    MetricDefinition(
        "connections_active", "Current number of admitted connections",
        MetricType.GAUGE, "stats", "total_connections",
    ),
    MetricDefinition(
        "users_present", "Identities with a presence entry",
        MetricType.GAUGE, "stats", "users_present",
    ),
    MetricDefinition(
        "rooms_active", "Rooms with at least one member",
        MetricType.GAUGE, "stats", "rooms",
    ),
    MetricDefinition(
        "persistence_pending", "User store writes still in flight",
        MetricType.GAUGE, "stats", "pending_persistence",
    ),
    MetricDefinition(
        "idle_timeout_seconds", "Idle eviction timeout (0 = disabled)",
        MetricType.GAUGE, "stats", "idle_timeout_seconds",
    ),
    # Counters
    MetricDefinition(
        "connections_admitted_total", "Connections admitted by the gate",
        MetricType.COUNTER, "metrics", "connections_admitted",
    ),
    MetricDefinition(
        "connections_disconnected_total", "Admitted connections torn down",
        MetricType.COUNTER, "metrics", "connections_disconnected",
    ),
    MetricDefinition(
        "connections_idle_evicted_total", "Connections closed for inactivity",
        MetricType.COUNTER, "metrics", "connections_idle_evicted",
    ),
    MetricDefinition(
        "connections_closed_malformed_total", "Connections closed after repeated malformed frames",
        MetricType.COUNTER, "metrics", "connections_closed_malformed",
    ),
    MetricDefinition(
        "broadcasts_total", "Broadcast operations",
        MetricType.COUNTER, "metrics", "broadcasts_total",
    ),
    MetricDefinition(
        "frames_enqueued_total", "Outbound frames queued for delivery",
        MetricType.COUNTER, "metrics", "broadcasts_frames_enqueued",
    ),
    MetricDefinition(
        "broadcasts_failed_recipients_total", "Recipients a frame could not be queued for",
        MetricType.COUNTER, "metrics", "broadcasts_failed_recipients",
    ),
    MetricDefinition(
        "writer_failures_total", "Connection writers that failed to send a frame",
        MetricType.COUNTER, "metrics", "broadcasts_writer_failures",
    ),
    MetricDefinition(
        "events_malformed_total", "Inbound frames dropped as malformed",
        MetricType.COUNTER, "metrics", "events_malformed",
    ),
    MetricDefinition(
        "heartbeats_total", "Heartbeats acknowledged",
        MetricType.COUNTER, "metrics", "events_heartbeats",
    ),
    MetricDefinition(
        "persistence_succeeded_total", "Successful user store writes",
        MetricType.COUNTER, "metrics", "persistence_succeeded",
    ),
    MetricDefinition(
        "persistence_failures_total", "Failed user store writes",
        MetricType.COUNTER, "metrics", "persistence_failures",
    ),
]


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/

    Usage:
        formatter = PrometheusFormatter()
        output = formatter.format_all_metrics(manager.get_stats())
    """

    def __init__(self, prefix: str = "realtime_gateway"):
        self._prefix = prefix

    def _name(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
        labels: dict[str, str] | None = None,
    ) -> str:
        """
        Format a single metric in Prometheus format.

        Returns:
            HELP, TYPE and value lines joined by newlines.
        """
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]

        if labels:
            label_str = ",".join(f'{k}="{_escape_label(v)}"' for k, v in labels.items())
            lines.append(f"{name}{{{label_str}}} {value}")
        else:
            lines.append(f"{name} {value}")

        return "\n".join(lines)

    def format_labelled(
        self,
        name: str,
        help_text: str,
        metric_type: MetricType,
        label: str,
        values: dict[str, int],
    ) -> str:
        """Format one metric family with a single label dimension."""
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]
        for label_value, value in sorted(values.items()):
            lines.append(f'{name}{{{label}="{_escape_label(label_value)}"}} {value}')
        return "\n".join(lines)

    def format_all_metrics(self, stats: dict[str, Any]) -> str:
        """
        Format all metrics from ConnectionManager stats.

        Args:
            stats: Stats dictionary from ConnectionManager.get_stats().

        Returns:
            Complete Prometheus exposition format string.
        """
        metrics = stats.get("metrics", {})
        sources = {"stats": stats, "metrics": metrics}
        lines: list[str] = []

        for definition in METRIC_DEFINITIONS:
            lines.append(self.format_metric(
                self._name(definition.name),
                sources[definition.source].get(definition.key, 0),
                definition.help_text,
                definition.metric_type,
            ))

        lines.append(self.format_labelled(
            self._name("connections_rejected_total"),
            "Connection attempts refused by the gate",
            MetricType.COUNTER,
            "reason",
            {
                "no_token": metrics.get("connections_rejected_no_token", 0),
                "invalid_token": metrics.get("connections_rejected_invalid_token", 0),
                "origin": metrics.get("connections_rejected_origin", 0),
            },
        ))

        lines.append(self.format_labelled(
            self._name("events_processed_total"),
            "Inbound events relayed by kind",
            MetricType.COUNTER,
            "kind",
            metrics.get("events_by_kind", {}),
        ))

        lines.append(self.format_metric(
            self._name("scrape_timestamp"),
            int(time.time()),
            "Timestamp of metrics scrape",
            MetricType.GAUGE,
        ))

        return "\n".join(lines) + "\n"


_formatter: PrometheusFormatter | None = None


def get_prometheus_formatter() -> PrometheusFormatter:
    """Get singleton Prometheus formatter."""
    global _formatter
    if _formatter is None:
        _formatter = PrometheusFormatter()
    return _formatter


def generate_prometheus_metrics(manager: "ConnectionManager") -> str:
    """Generate Prometheus metrics from a ConnectionManager."""
    return get_prometheus_formatter().format_all_metrics(manager.get_stats())
