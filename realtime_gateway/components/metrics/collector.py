"""
Metrics Collector for the realtime gateway.

Centralizes counters for observability. Every caller runs on the event
loop thread and increments never await, so plain integer updates are
atomic with respect to other handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection admission and teardown."""
    admitted: int = 0
    rejected_no_token: int = 0
    rejected_invalid_token: int = 0
    rejected_origin: int = 0
    disconnected: int = 0
    idle_evicted: int = 0
    closed_malformed: int = 0


@dataclass
class BroadcastMetrics:
    """Metrics for outbound delivery."""
    total: int = 0
    frames_enqueued: int = 0
    recipients_failed: int = 0
    writer_failures: int = 0


@dataclass
class EventMetrics:
    """Metrics for inbound event processing."""
    processed: int = 0
    malformed: int = 0
    heartbeats: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


@dataclass
class PersistenceMetrics:
    """Metrics for user store bookkeeping."""
    succeeded: int = 0
    failures: int = 0


class MetricsCollector:
    """
    Metrics collector for the realtime gateway.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_broadcast_total()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._connection = ConnectionMetrics()
        self._broadcast = BroadcastMetrics()
        self._event = EventMetrics()
        self._persistence = PersistenceMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connections_admitted(self) -> None:
        self._connection.admitted += 1

    def increment_connection_rejected(self, audit_reason: str) -> None:
        """Count a gate rejection by its audit reason."""
        if audit_reason == "no_token":
            self._connection.rejected_no_token += 1
        elif audit_reason == "invalid_origin":
            self._connection.rejected_origin += 1
        else:
            self._connection.rejected_invalid_token += 1

    def increment_connections_disconnected(self) -> None:
        self._connection.disconnected += 1

    def increment_idle_evicted(self) -> None:
        self._connection.idle_evicted += 1

    def increment_closed_malformed(self) -> None:
        self._connection.closed_malformed += 1

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def increment_broadcast_total(self) -> None:
        self._broadcast.total += 1

    def add_frames_enqueued(self, count: int) -> None:
        self._broadcast.frames_enqueued += count

    def add_failed_recipients(self, count: int = 1) -> None:
        """Add count of recipients a frame could not be enqueued for."""
        self._broadcast.recipients_failed += count

    def increment_writer_failures(self) -> None:
        """Count a connection writer that gave up on a send."""
        self._broadcast.writer_failures += 1

    # ==========================================================================
    # Event Metrics
    # ==========================================================================

    def increment_events_processed(self, kind: str) -> None:
        self._event.processed += 1
        self._event.by_kind[kind] = self._event.by_kind.get(kind, 0) + 1

    def increment_events_malformed(self) -> None:
        self._event.malformed += 1

    def increment_heartbeats(self) -> None:
        self._event.heartbeats += 1

    # ==========================================================================
    # Persistence Metrics
    # ==========================================================================

    def increment_persistence_succeeded(self) -> None:
        self._persistence.succeeded += 1

    def increment_persistence_failures(self) -> None:
        self._persistence.failures += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Metric names follow {category}_{metric}. Returns a copy.
        """
        return {
            # Connection metrics
            "connections_admitted": self._connection.admitted,
            "connections_rejected_no_token": self._connection.rejected_no_token,
            "connections_rejected_invalid_token": self._connection.rejected_invalid_token,
            "connections_rejected_origin": self._connection.rejected_origin,
            "connections_disconnected": self._connection.disconnected,
            "connections_idle_evicted": self._connection.idle_evicted,
            "connections_closed_malformed": self._connection.closed_malformed,
            # Broadcast metrics
            "broadcasts_total": self._broadcast.total,
            "broadcasts_frames_enqueued": self._broadcast.frames_enqueued,
            "broadcasts_failed_recipients": self._broadcast.recipients_failed,
            "broadcasts_writer_failures": self._broadcast.writer_failures,
            # Event metrics
            "events_processed": self._event.processed,
            "events_malformed": self._event.malformed,
            "events_heartbeats": self._event.heartbeats,
            "events_by_kind": dict(self._event.by_kind),
            # Persistence metrics
            "persistence_succeeded": self._persistence.succeeded,
            "persistence_failures": self._persistence.failures,
        }

    def reset(self) -> None:
        """Reset all metrics to zero. Useful for testing."""
        self._connection = ConnectionMetrics()
        self._broadcast = BroadcastMetrics()
        self._event = EventMetrics()
        self._persistence = PersistenceMetrics()
