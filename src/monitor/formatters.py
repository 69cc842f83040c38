"""Pure functions that convert monitoring signals into AlertMessage objects."""

from __future__ import annotations

from datetime import UTC, datetime

from src.monitor.types import (
    Alert,
    AlertMessage,
    AlertSeverity,
    PerformanceAlert,
    PerformanceSeverity,
)

# ── Severity mappings ───────────────────────────────────────────

_PERFORMANCE_SEVERITY: dict[PerformanceSeverity, AlertSeverity] = {
    PerformanceSeverity.NORMAL: AlertSeverity.LOW,
    PerformanceSeverity.SLOW: AlertSeverity.MEDIUM,
    PerformanceSeverity.WARNING: AlertSeverity.HIGH,
    PerformanceSeverity.CRITICAL: AlertSeverity.CRITICAL,
}


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


# ── Formatters ──────────────────────────────────────────────────


def format_dlq_alert(alert: Alert) -> AlertMessage:
    """Convert a DLQ rule breach to an AlertMessage.

    ``raw`` carries the JSON document published to SNS.
    """
    snap = alert.snapshot
    return AlertMessage(
        severity=alert.severity,
        title=f"DLQ Alert: {alert.kind.value} - {alert.severity.name}",
        body=alert.message,
        fields={
            "queue": snap.queue_id,
            "current_value": f"{alert.observed_value:g}",
            "threshold": f"{alert.threshold:g}",
            "message_count": str(snap.message_count),
        },
        source_event_type=f"dlq.{alert.kind.value}",
        timestamp=snap.taken_at,
        raw={
            "alertType": alert.kind.value,
            "severity": alert.severity.name,
            "message": alert.message,
            "queueName": snap.queue_id,
            "currentValue": alert.observed_value,
            "threshold": alert.threshold,
            "timestamp": _iso(snap.taken_at),
            "metrics": {
                "messageCount": snap.message_count,
                "oldestMessageAge": snap.oldest_message_age_seconds,
                "messageRate": snap.arrival_rate_per_window,
            },
        },
    )


def format_performance_alert(alert: PerformanceAlert) -> AlertMessage:
    """Convert a latency threshold breach to an AlertMessage."""
    severity = _PERFORMANCE_SEVERITY.get(alert.severity, AlertSeverity.LOW)
    fields = {
        "operation": alert.operation,
        "elapsed_ms": f"{alert.elapsed_ms:.0f}",
        "threshold": alert.threshold_name,
        "threshold_ms": f"{alert.threshold_ms:.0f}",
    }
    fields.update(alert.context)
    return AlertMessage(
        severity=severity,
        title=f"Performance Alert: {alert.operation} - {alert.severity.name}",
        body=(
            f"{alert.operation} took {alert.elapsed_ms:.0f}ms, exceeding the "
            f"{alert.threshold_name} threshold of {alert.threshold_ms:.0f}ms"
        ),
        fields=fields,
        source_event_type=f"performance.{alert.operation}",
        timestamp=alert.timestamp,
        raw={
            "alertType": "PERFORMANCE_THRESHOLD_EXCEEDED",
            "operation": alert.operation,
            "severity": alert.severity.name,
            "threshold": alert.threshold_name,
            "thresholdMs": alert.threshold_ms,
            "processingTimeMs": alert.elapsed_ms,
            "timestamp": _iso(alert.timestamp),
        },
    )
