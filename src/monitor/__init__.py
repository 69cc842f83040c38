"""Monitoring, alerting, and latency tracking subsystem."""

from src.monitor.channels import DiscordChannel, NotificationChannel, SnsChannel
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.dlq import DLQMonitor, evaluate_alerts
from src.monitor.exceptions import MetricsError, MetricsPublishError, MetricsQueryError
from src.monitor.factory import create_monitor_stack
from src.monitor.formatters import format_dlq_alert, format_performance_alert
from src.monitor.metrics import CloudWatchMetricsSink, InMemoryMetricsSink, MetricsSink
from src.monitor.performance import PerformanceMonitor
from src.monitor.types import (
    Alert,
    AlertKind,
    AlertMessage,
    AlertRule,
    AlertSeverity,
    HealthStatus,
    PerformanceSeverity,
    QueueSnapshot,
)

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertKind",
    "AlertMessage",
    "AlertRule",
    "AlertSeverity",
    "CloudWatchMetricsSink",
    "DLQMonitor",
    "DiscordChannel",
    "HealthStatus",
    "InMemoryMetricsSink",
    "MetricsError",
    "MetricsPublishError",
    "MetricsQueryError",
    "MetricsSink",
    "NotificationChannel",
    "PerformanceMonitor",
    "PerformanceSeverity",
    "QueueSnapshot",
    "SnsChannel",
    "create_monitor_stack",
    "evaluate_alerts",
    "format_dlq_alert",
    "format_performance_alert",
]
