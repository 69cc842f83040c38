"""Convenience factory for wiring the monitoring stack."""

from __future__ import annotations

from src.core.config import Settings
from src.monitor.channels import DiscordChannel, NotificationChannel, SnsChannel
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.dlq import DLQMonitor
from src.monitor.metrics import CloudWatchMetricsSink, InMemoryMetricsSink, MetricsSink
from src.monitor.performance import PerformanceMonitor
from src.queue.base import QueueProvider
from src.queue.factory import create_queue_provider


def create_metrics_sink(settings: Settings) -> MetricsSink:
    """Return the sink configured by ``settings.metrics.backend``."""
    backend = settings.metrics.backend.lower()
    if backend == "memory":
        dlq = settings.dlq_monitor
        return InMemoryMetricsSink(
            retention_secs=max(dlq.history_hours * 3600, 2 * dlq.rate_window_secs),
        )
    if backend == "cloudwatch":
        return CloudWatchMetricsSink(settings.aws)
    raise ValueError(f"Unknown metrics backend: {settings.metrics.backend}")


def create_channels(settings: Settings) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    alerts = settings.alerts
    if alerts.sns.enabled and alerts.sns.topic_arn:
        channels.append(SnsChannel(alerts.sns, settings.aws))
    if alerts.discord.enabled:
        channels.append(DiscordChannel(alerts.discord))
    return channels


def create_performance_monitor(
    settings: Settings, metrics: MetricsSink | None = None,
) -> PerformanceMonitor:
    perf = settings.performance
    return PerformanceMonitor(
        metrics=metrics if metrics is not None else create_metrics_sink(settings),
        namespace=settings.metrics.performance_namespace,
        thresholds=perf.thresholds,
        memory_warning_pct=perf.memory_warning_pct,
        memory_critical_pct=perf.memory_critical_pct,
    )


def create_monitor_stack(
    settings: Settings,
    queue: QueueProvider | None = None,
    metrics: MetricsSink | None = None,
    channels: list[NotificationChannel] | None = None,
) -> tuple[AlertDispatcher, DLQMonitor, PerformanceMonitor]:
    """Build dispatcher, DLQ monitor and performance monitor from settings.

    Both monitors share one metrics sink and report alerts to the dispatcher.

    Returns:
        (dispatcher, dlq_monitor, performance_monitor)
    """
    sink = metrics if metrics is not None else create_metrics_sink(settings)
    dlq = queue if queue is not None else create_queue_provider(
        settings, settings.queues.dlq_url,
    )

    dispatcher = AlertDispatcher(
        channels=channels if channels is not None else create_channels(settings),
        throttle_secs=settings.alerts.throttle_secs,
    )

    dlq_monitor = DLQMonitor(
        dlq,
        sink,
        settings.dlq_monitor,
        namespace=settings.metrics.dlq_namespace,
        source_namespace=settings.metrics.source_namespace,
    )
    dlq_monitor.on_alert(dispatcher.on_dlq_alert)

    performance = create_performance_monitor(settings, sink)
    performance.on_alert(dispatcher.on_performance_alert)

    return dispatcher, dlq_monitor, performance
