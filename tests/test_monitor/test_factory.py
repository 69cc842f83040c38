"""Tests for the monitor factory — wiring logic with various config combinations."""

from __future__ import annotations

import pytest
from pydantic import SecretStr

from src.core.config import (
    AlertsConfig,
    DiscordConfig,
    MetricsConfig,
    QueuesConfig,
    Settings,
    SnsConfig,
)
from src.monitor.channels import DiscordChannel, SnsChannel
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.dlq import DLQMonitor
from src.monitor.factory import (
    create_channels,
    create_metrics_sink,
    create_monitor_stack,
    create_performance_monitor,
)
from src.monitor.metrics import CloudWatchMetricsSink, InMemoryMetricsSink
from src.monitor.performance import PerformanceMonitor
from src.queue.memory import InMemoryQueueProvider


# ── Helpers ─────────────────────────────────────────────────────


def _settings(**alerts: object) -> Settings:
    return Settings(
        queues=QueuesConfig(backend="memory", dlq_url="memory://queue/orders-dlq"),
        metrics=MetricsConfig(backend="memory"),
        alerts=AlertsConfig(**alerts),  # type: ignore[arg-type]
    )


# ── Metrics sink ────────────────────────────────────────────────


class TestMetricsSink:
    def test_memory_backend(self) -> None:
        assert isinstance(create_metrics_sink(_settings()), InMemoryMetricsSink)

    def test_memory_retention_covers_history_window(self) -> None:
        sink = create_metrics_sink(_settings())
        assert isinstance(sink, InMemoryMetricsSink)
        assert sink.retention_secs == 24 * 3600

    def test_cloudwatch_backend(self) -> None:
        sink = create_metrics_sink(Settings(metrics=MetricsConfig(backend="CloudWatch")))
        assert isinstance(sink, CloudWatchMetricsSink)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_metrics_sink(Settings(metrics=MetricsConfig(backend="statsd")))


# ── Channels ────────────────────────────────────────────────────


class TestChannels:
    def test_no_channels_enabled(self) -> None:
        assert create_channels(_settings()) == []

    def test_sns_enabled(self) -> None:
        channels = create_channels(_settings(sns=SnsConfig(enabled=True, topic_arn="arn:t")))
        assert len(channels) == 1
        assert isinstance(channels[0], SnsChannel)

    def test_sns_without_topic_skipped(self) -> None:
        assert create_channels(_settings(sns=SnsConfig(enabled=True))) == []

    def test_both_channels_enabled(self) -> None:
        channels = create_channels(_settings(
            sns=SnsConfig(enabled=True, topic_arn="arn:t"),
            discord=DiscordConfig(enabled=True, webhook_url=SecretStr("https://x/hook")),
        ))
        assert [type(c) for c in channels] == [SnsChannel, DiscordChannel]


# ── Stack wiring ────────────────────────────────────────────────


class TestMonitorStack:
    def test_stack_types(self) -> None:
        dispatcher, dlq_monitor, perf = create_monitor_stack(_settings())
        assert isinstance(dispatcher, AlertDispatcher)
        assert isinstance(dlq_monitor, DLQMonitor)
        assert isinstance(perf, PerformanceMonitor)
        assert dlq_monitor.queue_name == "orders-dlq"

    def test_throttle_passed_to_dispatcher(self) -> None:
        dispatcher, _, _ = create_monitor_stack(_settings(throttle_secs=120))
        assert dispatcher._throttle_secs == 120

    def test_thresholds_from_settings(self) -> None:
        settings = _settings()
        perf = create_performance_monitor(settings, InMemoryMetricsSink())
        assert perf.get_thresholds() == settings.performance.thresholds

    async def test_dlq_alerts_reach_channels(self) -> None:
        sent: list[str] = []

        class Recorder(SnsChannel):
            async def send(self, msg):  # type: ignore[no-untyped-def]
                sent.append(msg.title)
                return True

        queue = InMemoryQueueProvider("memory://queue/orders-dlq")
        for i in range(25):
            queue.put("{}", message_id=f"m{i}")

        _, dlq_monitor, _ = create_monitor_stack(
            _settings(),
            queue=queue,
            metrics=InMemoryMetricsSink(),
            channels=[Recorder(SnsConfig(enabled=True, topic_arn="arn:t"))],
        )
        await dlq_monitor.collect_and_publish_metrics()
        assert sent == ["DLQ Alert: MESSAGE_ACCUMULATION - HIGH"]

    async def test_performance_alerts_reach_dispatcher(self) -> None:
        ticks = iter([0.0, 20.0])
        settings = _settings()
        dispatcher, _, _ = create_monitor_stack(settings, metrics=InMemoryMetricsSink(), channels=[])
        perf = create_performance_monitor(settings, InMemoryMetricsSink())
        perf._timer = lambda: next(ticks)
        perf.on_alert(dispatcher.on_performance_alert)

        async def op() -> str:
            return "ok"

        assert await perf.monitor_delivery(op) == "ok"
        assert dispatcher.sent_count == 1
