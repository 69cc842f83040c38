"""DLQMonitor — polls a dead-letter queue, publishes snapshots and raises alerts.

Each tick reads the queue depth from the provider, the oldest-message age and
depth trend from the metrics sink, publishes the snapshot under the DLQ
namespace and evaluates the alert rules. Alerts go to registered callbacks
(normally ``AlertDispatcher.on_dlq_alert``).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence

import structlog

from src.core.config import DLQMonitorConfig
from src.core.types import MetricDatum, MetricUnit
from src.monitor.metrics import MetricsSink
from src.monitor.types import (
    Alert,
    AlertKind,
    AlertRule,
    AlertSeverity,
    DashboardData,
    HealthReport,
    HealthStatus,
    HistoryPoint,
    QueueSnapshot,
)
from src.queue.base import QueueProvider

logger = structlog.stdlib.get_logger()

DLQAlertCallback = Callable[[Alert], Awaitable[None] | None]
SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_NAMESPACE = "NotificationSystem/DLQ"
SOURCE_NAMESPACE = "AWS/SQS"

_COUNT_BANDS = ((50, AlertSeverity.CRITICAL), (20, AlertSeverity.HIGH), (10, AlertSeverity.MEDIUM))
_AGE_HOURS_BANDS = ((24, AlertSeverity.CRITICAL), (12, AlertSeverity.HIGH), (6, AlertSeverity.MEDIUM))


def _band(value: float, bands: tuple[tuple[float, AlertSeverity], ...]) -> AlertSeverity:
    for limit, severity in bands:
        if value > limit:
            return severity
    return AlertSeverity.LOW


def rules_from_config(config: DLQMonitorConfig) -> list[AlertRule]:
    """Build the three standard rules from monitor configuration."""
    return [
        AlertRule(kind=AlertKind.ACCUMULATION, threshold=config.message_count_threshold),
        AlertRule(kind=AlertKind.STALENESS, threshold=config.oldest_message_age_hours),
        AlertRule(kind=AlertKind.HIGH_RATE, threshold=config.message_rate_per_minute),
    ]


def evaluate_alerts(
    snapshot: QueueSnapshot,
    rules: Sequence[AlertRule],
    rate_divisor: float = 60,
) -> list[Alert]:
    """Return one alert per rule whose threshold the snapshot exceeds.

    Pure function: no I/O, no logging.
    """
    alerts: list[Alert] = []
    name = snapshot.queue_id
    for rule in rules:
        if rule.kind == AlertKind.ACCUMULATION:
            observed = float(snapshot.message_count)
            if observed > rule.threshold:
                alerts.append(Alert(
                    kind=rule.kind,
                    severity=_band(observed, _COUNT_BANDS),
                    message=(
                        f"DLQ {name} has {snapshot.message_count} messages "
                        f"(threshold: {rule.threshold:g})"
                    ),
                    snapshot=snapshot,
                    threshold=rule.threshold,
                    observed_value=observed,
                ))
        elif rule.kind == AlertKind.STALENESS:
            observed = snapshot.oldest_message_age_seconds / 3600
            if observed > rule.threshold:
                alerts.append(Alert(
                    kind=rule.kind,
                    severity=_band(observed, _AGE_HOURS_BANDS),
                    message=(
                        f"DLQ {name} has messages older than {observed:.1f} hours "
                        f"(threshold: {rule.threshold:g}h)"
                    ),
                    snapshot=snapshot,
                    threshold=rule.threshold,
                    observed_value=observed,
                ))
        elif rule.kind == AlertKind.HIGH_RATE:
            observed = snapshot.arrival_rate_per_window / max(rate_divisor, 1e-9)
            if observed > rule.threshold:
                alerts.append(Alert(
                    kind=rule.kind,
                    severity=AlertSeverity.HIGH,
                    message=(
                        f"DLQ {name} receiving messages at {observed:.2f}/min "
                        f"(threshold: {rule.threshold:g}/min)"
                    ),
                    snapshot=snapshot,
                    threshold=rule.threshold,
                    observed_value=observed,
                ))
    return alerts


def health_from_alerts(alerts: Sequence[Alert]) -> HealthStatus:
    if any(a.severity == AlertSeverity.CRITICAL for a in alerts):
        return HealthStatus.CRITICAL
    if any(a.severity in (AlertSeverity.HIGH, AlertSeverity.MEDIUM) for a in alerts):
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def recommendations_for(snapshot: QueueSnapshot, alerts: Sequence[Alert]) -> list[str]:
    kinds = {a.kind for a in alerts}
    recs: list[str] = []
    if snapshot.message_count > 0:
        recs.append("Analyze DLQ messages to identify root causes")
        recs.append("Consider reprocessing messages after fixing underlying issues")
    if AlertKind.ACCUMULATION in kinds:
        recs.append("Investigate notification service for processing failures")
        recs.append("Check notification handler logs for error patterns")
    if AlertKind.STALENESS in kinds:
        recs.append("Review old messages for manual processing or purging")
        recs.append("Consider implementing message TTL to prevent indefinite accumulation")
    if AlertKind.HIGH_RATE in kinds:
        recs.append("Monitor upstream services for increased error rates")
        recs.append("Consider scaling notification processing capacity")
    if not recs:
        recs.append("DLQ is healthy - continue monitoring")
    return recs


class DLQMonitor:
    """Periodic DLQ observer with on-demand health and dashboard queries.

    Usage::

        monitor = DLQMonitor(dlq, metrics, settings.dlq_monitor)
        monitor.on_alert(dispatcher.on_dlq_alert)
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        queue: QueueProvider,
        metrics: MetricsSink,
        config: DLQMonitorConfig | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        source_namespace: str = SOURCE_NAMESPACE,
        clock: Callable[[], float] = time.time,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._queue = queue
        self._metrics = metrics
        self._config = config or DLQMonitorConfig()
        self._namespace = namespace
        self._source_namespace = source_namespace
        self._clock = clock
        self._sleep = sleep
        self._rules = rules_from_config(self._config)
        self._callbacks: list[DLQAlertCallback] = []

        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._tick_count = 0
        self._last_snapshot: QueueSnapshot | None = None

    # ── Properties ──────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        """Number of completed loop iterations, failed ones included."""
        return self._tick_count

    @property
    def last_snapshot(self) -> QueueSnapshot | None:
        """Snapshot of the most recent tick."""
        return self._last_snapshot

    @property
    def rules(self) -> list[AlertRule]:
        return list(self._rules)

    @property
    def queue_name(self) -> str:
        return self._queue.queue_name

    def on_alert(self, callback: DLQAlertCallback) -> None:
        """Register a callback invoked for every alert raised by a tick."""
        self._callbacks.append(callback)

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            logger.warning("dlq_monitor_already_running", queue=self.queue_name)
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "dlq_monitor_started",
            queue=self.queue_name,
            interval_secs=self._config.interval_secs,
        )

    async def stop(self) -> None:
        """Stop the polling loop."""
        if not self._running:
            logger.warning("dlq_monitor_not_running", queue=self.queue_name)
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("dlq_monitor_stopped", queue=self.queue_name, ticks=self._tick_count)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.collect_and_publish_metrics()
            except Exception:
                logger.exception("dlq_tick_failed", queue=self.queue_name)
            self._tick_count += 1
            await self._sleep(self._config.interval_secs)

    # ── Tick ────────────────────────────────────────────────────

    async def collect_and_publish_metrics(self) -> QueueSnapshot:
        """Run one tick: snapshot, publish, evaluate and notify.

        Provider errors propagate to the caller.
        """
        snapshot = await self.take_snapshot()
        self._last_snapshot = snapshot
        await self._publish_snapshot(snapshot)
        alerts = self.evaluate(snapshot)
        for alert in alerts:
            await self._emit(alert)
        return snapshot

    async def take_snapshot(self) -> QueueSnapshot:
        """Read the current queue state. Does not update ``last_snapshot``."""
        attributes = await self._queue.get_attributes(["ApproximateNumberOfMessages"])
        try:
            count = int(attributes.get("ApproximateNumberOfMessages", "0"))
        except ValueError:
            count = 0
        return QueueSnapshot(
            queue_id=self.queue_name,
            message_count=count,
            oldest_message_age_seconds=await self._oldest_message_age(),
            arrival_rate_per_window=await self._arrival_rate(),
            taken_at=self._clock(),
        )

    def evaluate(self, snapshot: QueueSnapshot) -> list[Alert]:
        return evaluate_alerts(snapshot, self._rules, self._config.rate_divisor)

    async def _oldest_message_age(self) -> float:
        window = self._config.rate_window_secs
        try:
            points = await self._metrics.query(
                self._source_namespace,
                "ApproximateAgeOfOldestMessage",
                {"QueueName": self.queue_name},
                window_secs=window,
                period_secs=window,
                statistics=["Maximum"],
            )
        except Exception:
            logger.warning("dlq_oldest_age_unavailable", queue=self.queue_name, exc_info=True)
            return 0.0
        return points[-1].get("Maximum") if points else 0.0

    async def _arrival_rate(self) -> float:
        window = self._config.rate_window_secs
        try:
            points = await self._metrics.query(
                self._source_namespace,
                "ApproximateNumberOfMessages",
                {"QueueName": self.queue_name},
                window_secs=2 * window,
                period_secs=window,
                statistics=["Average"],
            )
        except Exception:
            logger.warning("dlq_message_rate_unavailable", queue=self.queue_name, exc_info=True)
            return 0.0
        if len(points) < 2:
            return 0.0
        return max(0.0, points[-1].get("Average") - points[-2].get("Average"))

    async def _publish_snapshot(self, snapshot: QueueSnapshot) -> None:
        dims = {"QueueName": snapshot.queue_id}
        await self._metrics.publish(self._namespace, [
            MetricDatum(
                name="DLQMessageCount", value=snapshot.message_count,
                unit=MetricUnit.COUNT, dimensions=dims, timestamp=snapshot.taken_at,
            ),
            MetricDatum(
                name="DLQOldestMessageAge", value=snapshot.oldest_message_age_seconds,
                unit=MetricUnit.SECONDS, dimensions=dims, timestamp=snapshot.taken_at,
            ),
            MetricDatum(
                name="DLQMessageRate", value=snapshot.arrival_rate_per_window,
                unit=MetricUnit.COUNT, dimensions=dims, timestamp=snapshot.taken_at,
            ),
        ])
        logger.info(
            "dlq_metrics_published",
            queue=snapshot.queue_id,
            message_count=snapshot.message_count,
            oldest_message_age_seconds=snapshot.oldest_message_age_seconds,
            arrival_rate=snapshot.arrival_rate_per_window,
        )

    async def _emit(self, alert: Alert) -> None:
        logger.warning(
            "dlq_alert",
            kind=alert.kind.value,
            severity=alert.severity.name,
            alert_message=alert.message,
        )
        for cb in self._callbacks:
            try:
                result = cb(alert)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("dlq_alert_callback_error", kind=alert.kind.value)

    # ── On-demand queries ───────────────────────────────────────

    async def get_health_status(self) -> HealthReport:
        """Evaluate the current queue state without publishing or alerting."""
        snapshot = await self.take_snapshot()
        alerts = self.evaluate(snapshot)
        return HealthReport(status=health_from_alerts(alerts), snapshot=snapshot, alerts=alerts)

    async def get_dashboard_data(self) -> DashboardData:
        snapshot = await self.take_snapshot()
        alerts = self.evaluate(snapshot)
        return DashboardData(
            current=snapshot,
            alerts=alerts,
            history=await self._history(),
            recommendations=recommendations_for(snapshot, alerts),
        )

    async def _history(self) -> list[HistoryPoint]:
        try:
            points = await self._metrics.query(
                self._namespace,
                "DLQMessageCount",
                {"QueueName": self.queue_name},
                window_secs=self._config.history_hours * 3600,
                period_secs=3600,
                statistics=["Average", "Maximum"],
            )
        except Exception:
            logger.warning("dlq_history_unavailable", queue=self.queue_name, exc_info=True)
            return []
        return [
            HistoryPoint(
                timestamp=p.timestamp,
                average=p.get("Average"),
                maximum=p.get("Maximum"),
            )
            for p in points
        ]
