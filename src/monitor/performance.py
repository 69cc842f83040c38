"""PerformanceMonitor — latency banding and metric emission around async operations.

Wraps an awaitable-producing callable, times it, classifies the elapsed time
against per-kind thresholds, and publishes duration/success/failure metrics.
Metric publication and alert callbacks are best-effort: their failures are
logged and never change the wrapped operation's result or exception.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import psutil
import structlog

from src.core.types import (
    MetricDatum,
    MetricUnit,
    OperationKind,
    OperationThresholds,
    PerformanceThresholds,
)
from src.monitor.metrics import MetricsSink
from src.monitor.types import PerformanceAlert, PerformanceSample, PerformanceSeverity

logger = structlog.stdlib.get_logger()

T = TypeVar("T")

PerformanceAlertCallback = Callable[[PerformanceAlert], Awaitable[None] | None]

DEFAULT_NAMESPACE = "NotificationSystem/Performance"


def classify_latency(
    elapsed_ms: float, thresholds: OperationThresholds,
) -> PerformanceSeverity:
    """Map an elapsed time onto a severity band.

    Kinds with an ``escalation_ms`` use NORMAL/SLOW/WARNING/CRITICAL; the
    rest go straight from NORMAL to WARNING at the warning threshold.
    """
    if elapsed_ms >= thresholds.critical_ms:
        return PerformanceSeverity.CRITICAL
    if elapsed_ms >= thresholds.warning_ms:
        if thresholds.escalation_ms is None or elapsed_ms >= thresholds.escalation_ms:
            return PerformanceSeverity.WARNING
        return PerformanceSeverity.SLOW
    return PerformanceSeverity.NORMAL


class PerformanceMonitor:
    """Times operations and emits latency metrics and threshold alerts.

    Usage::

        perf = PerformanceMonitor(metrics)
        perf.on_alert(dispatcher.on_performance_alert)

        result = await perf.monitor_delivery(
            lambda: sink.deliver(notification),
            {"message_id": msg.message_id},
        )
    """

    def __init__(
        self,
        metrics: MetricsSink | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        thresholds: PerformanceThresholds | None = None,
        timer: Callable[[], float] = time.monotonic,
        memory_warning_pct: float = 75.0,
        memory_critical_pct: float = 90.0,
        process: psutil.Process | None = None,
    ) -> None:
        self._metrics = metrics
        self._namespace = namespace
        self._thresholds = thresholds or PerformanceThresholds()
        self._timer = timer
        self._memory_warning_pct = memory_warning_pct
        self._memory_critical_pct = memory_critical_pct
        self._process = process
        self._callbacks: list[PerformanceAlertCallback] = []
        self._last_sample: PerformanceSample | None = None

    # ── Properties / registration ───────────────────────────────

    @property
    def last_sample(self) -> PerformanceSample | None:
        """Sample recorded by the most recent successful operation."""
        return self._last_sample

    def on_alert(self, callback: PerformanceAlertCallback) -> None:
        """Register a callback for threshold breaches."""
        self._callbacks.append(callback)

    def get_thresholds(self) -> PerformanceThresholds:
        return self._thresholds

    def update_thresholds(self, **changes: OperationThresholds) -> PerformanceThresholds:
        """Replace thresholds for the given kinds and return the new set.

        Keyword names are the lower-case kind names, e.g.
        ``update_thresholds(delivery=OperationThresholds(...))``.
        """
        unknown = set(changes) - set(PerformanceThresholds.model_fields)
        if unknown:
            raise ValueError(f"Unknown operation kinds: {sorted(unknown)}")
        self._thresholds = self._thresholds.model_copy(update=changes)
        logger.info(
            "performance_thresholds_updated",
            thresholds=self._thresholds.model_dump(),
        )
        return self._thresholds

    def classify_severity(self, kind: OperationKind, elapsed_ms: float) -> PerformanceSeverity:
        return classify_latency(elapsed_ms, self._thresholds.for_kind(kind))

    # ── Monitoring ──────────────────────────────────────────────

    async def monitor(
        self,
        kind: OperationKind,
        operation: Callable[[], Awaitable[T]],
        context: dict[str, Any] | None = None,
    ) -> T:
        """Await *operation* under timing and return its result.

        Any exception raised by the operation is re-raised unchanged after a
        single failure metric has been emitted.
        """
        ctx = dict(context or {})
        started = self._timer()
        logger.debug("operation_started", operation=kind.value, context=ctx)

        try:
            result = await operation()
        except Exception as exc:
            elapsed_ms = (self._timer() - started) * 1000.0
            logger.error(
                "operation_failed",
                operation=kind.value,
                error_type=type(exc).__name__,
                error=str(exc),
                elapsed_ms=round(elapsed_ms, 2),
                context=ctx,
            )
            await self._publish([
                self._datum("OperationDuration", elapsed_ms, MetricUnit.MILLISECONDS, kind),
                self._datum(
                    "OperationFailure", 1, MetricUnit.COUNT, kind,
                    ErrorType=type(exc).__name__,
                ),
            ])
            raise

        elapsed_ms = (self._timer() - started) * 1000.0
        severity = self.classify_severity(kind, elapsed_ms)
        self._last_sample = PerformanceSample(
            operation=kind.value, kind=kind, elapsed_ms=elapsed_ms, severity=severity,
        )
        logger.info(
            "operation_completed",
            operation=kind.value,
            elapsed_ms=round(elapsed_ms, 2),
            severity=severity.name,
            context=ctx,
        )
        await self._publish([
            self._datum("OperationDuration", elapsed_ms, MetricUnit.MILLISECONDS, kind),
            self._datum("OperationSuccess", 1, MetricUnit.COUNT, kind),
        ])

        if severity > PerformanceSeverity.NORMAL:
            await self._raise_alert(kind, severity, elapsed_ms, ctx)
        return result

    async def monitor_event_processing(
        self, operation: Callable[[], Awaitable[T]], context: dict[str, Any] | None = None,
    ) -> T:
        return await self.monitor(OperationKind.EVENT_PROCESSING, operation, context)

    async def monitor_delivery(
        self, operation: Callable[[], Awaitable[T]], context: dict[str, Any] | None = None,
    ) -> T:
        return await self.monitor(OperationKind.DELIVERY, operation, context)

    async def monitor_batch_processing(
        self, operation: Callable[[], Awaitable[T]], context: dict[str, Any] | None = None,
    ) -> T:
        return await self.monitor(OperationKind.BATCH_PROCESSING, operation, context)

    async def monitor_fan_out_publish(
        self, operation: Callable[[], Awaitable[T]], context: dict[str, Any] | None = None,
    ) -> T:
        return await self.monitor(OperationKind.FAN_OUT_PUBLISH, operation, context)

    # ── System health ───────────────────────────────────────────

    async def monitor_system_health(self) -> dict[str, float] | None:
        """Sample process memory, uptime and CPU time and publish them.

        Returns the sampled values, or None when sampling failed.
        """
        try:
            proc = self._process or psutil.Process(os.getpid())
            with proc.oneshot():
                memory_pct = float(proc.memory_percent())
                rss = float(proc.memory_info().rss)
                uptime = max(0.0, time.time() - proc.create_time())
                cpu = proc.cpu_times()
            health = {
                "memory_percent": memory_pct,
                "memory_rss_bytes": rss,
                "uptime_seconds": uptime,
                "cpu_user_seconds": float(cpu.user),
                "cpu_system_seconds": float(cpu.system),
            }
        except Exception:
            logger.exception("system_health_check_failed")
            return None

        logger.info("system_health", **health)
        await self._publish([
            MetricDatum(name="MemoryUtilization", value=memory_pct, unit=MetricUnit.PERCENT),
            MetricDatum(name="MemoryRss", value=rss, unit=MetricUnit.BYTES),
            MetricDatum(name="Uptime", value=uptime, unit=MetricUnit.SECONDS),
        ])

        if memory_pct > self._memory_critical_pct:
            logger.warning(
                "memory_usage_critical",
                memory_percent=round(memory_pct, 2),
                threshold_pct=self._memory_critical_pct,
                severity="HIGH",
            )
        elif memory_pct > self._memory_warning_pct:
            logger.warning(
                "memory_usage_elevated",
                memory_percent=round(memory_pct, 2),
                threshold_pct=self._memory_warning_pct,
                severity="MEDIUM",
            )
        return health

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _datum(
        name: str,
        value: float,
        unit: MetricUnit,
        kind: OperationKind,
        **extra_dims: str,
    ) -> MetricDatum:
        return MetricDatum(
            name=name,
            value=value,
            unit=unit,
            dimensions={"Operation": kind.value, **extra_dims},
        )

    async def _publish(self, datums: list[MetricDatum]) -> None:
        if self._metrics is None:
            return
        try:
            await self._metrics.publish(self._namespace, datums)
        except Exception:
            logger.exception(
                "performance_metric_publish_failed",
                metrics=[d.name for d in datums],
            )

    async def _raise_alert(
        self,
        kind: OperationKind,
        severity: PerformanceSeverity,
        elapsed_ms: float,
        context: dict[str, Any],
    ) -> None:
        thresholds = self._thresholds.for_kind(kind)
        critical = severity == PerformanceSeverity.CRITICAL
        alert = PerformanceAlert(
            operation=kind.value,
            kind=kind,
            severity=severity,
            threshold_name="critical" if critical else "warning",
            threshold_ms=thresholds.critical_ms if critical else thresholds.warning_ms,
            elapsed_ms=elapsed_ms,
            context={k: str(v) for k, v in context.items()},
        )
        logger.warning(
            "performance_threshold_exceeded",
            operation=kind.value,
            severity=severity.name,
            threshold=alert.threshold_name,
            threshold_ms=alert.threshold_ms,
            elapsed_ms=round(elapsed_ms, 2),
        )
        await self._publish([
            self._datum(
                "PerformanceAlert", 1, MetricUnit.COUNT, kind, Severity=severity.name,
            ),
        ])
        for cb in self._callbacks:
            try:
                result = cb(alert)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("performance_alert_callback_error", operation=kind.value)
