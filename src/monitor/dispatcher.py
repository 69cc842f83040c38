"""Central alert dispatcher — routes monitoring alerts to channels with throttling."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from src.monitor.channels import NotificationChannel
from src.monitor.formatters import format_dlq_alert, format_performance_alert
from src.monitor.types import Alert, AlertMessage, AlertSeverity, PerformanceAlert

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes DLQ and performance alerts to notification channels.

    - Every alert is logged via *decision_logger*.
    - CRITICAL alerts bypass the throttle and are dispatched immediately.
    - Other alerts are throttled per ``source_event_type``; a throttle of 0
      dispatches everything.
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        throttle_secs: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channels: list[NotificationChannel] = channels or []
        self._throttle_secs = throttle_secs
        self._clock = clock
        # Tracks the last dispatch time per source_event_type.
        self._last_sent: dict[str, float] = {}
        self._sent_count = 0
        self._suppressed_count = 0

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def suppressed_count(self) -> int:
        return self._suppressed_count

    # ── Callback entry points ───────────────────────────────────

    async def on_dlq_alert(self, alert: Alert) -> None:
        await self._handle(format_dlq_alert(alert))

    async def on_performance_alert(self, alert: PerformanceAlert) -> None:
        await self._handle(format_performance_alert(alert))

    async def send(self, msg: AlertMessage) -> None:
        """Dispatch an AlertMessage directly (bypasses throttle)."""
        self._log_decision(msg, dispatched=True)
        await self._dispatch_to_channels(msg)

    # ── Internal routing ────────────────────────────────────────

    async def _handle(self, msg: AlertMessage) -> None:
        now = self._clock()
        if msg.severity != AlertSeverity.CRITICAL and self._throttle_secs > 0:
            last = self._last_sent.get(msg.source_event_type, -float("inf"))
            if now - last < self._throttle_secs:
                self._suppressed_count += 1
                self._log_decision(msg, dispatched=False)
                return

        self._last_sent[msg.source_event_type] = now
        self._log_decision(msg, dispatched=True)
        await self._dispatch_to_channels(msg)

    def _log_decision(self, msg: AlertMessage, dispatched: bool) -> None:
        decision_logger.info(
            "decision",
            severity=msg.severity.name,
            title=msg.title,
            body=msg.body,
            source_event_type=msg.source_event_type,
            fields=msg.fields,
            dispatched=dispatched,
        )

    async def _dispatch_to_channels(self, msg: AlertMessage) -> None:
        self._sent_count += 1
        for ch in self._channels:
            try:
                delivered = await ch.send(msg)
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=type(ch).__name__,
                    title=msg.title,
                )
                continue
            if not delivered:
                logger.warning(
                    "channel_delivery_failed",
                    channel=type(ch).__name__,
                    title=msg.title,
                )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
