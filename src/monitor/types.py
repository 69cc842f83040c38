"""Domain types for DLQ monitoring, latency tracking and alerting."""

from __future__ import annotations

import time
from enum import IntEnum, StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.core.types import OperationKind


class AlertSeverity(IntEnum):
    """Alert severity — ordered so comparisons work naturally."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


class AlertKind(StrEnum):
    """Rule families evaluated against each DLQ snapshot."""

    ACCUMULATION = "MESSAGE_ACCUMULATION"
    STALENESS = "OLD_MESSAGES"
    HIGH_RATE = "HIGH_RATE"


class AlertRule(BaseModel):
    """Static threshold for one alert kind.

    Units: messages for ACCUMULATION, hours for STALENESS and messages per
    minute for HIGH_RATE.
    """

    model_config = {"frozen": True}

    kind: AlertKind
    threshold: float = Field(ge=0)


class QueueSnapshot(BaseModel):
    """Point-in-time read of a queue; every numeric field is clamped to >= 0."""

    model_config = {"frozen": True}

    queue_id: str
    message_count: int = 0
    oldest_message_age_seconds: float = 0.0
    arrival_rate_per_window: float = 0.0
    taken_at: float = Field(default_factory=time.time)

    @field_validator(
        "message_count",
        "oldest_message_age_seconds",
        "arrival_rate_per_window",
        mode="before",
    )
    @classmethod
    def _clamp_non_negative(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and v < 0:
            return 0
        return v


class Alert(BaseModel):
    """A rule breach found in a snapshot."""

    kind: AlertKind
    severity: AlertSeverity
    message: str
    snapshot: QueueSnapshot
    threshold: float
    observed_value: float


class HealthStatus(StrEnum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class HealthReport(BaseModel):
    status: HealthStatus
    snapshot: QueueSnapshot
    alerts: list[Alert] = Field(default_factory=list)


class HistoryPoint(BaseModel):
    """One hourly bucket of the published DLQ message count."""

    timestamp: float
    average: float = 0.0
    maximum: float = 0.0


class DashboardData(BaseModel):
    current: QueueSnapshot
    alerts: list[Alert] = Field(default_factory=list)
    history: list[HistoryPoint] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ── Performance ─────────────────────────────────────────────────


class PerformanceSeverity(IntEnum):
    """Latency band of a completed operation."""

    NORMAL = 0
    SLOW = 1
    WARNING = 2
    CRITICAL = 3


class PerformanceSample(BaseModel):
    operation: str
    kind: OperationKind
    elapsed_ms: float
    severity: PerformanceSeverity


class PerformanceAlert(BaseModel):
    """Signal raised when a successful operation breached a latency threshold."""

    operation: str
    kind: OperationKind
    severity: PerformanceSeverity
    threshold_name: str  # "warning" or "critical"
    threshold_ms: float
    elapsed_ms: float
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


# ── Outbound alerts ─────────────────────────────────────────────


class AlertMessage(BaseModel):
    """Normalised alert ready for dispatch to channels."""

    severity: AlertSeverity
    title: str
    body: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    source_event_type: str = ""
    timestamp: float = Field(default_factory=time.time)
    raw: dict[str, Any] = Field(default_factory=dict)
