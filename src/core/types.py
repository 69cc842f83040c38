"""Shared domain types — queue messages, metric datums, latency thresholds."""

from __future__ import annotations

import time
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class MetricUnit(StrEnum):
    """Units understood by the metrics sink (CloudWatch naming)."""

    COUNT = "Count"
    MILLISECONDS = "Milliseconds"
    SECONDS = "Seconds"
    PERCENT = "Percent"
    BYTES = "Bytes"
    NONE = "None"


class MetricDatum(BaseModel):
    """A single metric observation ready to be published."""

    name: str
    value: float
    unit: MetricUnit = MetricUnit.COUNT
    dimensions: dict[str, str] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class MetricDatapoint(BaseModel):
    """One aggregated period returned by a metrics query."""

    timestamp: float
    statistics: dict[str, float] = Field(default_factory=dict)

    def get(self, statistic: str, default: float = 0.0) -> float:
        return self.statistics.get(statistic, default)


class QueueMessage(BaseModel):
    """A message received from a queue provider.

    ``receipt_handle`` is the opaque handle needed to delete or release the
    message; it is only valid for the receive that produced it.
    """

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = Field(default=0, ge=0)
    attributes: dict[str, str] = Field(default_factory=dict)


# ── Latency thresholds ──────────────────────────────────────────


class OperationKind(StrEnum):
    """Operations wrapped by the performance monitor."""

    EVENT_PROCESSING = "EVENT_PROCESSING"
    DELIVERY = "DELIVERY"
    BATCH_PROCESSING = "BATCH_PROCESSING"
    FAN_OUT_PUBLISH = "FAN_OUT_PUBLISH"


class OperationThresholds(BaseModel):
    """Warning/critical latency thresholds for one operation kind.

    When ``escalation_ms`` is set the kind uses a four-band scale:
    ``[warning, escalation)`` is SLOW and ``[escalation, critical)`` is WARNING.
    """

    model_config = {"frozen": True}

    warning_ms: float = Field(gt=0)
    critical_ms: float = Field(gt=0)
    escalation_ms: float | None = None

    @model_validator(mode="after")
    def _check_order(self) -> OperationThresholds:
        if self.critical_ms < self.warning_ms:
            raise ValueError("critical_ms must be >= warning_ms")
        if self.escalation_ms is not None and not (
            self.warning_ms <= self.escalation_ms <= self.critical_ms
        ):
            raise ValueError("escalation_ms must lie between warning_ms and critical_ms")
        return self


class PerformanceThresholds(BaseModel):
    """Immutable threshold set for every operation kind."""

    model_config = {"frozen": True}

    event_processing: OperationThresholds = OperationThresholds(
        warning_ms=5000, critical_ms=30000, escalation_ms=10000,
    )
    delivery: OperationThresholds = OperationThresholds(warning_ms=3000, critical_ms=10000)
    batch_processing: OperationThresholds = OperationThresholds(
        warning_ms=10000, critical_ms=60000,
    )
    fan_out_publish: OperationThresholds = OperationThresholds(
        warning_ms=2000, critical_ms=5000,
    )

    def for_kind(self, kind: OperationKind) -> OperationThresholds:
        return getattr(self, kind.value.lower())  # type: ignore[no-any-return]
