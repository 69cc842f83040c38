"""Metrics sinks — CloudWatch and in-memory.

A sink publishes :class:`MetricDatum` batches under a namespace and answers
aggregated statistics queries over a trailing window. The DLQ monitor reads
the source queue metrics and the performance monitor writes latency metrics
through the same interface.
"""

from __future__ import annotations

import abc
import asyncio
import math
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.core.config import AwsConfig
from src.core.types import MetricDatapoint, MetricDatum
from src.monitor.exceptions import MetricsPublishError, MetricsQueryError

logger = structlog.get_logger(__name__)

# PutMetricData accepts at most this many datums per call.
_PUBLISH_CHUNK = 20

_STATISTICS = ("Average", "Maximum", "Minimum", "Sum", "SampleCount")

DEFAULT_RETENTION_SECS = 24 * 3600


class MetricsSink(abc.ABC):
    """Base class for metrics providers."""

    @abc.abstractmethod
    async def publish(self, namespace: str, datums: Sequence[MetricDatum]) -> None:
        """Publish *datums* under *namespace*."""

    @abc.abstractmethod
    async def query(
        self,
        namespace: str,
        metric: str,
        dimensions: Mapping[str, str],
        window_secs: float,
        period_secs: int,
        statistics: Sequence[str],
    ) -> list[MetricDatapoint]:
        """Return datapoints for the trailing window, oldest first."""


# ── CloudWatch ──────────────────────────────────────────────────


def _to_cloudwatch(datum: MetricDatum) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "MetricName": datum.name,
        "Value": datum.value,
        "Unit": datum.unit.value,
        "Timestamp": datetime.fromtimestamp(datum.timestamp, tz=UTC),
    }
    if datum.dimensions:
        entry["Dimensions"] = [
            {"Name": k, "Value": v} for k, v in datum.dimensions.items()
        ]
    return entry


class CloudWatchMetricsSink(MetricsSink):
    """Metrics sink backed by Amazon CloudWatch (boto3 in a worker thread)."""

    def __init__(
        self,
        aws: AwsConfig | None = None,
        client: Any | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._aws = aws or AwsConfig()
        self._client = client
        self._clock = clock

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "cloudwatch",
                region_name=self._aws.region,
                endpoint_url=self._aws.endpoint_url,
            )
        return self._client

    async def publish(self, namespace: str, datums: Sequence[MetricDatum]) -> None:
        entries = [_to_cloudwatch(d) for d in datums]
        client = self._get_client()
        for i in range(0, len(entries), _PUBLISH_CHUNK):
            try:
                await asyncio.to_thread(
                    client.put_metric_data,
                    Namespace=namespace,
                    MetricData=entries[i:i + _PUBLISH_CHUNK],
                )
            except (BotoCoreError, ClientError) as exc:
                raise MetricsPublishError(
                    f"Failed to publish {len(entries)} datums to {namespace}: {exc}"
                ) from exc

    async def query(
        self,
        namespace: str,
        metric: str,
        dimensions: Mapping[str, str],
        window_secs: float,
        period_secs: int,
        statistics: Sequence[str],
    ) -> list[MetricDatapoint]:
        end = self._clock()
        try:
            response = await asyncio.to_thread(
                self._get_client().get_metric_statistics,
                Namespace=namespace,
                MetricName=metric,
                Dimensions=[{"Name": k, "Value": v} for k, v in dimensions.items()],
                StartTime=datetime.fromtimestamp(end - window_secs, tz=UTC),
                EndTime=datetime.fromtimestamp(end, tz=UTC),
                Period=period_secs,
                Statistics=list(statistics),
            )
        except (BotoCoreError, ClientError) as exc:
            raise MetricsQueryError(
                f"Failed to query {namespace}/{metric}: {exc}"
            ) from exc

        points: list[MetricDatapoint] = []
        for raw in response.get("Datapoints", []):
            ts = raw.get("Timestamp")
            timestamp = ts.timestamp() if isinstance(ts, datetime) else float(ts or 0)
            stats = {s: float(raw[s]) for s in statistics if s in raw}
            points.append(MetricDatapoint(timestamp=timestamp, statistics=stats))
        points.sort(key=lambda p: p.timestamp)
        return points


# ── In-memory ───────────────────────────────────────────────────


def _aggregate(values: list[float], statistics: Sequence[str]) -> dict[str, float]:
    computed = {
        "Average": sum(values) / len(values),
        "Maximum": max(values),
        "Minimum": min(values),
        "Sum": sum(values),
        "SampleCount": float(len(values)),
    }
    return {s: computed[s] for s in statistics if s in computed}


class InMemoryMetricsSink(MetricsSink):
    """Keeps published datums in memory and aggregates them on query.

    Used for local runs and tests. Datums published to any namespace
    (including the source queue namespace) can be queried back. Datums older
    than *retention_secs* are dropped on publish; keep it at least as long as
    the widest query window.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        retention_secs: float = DEFAULT_RETENTION_SECS,
    ) -> None:
        self._clock = clock
        self._retention_secs = retention_secs
        self._datums: list[tuple[str, MetricDatum]] = []

    @property
    def retention_secs(self) -> float:
        return self._retention_secs

    async def publish(self, namespace: str, datums: Sequence[MetricDatum]) -> None:
        for datum in datums:
            self._datums.append((namespace, datum))
        self._prune()

    def _prune(self) -> None:
        cutoff = self._clock() - self._retention_secs
        kept = [(ns, d) for ns, d in self._datums if d.timestamp >= cutoff]
        if len(kept) < len(self._datums):
            logger.debug("metrics_pruned", dropped=len(self._datums) - len(kept), kept=len(kept))
        self._datums = kept

    async def query(
        self,
        namespace: str,
        metric: str,
        dimensions: Mapping[str, str],
        window_secs: float,
        period_secs: int,
        statistics: Sequence[str],
    ) -> list[MetricDatapoint]:
        unknown = [s for s in statistics if s not in _STATISTICS]
        if unknown:
            raise MetricsQueryError(f"Unsupported statistics: {unknown}")

        end = self._clock()
        start = end - window_secs
        buckets: dict[int, list[float]] = {}
        for ns, datum in self._datums:
            if ns != namespace or datum.name != metric:
                continue
            if dict(dimensions) != datum.dimensions:
                continue
            if not start <= datum.timestamp <= end:
                continue
            index = min(
                math.floor((datum.timestamp - start) / period_secs),
                max(0, math.ceil(window_secs / period_secs) - 1),
            )
            buckets.setdefault(index, []).append(datum.value)

        return [
            MetricDatapoint(
                timestamp=start + index * period_secs,
                statistics=_aggregate(values, statistics),
            )
            for index, values in sorted(buckets.items())
        ]

    # ── Inspection helpers ──────────────────────────────────────

    def published(
        self, namespace: str | None = None, name: str | None = None,
    ) -> list[MetricDatum]:
        """Return published datums, optionally filtered by namespace and name."""
        return [
            d for ns, d in self._datums
            if (namespace is None or ns == namespace)
            and (name is None or d.name == name)
        ]

    def clear(self) -> None:
        self._datums.clear()
