"""Tests for metrics sinks — in-memory aggregation and CloudWatch request shapes."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from src.core.types import MetricDatum, MetricUnit
from src.monitor.exceptions import MetricsPublishError, MetricsQueryError
from src.monitor.metrics import CloudWatchMetricsSink, InMemoryMetricsSink

NOW = 10_000.0
DIMS = {"QueueName": "q-dlq"}


def _datum(name: str, value: float, ts: float, dims: dict[str, str] | None = None) -> MetricDatum:
    return MetricDatum(name=name, value=value, timestamp=ts, dimensions=DIMS if dims is None else dims)


class TestInMemoryMetricsSink:
    async def test_published_filter(self) -> None:
        sink = InMemoryMetricsSink(clock=lambda: NOW)
        await sink.publish("A", [_datum("x", 1, NOW), _datum("y", 2, NOW)])
        await sink.publish("B", [_datum("x", 3, NOW)])
        assert [d.value for d in sink.published("A")] == [1, 2]
        assert [d.value for d in sink.published(name="x")] == [1, 3]

    async def test_query_buckets_by_period(self) -> None:
        sink = InMemoryMetricsSink(clock=lambda: NOW)
        await sink.publish("AWS/SQS", [
            _datum("depth", 4, NOW - 500),
            _datum("depth", 6, NOW - 450),
            _datum("depth", 20, NOW - 100),
        ])
        points = await sink.query(
            "AWS/SQS", "depth", DIMS, window_secs=600, period_secs=300,
            statistics=["Average", "Maximum"],
        )
        assert len(points) == 2
        assert points[0].get("Average") == 5
        assert points[0].get("Maximum") == 6
        assert points[1].get("Average") == 20
        assert points[0].timestamp < points[1].timestamp

    async def test_query_ignores_other_dimensions_and_old_points(self) -> None:
        sink = InMemoryMetricsSink(clock=lambda: NOW)
        await sink.publish("AWS/SQS", [
            _datum("depth", 1, NOW - 10, {"QueueName": "other"}),
            _datum("depth", 1, NOW - 10_000),
        ])
        assert await sink.query("AWS/SQS", "depth", DIMS, 600, 300, ["Average"]) == []

    async def test_old_datums_pruned_on_publish(self) -> None:
        now = [NOW]
        sink = InMemoryMetricsSink(clock=lambda: now[0], retention_secs=600)
        await sink.publish("NS", [_datum("depth", 1, NOW), _datum("depth", 2, NOW - 700)])
        assert [d.value for d in sink.published()] == [1]

        now[0] = NOW + 601
        await sink.publish("NS", [_datum("depth", 3, NOW + 601)])
        assert [d.value for d in sink.published()] == [3]

    async def test_retention_bounds_long_runs(self) -> None:
        now = [NOW]
        sink = InMemoryMetricsSink(clock=lambda: now[0], retention_secs=300)
        for tick in range(100):
            now[0] = NOW + tick * 60
            await sink.publish("NS", [_datum("depth", tick, now[0])])
        assert len(sink.published()) == 6

    async def test_unknown_statistic(self) -> None:
        sink = InMemoryMetricsSink(clock=lambda: NOW)
        with pytest.raises(MetricsQueryError):
            await sink.query("A", "x", {}, 60, 60, ["p99"])


class TestCloudWatchMetricsSink:
    async def test_publish_chunks(self) -> None:
        client = MagicMock()
        sink = CloudWatchMetricsSink(client=client)
        datums = [MetricDatum(name=f"m{i}", value=i, unit=MetricUnit.COUNT) for i in range(45)]
        await sink.publish("NS", datums)
        assert client.put_metric_data.call_count == 3
        first = client.put_metric_data.call_args_list[0].kwargs
        assert first["Namespace"] == "NS"
        assert len(first["MetricData"]) == 20
        assert first["MetricData"][0]["Unit"] == "Count"

    async def test_publish_dimensions(self) -> None:
        client = MagicMock()
        sink = CloudWatchMetricsSink(client=client)
        await sink.publish("NS", [_datum("DLQMessageCount", 3, NOW)])
        entry = client.put_metric_data.call_args.kwargs["MetricData"][0]
        assert entry["Dimensions"] == [{"Name": "QueueName", "Value": "q-dlq"}]

    async def test_publish_error_wrapped(self) -> None:
        client = MagicMock()
        client.put_metric_data.side_effect = ClientError(
            {"Error": {"Code": "Throttling", "Message": "slow down"}}, "PutMetricData",
        )
        with pytest.raises(MetricsPublishError):
            await CloudWatchMetricsSink(client=client).publish("NS", [_datum("x", 1, NOW)])

    async def test_query_sorted(self) -> None:
        client = MagicMock()
        client.get_metric_statistics.return_value = {
            "Datapoints": [
                {"Timestamp": datetime.fromtimestamp(NOW - 100, tz=UTC), "Average": 9.0},
                {"Timestamp": datetime.fromtimestamp(NOW - 400, tz=UTC), "Average": 3.0},
            ],
        }
        sink = CloudWatchMetricsSink(client=client, clock=lambda: NOW)
        points = await sink.query("AWS/SQS", "depth", DIMS, 600, 300, ["Average"])
        assert [p.get("Average") for p in points] == [3.0, 9.0]
        kwargs = client.get_metric_statistics.call_args.kwargs
        assert kwargs["Period"] == 300
        assert kwargs["Dimensions"] == [{"Name": "QueueName", "Value": "q-dlq"}]
        assert kwargs["EndTime"] - kwargs["StartTime"] == (
            datetime.fromtimestamp(NOW, tz=UTC) - datetime.fromtimestamp(NOW - 600, tz=UTC)
        )

    async def test_query_error_wrapped(self) -> None:
        client = MagicMock()
        client.get_metric_statistics.side_effect = ClientError(
            {"Error": {"Code": "InvalidParameter", "Message": "bad"}}, "GetMetricStatistics",
        )
        with pytest.raises(MetricsQueryError):
            await CloudWatchMetricsSink(client=client).query("NS", "x", {}, 60, 60, ["Sum"])
