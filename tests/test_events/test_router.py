"""Tests for InvocationRouter — handler dispatch and monitored execution."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from src.events.exceptions import UnroutableInvocationError
from src.events.router import InvocationRouter
from src.events.types import EventCategory, EventClassification
from src.monitor.metrics import InMemoryMetricsSink
from src.monitor.performance import PerformanceMonitor

SQS_PAYLOAD = {
    "Records": [
        {"eventSource": "aws:sqs", "messageId": "m1", "receiptHandle": "r1", "body": "{}"},
    ],
}
HTTP_PAYLOAD = {"httpMethod": "GET", "path": "/health"}


class Recorder:
    def __init__(self, result: Any = "handled") -> None:
        self.calls: list[tuple[Mapping[str, Any], EventClassification]] = []
        self._result = result

    async def __call__(self, payload: Mapping[str, Any], classification: EventClassification) -> Any:
        self.calls.append((payload, classification))
        return self._result


class TestRegistration:
    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(ValueError):
            InvocationRouter().register(EventCategory.UNKNOWN, Recorder())


class TestRoute:
    async def test_dispatches_by_category(self) -> None:
        batch, http = Recorder("batch"), Recorder("http")
        router = InvocationRouter()
        router.register(EventCategory.MESSAGE_BATCH, batch)
        router.register(EventCategory.HTTP_REQUEST, http)

        assert await router.route(SQS_PAYLOAD) == "batch"
        assert await router.route(HTTP_PAYLOAD) == "http"
        assert len(batch.calls) == 1
        assert batch.calls[0][1].category == EventCategory.MESSAGE_BATCH

    async def test_invalid_payload_raises_with_classification(self) -> None:
        router = InvocationRouter()
        router.register(EventCategory.MESSAGE_BATCH, Recorder())
        with pytest.raises(UnroutableInvocationError) as exc_info:
            await router.route({"Records": []})
        assert exc_info.value.classification.errors == ["Records array is empty"]
        assert "Records array is empty" in str(exc_info.value)

    async def test_missing_handler_raises(self) -> None:
        router = InvocationRouter()
        with pytest.raises(UnroutableInvocationError, match="CHANGE_FEED"):
            await router.route({
                "Records": [{"eventSource": "aws:dynamodb", "eventName": "MODIFY"}],
            })

    async def test_handler_error_propagates(self) -> None:
        async def broken(payload: Mapping[str, Any], classification: EventClassification) -> None:
            raise RuntimeError("handler failed")

        router = InvocationRouter()
        router.register(EventCategory.HTTP_REQUEST, broken)
        with pytest.raises(RuntimeError, match="handler failed"):
            await router.route(HTTP_PAYLOAD)


class TestMonitoredRoute:
    async def test_batch_timed_as_batch_processing(self) -> None:
        sink = InMemoryMetricsSink()
        router = InvocationRouter(performance=PerformanceMonitor(sink))
        router.register(EventCategory.MESSAGE_BATCH, Recorder())

        assert await router.route(SQS_PAYLOAD, {"request_id": "req-9"}) == "handled"
        [success] = sink.published(name="OperationSuccess")
        assert success.dimensions == {"Operation": "BATCH_PROCESSING"}

    async def test_http_timed_as_event_processing(self) -> None:
        sink = InMemoryMetricsSink()
        router = InvocationRouter(performance=PerformanceMonitor(sink))
        router.register(EventCategory.HTTP_REQUEST, Recorder())

        await router.route(HTTP_PAYLOAD)
        [success] = sink.published(name="OperationSuccess")
        assert success.dimensions == {"Operation": "EVENT_PROCESSING"}

    async def test_failure_recorded_and_reraised(self) -> None:
        async def broken(payload: Mapping[str, Any], classification: EventClassification) -> None:
            raise ValueError("bad notification")

        sink = InMemoryMetricsSink()
        router = InvocationRouter(performance=PerformanceMonitor(sink))
        router.register(EventCategory.HTTP_REQUEST, broken)

        with pytest.raises(ValueError):
            await router.route(HTTP_PAYLOAD)
        [failure] = sink.published(name="OperationFailure")
        assert failure.dimensions["ErrorType"] == "ValueError"
