"""InvocationRouter — classify, pick a handler, run it under latency monitoring."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from src.core.types import OperationKind
from src.events.classifier import EventClassifier
from src.events.exceptions import UnroutableInvocationError
from src.events.types import EventCategory, EventClassification
from src.monitor.performance import PerformanceMonitor

logger = structlog.stdlib.get_logger()

InvocationHandler = Callable[[Mapping[str, Any], EventClassification], Awaitable[Any]]


class InvocationRouter:
    """Dispatches classified payloads to the handler registered per category.

    Usage::

        router = InvocationRouter(EventClassifier("notifications"), perf)
        router.register(EventCategory.MESSAGE_BATCH, handle_batch)
        result = await router.route(payload, {"request_id": "abc"})
    """

    def __init__(
        self,
        classifier: EventClassifier | None = None,
        performance: PerformanceMonitor | None = None,
    ) -> None:
        self._classifier = classifier or EventClassifier()
        self._performance = performance
        self._handlers: dict[EventCategory, InvocationHandler] = {}

    def register(self, category: EventCategory, handler: InvocationHandler) -> None:
        if category == EventCategory.UNKNOWN:
            raise ValueError("Cannot register a handler for UNKNOWN payloads")
        self._handlers[category] = handler

    async def route(
        self,
        payload: Any,
        invocation_meta: Any = None,
    ) -> Any:
        """Classify *payload* and await the matching handler.

        Raises:
            UnroutableInvocationError: If the payload is invalid or no handler
                is registered for its category.
        """
        classification = self._classifier.classify(payload, invocation_meta)
        if not classification.valid:
            logger.warning("invocation_unroutable", errors=classification.errors)
            raise UnroutableInvocationError(
                "; ".join(classification.errors) or "Invalid invocation payload",
                classification,
            )

        handler = self._handlers.get(classification.category)
        if handler is None:
            logger.warning("invocation_handler_missing", category=classification.category.value)
            raise UnroutableInvocationError(
                f"No handler registered for {classification.category.value}",
                classification,
            )

        context = {
            "category": classification.category.value,
            "request_id": classification.metadata.get("request_id"),
        }
        if self._performance is None:
            return await handler(payload, classification)

        kind = (
            OperationKind.BATCH_PROCESSING
            if classification.category == EventCategory.MESSAGE_BATCH
            else OperationKind.EVENT_PROCESSING
        )
        if classification.category == EventCategory.MESSAGE_BATCH:
            context["batch_size"] = classification.metadata.get("record_count")
        return await self._performance.monitor(
            kind, lambda: handler(payload, classification), context,
        )
