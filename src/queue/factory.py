"""Build a queue provider from settings."""

from __future__ import annotations

from src.core.config import Settings
from src.queue.base import QueueProvider
from src.queue.memory import InMemoryQueueProvider
from src.queue.sqs import SqsQueueProvider


def create_queue_provider(settings: Settings, queue_url: str) -> QueueProvider:
    """Return the provider configured by ``settings.queues.backend``.

    Raises:
        ValueError: If the backend is unknown or an SQS URL is missing.
    """
    backend = settings.queues.backend.lower()
    if backend == "memory":
        return InMemoryQueueProvider(queue_url or "memory://queue/local")
    if backend == "sqs":
        if not queue_url:
            raise ValueError("queue URL must be configured for the sqs backend")
        return SqsQueueProvider(queue_url, settings.aws)
    raise ValueError(f"Unknown queue backend: {settings.queues.backend}")
