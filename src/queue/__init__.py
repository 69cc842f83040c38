"""Queue providers — SQS and in-memory."""

from src.queue.base import QueueProvider, queue_name_from_url
from src.queue.exceptions import (
    ProviderError,
    QueueAttributesError,
    QueueDeleteError,
    QueueError,
    QueueReceiveError,
    QueueReleaseError,
    QueueSendError,
)
from src.queue.factory import create_queue_provider
from src.queue.memory import InMemoryQueueProvider
from src.queue.sqs import SqsQueueProvider

__all__ = [
    "InMemoryQueueProvider",
    "ProviderError",
    "QueueAttributesError",
    "QueueDeleteError",
    "QueueError",
    "QueueProvider",
    "QueueReceiveError",
    "QueueReleaseError",
    "QueueSendError",
    "SqsQueueProvider",
    "create_queue_provider",
    "queue_name_from_url",
]
