"""Exception hierarchy for external providers (queues, metrics)."""

from __future__ import annotations


class ProviderError(Exception):
    """Base exception for failures reported by an external provider."""


class QueueError(ProviderError):
    """Base exception for queue provider errors."""


class QueueReceiveError(QueueError):
    """Receiving a batch of messages failed."""


class QueueSendError(QueueError):
    """Sending a message failed."""


class QueueDeleteError(QueueError):
    """Deleting a message by its receipt handle failed."""


class QueueAttributesError(QueueError):
    """Reading queue attributes failed."""


class QueueReleaseError(QueueError):
    """Returning a received message to the queue failed."""
