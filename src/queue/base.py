"""Abstract queue provider — the read/send/delete capability used by monitors and redrive."""

from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence

from src.core.types import QueueMessage


def queue_name_from_url(queue_url: str) -> str:
    """Return the trailing queue name of an SQS-style queue URL."""
    return queue_url.rstrip("/").rsplit("/", 1)[-1]


class QueueProvider(abc.ABC):
    """Base class for queue providers.

    Providers must offer at-least-once receive and expose a per-message
    receive count. Received messages stay invisible to other receivers until
    they are deleted, released, or their visibility timeout expires.
    """

    @property
    @abc.abstractmethod
    def queue_url(self) -> str:
        """URL (or identifier) of the underlying queue."""

    @property
    def queue_name(self) -> str:
        return queue_name_from_url(self.queue_url)

    @abc.abstractmethod
    async def receive_batch(
        self, max_messages: int = 10, wait_seconds: int = 0,
    ) -> list[QueueMessage]:
        """Receive up to *max_messages* messages; empty list when none are visible."""

    @abc.abstractmethod
    async def send(self, body: str, attributes: Mapping[str, str] | None = None) -> str:
        """Send a message and return its provider-assigned id."""

    @abc.abstractmethod
    async def delete(self, receipt_handle: str) -> None:
        """Delete a received message."""

    @abc.abstractmethod
    async def release(self, receipt_handle: str) -> None:
        """Make a received message visible again without deleting it."""

    @abc.abstractmethod
    async def get_attributes(self, names: Sequence[str]) -> dict[str, str]:
        """Return the requested queue attributes as strings."""
