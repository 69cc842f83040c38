"""In-process queue provider used for local runs and tests."""

from __future__ import annotations

import itertools
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from src.core.types import QueueMessage
from src.queue.base import QueueProvider
from src.queue.exceptions import QueueDeleteError, QueueReleaseError


@dataclass
class _Stored:
    message_id: str
    body: str
    attributes: dict[str, str]
    receive_count: int = 0
    visible_at: float = 0.0
    receipt_handle: str | None = None
    sent_at: float = field(default_factory=time.time)


class InMemoryQueueProvider(QueueProvider):
    """Queue with SQS-like visibility semantics kept entirely in memory.

    A receive increments the message's receive count and hides it for
    ``visibility_timeout`` seconds. Deleting or releasing requires the
    receipt handle of the latest receive.
    """

    def __init__(
        self,
        queue_url: str = "memory://queue/local",
        visibility_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._queue_url = queue_url
        self._visibility_timeout = visibility_timeout
        self._clock = clock
        self._messages: dict[str, _Stored] = {}
        self._handles = itertools.count(1)
        self.sent: list[QueueMessage] = []
        self.deleted: list[str] = []

    @property
    def queue_url(self) -> str:
        return self._queue_url

    # ── Test helpers ────────────────────────────────────────────

    def put(
        self,
        body: str,
        message_id: str | None = None,
        receive_count: int = 0,
        attributes: Mapping[str, str] | None = None,
    ) -> str:
        """Enqueue a message directly, optionally with a prior receive count."""
        mid = message_id or str(uuid.uuid4())
        self._messages[mid] = _Stored(
            message_id=mid,
            body=body,
            attributes=dict(attributes or {}),
            receive_count=receive_count,
            sent_at=self._clock(),
        )
        return mid

    def message_ids(self) -> list[str]:
        return list(self._messages)

    def visible_count(self) -> int:
        now = self._clock()
        return sum(1 for m in self._messages.values() if m.visible_at <= now)

    def __len__(self) -> int:
        return len(self._messages)

    # ── QueueProvider ───────────────────────────────────────────

    async def receive_batch(
        self, max_messages: int = 10, wait_seconds: int = 0,
    ) -> list[QueueMessage]:
        now = self._clock()
        batch: list[QueueMessage] = []
        for stored in self._messages.values():
            if len(batch) >= max_messages:
                break
            if stored.visible_at > now:
                continue
            stored.receive_count += 1
            stored.visible_at = now + self._visibility_timeout
            stored.receipt_handle = f"rh-{stored.message_id}-{next(self._handles)}"
            batch.append(
                QueueMessage(
                    message_id=stored.message_id,
                    receipt_handle=stored.receipt_handle,
                    body=stored.body,
                    receive_count=stored.receive_count,
                    attributes={
                        **stored.attributes,
                        "ApproximateReceiveCount": str(stored.receive_count),
                    },
                )
            )
        return batch

    async def send(self, body: str, attributes: Mapping[str, str] | None = None) -> str:
        mid = self.put(body, attributes=attributes)
        self.sent.append(
            QueueMessage(
                message_id=mid,
                receipt_handle="",
                body=body,
                attributes=dict(attributes or {}),
            )
        )
        return mid

    def _find(self, receipt_handle: str) -> _Stored | None:
        for stored in self._messages.values():
            if stored.receipt_handle == receipt_handle:
                return stored
        return None

    async def delete(self, receipt_handle: str) -> None:
        stored = self._find(receipt_handle)
        if stored is None:
            raise QueueDeleteError(f"Unknown receipt handle: {receipt_handle}")
        del self._messages[stored.message_id]
        self.deleted.append(stored.message_id)

    async def release(self, receipt_handle: str) -> None:
        stored = self._find(receipt_handle)
        if stored is None:
            raise QueueReleaseError(f"Unknown receipt handle: {receipt_handle}")
        stored.visible_at = 0.0

    async def get_attributes(self, names: Sequence[str]) -> dict[str, str]:
        now = self._clock()
        visible = [m for m in self._messages.values() if m.visible_at <= now]
        oldest = min((m.sent_at for m in self._messages.values()), default=now)
        available = {
            "ApproximateNumberOfMessages": str(len(visible)),
            "ApproximateNumberOfMessagesNotVisible": str(len(self._messages) - len(visible)),
            "ApproximateAgeOfOldestMessage": str(int(max(0.0, now - oldest))),
        }
        if "All" in names:
            return available
        return {name: available[name] for name in names if name in available}
