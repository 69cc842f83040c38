"""Async wrapper around the synchronous boto3 SQS client."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.core.config import AwsConfig
from src.core.types import QueueMessage
from src.queue.base import QueueProvider
from src.queue.exceptions import (
    QueueAttributesError,
    QueueDeleteError,
    QueueReceiveError,
    QueueReleaseError,
    QueueSendError,
)

logger = structlog.stdlib.get_logger()

_AWS_ERRORS = (BotoCoreError, ClientError)

# SQS hard limits for a single ReceiveMessage call.
_MAX_RECEIVE = 10
_MAX_WAIT_SECS = 20


def _parse_message(raw: Mapping[str, Any]) -> QueueMessage:
    """Convert a ReceiveMessage entry into a QueueMessage."""
    attributes = {str(k): str(v) for k, v in (raw.get("Attributes") or {}).items()}
    try:
        receive_count = int(attributes.get("ApproximateReceiveCount", "0"))
    except ValueError:
        receive_count = 0
    return QueueMessage(
        message_id=raw.get("MessageId") or "",
        receipt_handle=raw.get("ReceiptHandle") or "",
        body=raw.get("Body") or "",
        receive_count=max(0, receive_count),
        attributes=attributes,
    )


class SqsQueueProvider(QueueProvider):
    """QueueProvider backed by Amazon SQS.

    Every SDK call runs in a worker thread so the event loop never blocks.

    Usage::

        dlq = SqsQueueProvider(settings.queues.dlq_url, settings.aws)
        messages = await dlq.receive_batch(max_messages=10, wait_seconds=1)
    """

    def __init__(
        self,
        queue_url: str,
        aws: AwsConfig | None = None,
        client: Any | None = None,
    ) -> None:
        self._queue_url = queue_url
        self._aws = aws or AwsConfig()
        self._client = client

    @property
    def queue_url(self) -> str:
        return self._queue_url

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "sqs",
                region_name=self._aws.region,
                endpoint_url=self._aws.endpoint_url,
            )
        return self._client

    async def receive_batch(
        self, max_messages: int = 10, wait_seconds: int = 0,
    ) -> list[QueueMessage]:
        try:
            response = await asyncio.to_thread(
                self._get_client().receive_message,
                QueueUrl=self._queue_url,
                MaxNumberOfMessages=max(1, min(max_messages, _MAX_RECEIVE)),
                WaitTimeSeconds=max(0, min(wait_seconds, _MAX_WAIT_SECS)),
                AttributeNames=["All"],
                MessageAttributeNames=["All"],
            )
        except _AWS_ERRORS as exc:
            raise QueueReceiveError(
                f"Failed to receive from {self.queue_name}: {exc}"
            ) from exc
        return [_parse_message(m) for m in response.get("Messages", [])]

    async def send(self, body: str, attributes: Mapping[str, str] | None = None) -> str:
        message_attributes = {
            key: {"DataType": "String", "StringValue": value}
            for key, value in (attributes or {}).items()
        }
        kwargs: dict[str, Any] = {"QueueUrl": self._queue_url, "MessageBody": body}
        if message_attributes:
            kwargs["MessageAttributes"] = message_attributes
        try:
            response = await asyncio.to_thread(self._get_client().send_message, **kwargs)
        except _AWS_ERRORS as exc:
            raise QueueSendError(f"Failed to send to {self.queue_name}: {exc}") from exc
        message_id = str(response.get("MessageId", ""))
        logger.debug("sqs_message_sent", queue=self.queue_name, message_id=message_id)
        return message_id

    async def delete(self, receipt_handle: str) -> None:
        try:
            await asyncio.to_thread(
                self._get_client().delete_message,
                QueueUrl=self._queue_url,
                ReceiptHandle=receipt_handle,
            )
        except _AWS_ERRORS as exc:
            raise QueueDeleteError(
                f"Failed to delete from {self.queue_name}: {exc}"
            ) from exc

    async def release(self, receipt_handle: str) -> None:
        try:
            await asyncio.to_thread(
                self._get_client().change_message_visibility,
                QueueUrl=self._queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=0,
            )
        except _AWS_ERRORS as exc:
            raise QueueReleaseError(
                f"Failed to release message on {self.queue_name}: {exc}"
            ) from exc

    async def get_attributes(self, names: Sequence[str]) -> dict[str, str]:
        try:
            response = await asyncio.to_thread(
                self._get_client().get_queue_attributes,
                QueueUrl=self._queue_url,
                AttributeNames=list(names),
            )
        except _AWS_ERRORS as exc:
            raise QueueAttributesError(
                f"Failed to read attributes of {self.queue_name}: {exc}"
            ) from exc
        return {str(k): str(v) for k, v in (response.get("Attributes") or {}).items()}
