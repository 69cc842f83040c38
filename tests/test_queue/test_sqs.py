"""Tests for SqsQueueProvider — request shapes and error wrapping (mocked boto3 client)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from src.queue.exceptions import (
    QueueAttributesError,
    QueueDeleteError,
    QueueReceiveError,
    QueueReleaseError,
    QueueSendError,
)
from src.queue.sqs import SqsQueueProvider

URL = "https://sqs.us-east-1.amazonaws.com/000000000000/notifications-dlq"


def _client_error(op: str) -> ClientError:
    return ClientError({"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}}, op)


def _provider(client: MagicMock) -> SqsQueueProvider:
    return SqsQueueProvider(URL, client=client)


class TestReceive:
    async def test_parses_messages(self) -> None:
        client = MagicMock()
        client.receive_message.return_value = {
            "Messages": [{
                "MessageId": "m1",
                "ReceiptHandle": "rh1",
                "Body": "{}",
                "Attributes": {"ApproximateReceiveCount": "4"},
            }],
        }
        [msg] = await _provider(client).receive_batch(max_messages=10, wait_seconds=1)
        assert msg.message_id == "m1"
        assert msg.receipt_handle == "rh1"
        assert msg.receive_count == 4

        kwargs = client.receive_message.call_args.kwargs
        assert kwargs["QueueUrl"] == URL
        assert kwargs["MaxNumberOfMessages"] == 10
        assert kwargs["WaitTimeSeconds"] == 1
        assert kwargs["AttributeNames"] == ["All"]

    async def test_empty_response(self) -> None:
        client = MagicMock()
        client.receive_message.return_value = {}
        assert await _provider(client).receive_batch() == []

    async def test_limits_clamped(self) -> None:
        client = MagicMock()
        client.receive_message.return_value = {}
        await _provider(client).receive_batch(max_messages=50, wait_seconds=60)
        kwargs = client.receive_message.call_args.kwargs
        assert kwargs["MaxNumberOfMessages"] == 10
        assert kwargs["WaitTimeSeconds"] == 20

    async def test_error_wrapped(self) -> None:
        client = MagicMock()
        client.receive_message.side_effect = _client_error("ReceiveMessage")
        with pytest.raises(QueueReceiveError) as exc_info:
            await _provider(client).receive_batch()
        assert isinstance(exc_info.value.__cause__, ClientError)


class TestSend:
    async def test_string_attributes(self) -> None:
        client = MagicMock()
        client.send_message.return_value = {"MessageId": "new-1"}
        mid = await _provider(client).send("body", {"ReprocessedFromDLQ": "true"})
        assert mid == "new-1"
        kwargs = client.send_message.call_args.kwargs
        assert kwargs["MessageBody"] == "body"
        assert kwargs["MessageAttributes"] == {
            "ReprocessedFromDLQ": {"DataType": "String", "StringValue": "true"},
        }

    async def test_error_wrapped(self) -> None:
        client = MagicMock()
        client.send_message.side_effect = _client_error("SendMessage")
        with pytest.raises(QueueSendError):
            await _provider(client).send("body")


class TestDeleteReleaseAttributes:
    async def test_delete(self) -> None:
        client = MagicMock()
        await _provider(client).delete("rh1")
        client.delete_message.assert_called_once_with(QueueUrl=URL, ReceiptHandle="rh1")

    async def test_delete_error(self) -> None:
        client = MagicMock()
        client.delete_message.side_effect = _client_error("DeleteMessage")
        with pytest.raises(QueueDeleteError):
            await _provider(client).delete("rh1")

    async def test_release_resets_visibility(self) -> None:
        client = MagicMock()
        await _provider(client).release("rh1")
        client.change_message_visibility.assert_called_once_with(
            QueueUrl=URL, ReceiptHandle="rh1", VisibilityTimeout=0,
        )

    async def test_release_error(self) -> None:
        client = MagicMock()
        client.change_message_visibility.side_effect = _client_error("ChangeMessageVisibility")
        with pytest.raises(QueueReleaseError):
            await _provider(client).release("rh1")

    async def test_get_attributes(self) -> None:
        client = MagicMock()
        client.get_queue_attributes.return_value = {
            "Attributes": {"ApproximateNumberOfMessages": "12"},
        }
        attrs = await _provider(client).get_attributes(["ApproximateNumberOfMessages"])
        assert attrs == {"ApproximateNumberOfMessages": "12"}

    async def test_get_attributes_error(self) -> None:
        client = MagicMock()
        client.get_queue_attributes.side_effect = _client_error("GetQueueAttributes")
        with pytest.raises(QueueAttributesError):
            await _provider(client).get_attributes(["ApproximateNumberOfMessages"])

    def test_queue_name(self) -> None:
        assert _provider(MagicMock()).queue_name == "notifications-dlq"
