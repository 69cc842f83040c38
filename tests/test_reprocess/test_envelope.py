"""Tests for notification envelope parsing and validation."""

from __future__ import annotations

import json

import pytest

from src.reprocess.envelope import parse_envelope, validate_envelope
from src.reprocess.exceptions import EnvelopeError

EVENT = {"eventType": "BOOK_PUBLISHED", "bookId": "b1", "userId": "u1"}


def _envelope(event: object = None, **kw: object) -> str:
    doc: dict[str, object] = {
        "Type": "Notification",
        "MessageId": "sns-1",
        "Message": json.dumps(EVENT if event is None else event),
    }
    doc.update(kw)
    return json.dumps(doc)


class TestParseEnvelope:
    def test_returns_inner_event(self) -> None:
        assert parse_envelope(_envelope()) == EVENT

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            "[1, 2]",
            json.dumps({"Type": "Notification"}),
            json.dumps({"Message": 42}),
            json.dumps({"Message": "{broken"}),
            json.dumps({"Message": '"just a string"'}),
        ],
    )
    def test_malformed_bodies(self, body: str) -> None:
        with pytest.raises(EnvelopeError):
            parse_envelope(body)

    def test_envelope_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_envelope("{")


class TestValidateEnvelope:
    def test_valid(self) -> None:
        assert validate_envelope(_envelope()) == []

    def test_not_a_notification(self) -> None:
        assert validate_envelope(_envelope(Type="SubscriptionConfirmation")) == [
            "Not a notification envelope",
        ]

    def test_missing_message(self) -> None:
        body = json.dumps({"Type": "Notification"})
        assert validate_envelope(body) == ["Missing Message field"]

    def test_missing_required_fields(self) -> None:
        problems = validate_envelope(_envelope({"eventType": "BOOK_PUBLISHED", "bookId": ""}))
        assert problems == ["Missing required event fields: bookId, userId"]

    def test_custom_required_fields(self) -> None:
        assert validate_envelope(_envelope({"orderId": "o1"}), ["orderId"]) == []

    def test_invalid_json_reported(self) -> None:
        [problem] = validate_envelope("garbage")
        assert "not valid JSON" in problem
