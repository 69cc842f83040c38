"""EventClassifier — decides the handling path for a raw invocation payload."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from src.events.types import EventCategory, EventClassification

logger = structlog.stdlib.get_logger()

RecordDecoder = Callable[[Mapping[str, Any]], bool]


def _is_queue_delivery(record: Mapping[str, Any]) -> bool:
    if record.get("eventSource") == "aws:sqs":
        return True
    return all(key in record for key in ("receiptHandle", "messageId", "body"))


def _is_change_feed(record: Mapping[str, Any]) -> bool:
    if record.get("eventSource") == "aws:dynamodb":
        return True
    stream = record.get("dynamodb")
    return "eventName" in record and isinstance(stream, Mapping) and "Keys" in stream


# Tried in order against the first record; first match wins.
_RECORD_DECODERS: tuple[tuple[EventCategory, RecordDecoder], ...] = (
    (EventCategory.MESSAGE_BATCH, _is_queue_delivery),
    (EventCategory.CHANGE_FEED, _is_change_feed),
)

_HTTP_KEYS = ("httpMethod", "path", "requestContext")


def _request_id(meta: Any) -> str | None:
    if meta is None:
        return None
    if isinstance(meta, Mapping):
        return meta.get("request_id") or meta.get("aws_request_id")
    return getattr(meta, "request_id", None) or getattr(meta, "aws_request_id", None)


class EventClassifier:
    """Classifies invocation payloads; never raises.

    Every failure mode becomes ``valid=False`` with descriptive ``errors``.
    """

    def __init__(self, service_name: str = "notification-service") -> None:
        self._log = logger.bind(classifier=f"{service_name}-event-classifier")

    def classify(
        self,
        payload: Any,
        invocation_meta: Any = None,
    ) -> EventClassification:
        """Classify *payload*. *invocation_meta* may be a mapping or a context object."""
        request_id: str | None = None
        metadata: dict[str, Any] = {"request_id": None}
        errors: list[str] = []

        try:
            request_id = _request_id(invocation_meta)
            metadata["request_id"] = request_id
            if not isinstance(payload, Mapping):
                errors.append("Event is null, undefined, or not an object")
                self._log.error(
                    "invalid_event_object",
                    request_id=request_id,
                    payload_type=type(payload).__name__,
                )
                return EventClassification(errors=errors, metadata=metadata)

            has_records = payload.get("Records") is not None
            metadata["has_records"] = has_records
            if has_records:
                category = self._classify_records(payload["Records"], metadata, errors)
            else:
                category = self._classify_http(payload, metadata, errors)
        except Exception as exc:
            errors.append(f"Event detection error: {exc}")
            self._log.exception("event_detection_error", request_id=request_id)
            return EventClassification(errors=errors, metadata=metadata)

        result = EventClassification(
            category=category,
            valid=not errors and category != EventCategory.UNKNOWN,
            errors=errors,
            metadata=metadata,
        )
        if result.valid:
            self._log.info(
                "event_classified",
                request_id=request_id,
                category=category.value,
                record_count=metadata.get("record_count"),
            )
        else:
            self._log.warning(
                "event_unclassified",
                request_id=request_id,
                errors=errors,
                keys=sorted(str(k) for k in payload.keys())[:20],
            )
        return result

    def _classify_records(
        self, records: Any, metadata: dict[str, Any], errors: list[str],
    ) -> EventCategory:
        if not isinstance(records, list):
            errors.append("Records property exists but is not an array")
            return EventCategory.UNKNOWN

        metadata["record_count"] = len(records)
        if not records:
            errors.append("Records array is empty")
            return EventCategory.UNKNOWN

        first = records[0]
        if not isinstance(first, Mapping):
            errors.append("First record is null, undefined, or not an object")
            return EventCategory.UNKNOWN

        source = first.get("eventSource")
        metadata["first_record_keys"] = [str(k) for k in first.keys()]
        metadata["event_source"] = source

        for category, matches in _RECORD_DECODERS:
            if matches(first):
                return category

        errors.append(f"Unknown event source: {source or 'missing'}")
        return EventCategory.UNKNOWN

    @staticmethod
    def _classify_http(
        payload: Mapping[str, Any], metadata: dict[str, Any], errors: list[str],
    ) -> EventCategory:
        flags = {key: key in payload for key in _HTTP_KEYS}
        metadata["has_http_method"] = flags["httpMethod"]
        metadata["has_path"] = flags["path"]
        metadata["has_request_context"] = flags["requestContext"]
        if any(flags.values()):
            return EventCategory.HTTP_REQUEST
        errors.append("Event does not match known patterns")
        return EventCategory.UNKNOWN
