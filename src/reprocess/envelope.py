"""Parsing and validation of dead-lettered notification envelopes.

A DLQ message body is a fan-out envelope: a JSON object whose ``Message``
field holds the JSON-encoded domain event.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from src.reprocess.exceptions import EnvelopeError

DEFAULT_REQUIRED_FIELDS = ("eventType", "bookId", "userId")


def _loads_object(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, str):
        raise EnvelopeError(f"{what} is not a string")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EnvelopeError(f"{what} is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise EnvelopeError(f"{what} is not a JSON object")
    return value


def parse_envelope(body: str) -> dict[str, Any]:
    """Return the inner event of an envelope body.

    Raises:
        EnvelopeError: If the body or its ``Message`` field is not a JSON object.
    """
    envelope = _loads_object(body, "Message body")
    if "Message" not in envelope:
        raise EnvelopeError("Envelope has no Message field")
    return _loads_object(envelope["Message"], "Envelope Message")


def validate_envelope(
    body: str,
    required_fields: Sequence[str] = DEFAULT_REQUIRED_FIELDS,
) -> list[str]:
    """Return a list of problems with *body*; empty when it is valid."""
    try:
        envelope = _loads_object(body, "Message body")
    except EnvelopeError as exc:
        return [str(exc)]

    problems: list[str] = []
    if envelope.get("Type") != "Notification":
        problems.append("Not a notification envelope")
    if not envelope.get("Message"):
        problems.append("Missing Message field")
        return problems

    try:
        event = _loads_object(envelope["Message"], "Envelope Message")
    except EnvelopeError as exc:
        problems.append(str(exc))
        return problems

    missing = [f for f in required_fields if not event.get(f)]
    if missing:
        problems.append(f"Missing required event fields: {', '.join(missing)}")
    return problems
