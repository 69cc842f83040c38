"""Exceptions raised by invocation routing."""

from __future__ import annotations

from src.events.types import EventClassification


class EventRoutingError(Exception):
    """Base exception for invocation routing errors."""


class UnroutableInvocationError(EventRoutingError):
    """Payload was invalid or no handler is registered for its category."""

    def __init__(self, message: str, classification: EventClassification) -> None:
        super().__init__(message)
        self.classification = classification
