"""Invocation payload classification and routing."""

from src.events.classifier import EventClassifier
from src.events.exceptions import EventRoutingError, UnroutableInvocationError
from src.events.router import InvocationRouter
from src.events.types import EventCategory, EventClassification

__all__ = [
    "EventCategory",
    "EventClassification",
    "EventClassifier",
    "EventRoutingError",
    "InvocationRouter",
    "UnroutableInvocationError",
]
