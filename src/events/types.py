"""Types produced by invocation classification."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class EventCategory(StrEnum):
    """Handling path chosen for an inbound invocation payload."""

    MESSAGE_BATCH = "MESSAGE_BATCH"
    HTTP_REQUEST = "HTTP_REQUEST"
    CHANGE_FEED = "CHANGE_FEED"
    UNKNOWN = "UNKNOWN"


class EventClassification(BaseModel):
    """Result of classifying one payload.

    ``metadata`` carries counts, keys and shape flags for diagnostics only,
    never business payload.
    """

    model_config = {"frozen": True}

    category: EventCategory = EventCategory.UNKNOWN
    valid: bool = False
    errors: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
