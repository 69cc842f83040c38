"""Exceptions raised by the metrics sinks."""

from __future__ import annotations

from src.queue.exceptions import ProviderError


class MetricsError(ProviderError):
    """Base exception for metrics provider errors."""


class MetricsPublishError(MetricsError):
    """Publishing metric datums failed."""


class MetricsQueryError(MetricsError):
    """Querying metric statistics failed."""
