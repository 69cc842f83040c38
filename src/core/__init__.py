"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    MetricDatapoint,
    MetricDatum,
    MetricUnit,
    OperationKind,
    OperationThresholds,
    PerformanceThresholds,
    QueueMessage,
)

__all__ = [
    "MetricDatapoint",
    "MetricDatum",
    "MetricUnit",
    "OperationKind",
    "OperationThresholds",
    "PerformanceThresholds",
    "QueueMessage",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
