"""Selective reprocessing of dead-lettered notification messages."""

from src.reprocess.envelope import parse_envelope, validate_envelope
from src.reprocess.exceptions import EnvelopeError, ReprocessError
from src.reprocess.report import ReportWriter, render_summary
from src.reprocess.reprocessor import DLQMessageReprocessor, build_report
from src.reprocess.types import (
    ReprocessingOptions,
    ReprocessingOutcome,
    ReprocessingReport,
    ReprocessingStatus,
)

__all__ = [
    "DLQMessageReprocessor",
    "EnvelopeError",
    "ReportWriter",
    "ReprocessError",
    "ReprocessingOptions",
    "ReprocessingOutcome",
    "ReprocessingReport",
    "ReprocessingStatus",
    "build_report",
    "parse_envelope",
    "render_summary",
    "validate_envelope",
]
