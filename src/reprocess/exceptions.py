"""Exceptions for DLQ reprocessing."""

from __future__ import annotations


class ReprocessError(Exception):
    """Base exception for reprocessing errors."""


class EnvelopeError(ReprocessError, ValueError):
    """A dead-lettered message body is not a parseable notification envelope."""
