"""Types for DLQ reprocessing runs."""

from __future__ import annotations

import time
from enum import StrEnum

from pydantic import BaseModel, Field


class ReprocessingStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ReprocessingOptions(BaseModel):
    """Selection and safety options for one reprocessing pass.

    ``error_types`` is accepted but does not filter: classifying DLQ messages
    by failure cause needs an analysis pass that is not part of this run.

    Every pass receives each drained message once, dry runs included, so a
    dry run uses up one delivery of the retry budget. A message one receive
    short of ``max_receive_count`` is processed once and skipped on the next
    pass.
    """

    message_ids: list[str] | None = None
    error_types: list[str] | None = None
    max_messages: int | None = Field(default=None, ge=0)
    dry_run: bool = False
    validate_before_reprocess: bool = True
    batch_size: int = Field(default=5, ge=1)


class ReprocessingOutcome(BaseModel):
    message_id: str
    status: ReprocessingStatus
    reason: str
    detail: str | None = None
    timestamp: float = Field(default_factory=time.time)


class ReprocessingReport(BaseModel):
    """Aggregate result of a reprocessing pass, persisted for audit."""

    total: int = 0
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    duration_ms: float = 0.0
    success_rate_percent: float = 0.0
    outcomes: list[ReprocessingOutcome] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    validation_warnings: dict[str, list[str]] = Field(default_factory=dict)
    dry_run: bool = False
    generated_at: float = Field(default_factory=time.time)

    def by_status(self, status: ReprocessingStatus) -> list[ReprocessingOutcome]:
        return [o for o in self.outcomes if o.status == status]
