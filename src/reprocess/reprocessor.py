"""DLQMessageReprocessor — selective, throttled redrive of dead-lettered messages.

A pass drains the DLQ, filters and optionally validates the candidates, then
resubmits them to the primary queue in sequential batches. A message is
deleted from the DLQ only after its resubmission succeeded; everything that
was drained but not deleted is released back to the DLQ when the pass ends.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime

import structlog

from src.core.config import ReprocessorConfig
from src.core.types import QueueMessage
from src.monitor.performance import PerformanceMonitor
from src.queue.base import QueueProvider
from src.reprocess.envelope import parse_envelope, validate_envelope
from src.reprocess.exceptions import EnvelopeError
from src.reprocess.report import ReportWriter
from src.reprocess.types import (
    ReprocessingOptions,
    ReprocessingOutcome,
    ReprocessingReport,
    ReprocessingStatus,
)

logger = structlog.stdlib.get_logger()

SleepFn = Callable[[float], Awaitable[None]]

REASON_RETRY_EXCEEDED = "Message exceeded maximum retry count"
REASON_INVALID_FORMAT = "Invalid message format"
REASON_DRY_RUN = "Dry run - would reprocess"
REASON_SENT = "Successfully reprocessed via queue"
REASON_SEND_FAILED = "Failed to send to original queue"
REASON_ERROR = "Reprocessing error"


def build_report(
    outcomes: Sequence[ReprocessingOutcome],
    duration_ms: float,
    dry_run: bool = False,
    validation_warnings: dict[str, list[str]] | None = None,
    generated_at: float | None = None,
) -> ReprocessingReport:
    """Aggregate per-message outcomes into a report."""
    total = len(outcomes)
    success = sum(1 for o in outcomes if o.status == ReprocessingStatus.SUCCESS)
    failed = [o for o in outcomes if o.status == ReprocessingStatus.FAILED]
    skipped = sum(1 for o in outcomes if o.status == ReprocessingStatus.SKIPPED)
    report = ReprocessingReport(
        total=total,
        success_count=success,
        failed_count=len(failed),
        skipped_count=skipped,
        duration_ms=duration_ms,
        success_rate_percent=(success / total * 100) if total else 0.0,
        outcomes=list(outcomes),
        errors=[f"{o.message_id}: {o.detail or o.reason}" for o in failed],
        validation_warnings=validation_warnings or {},
        dry_run=dry_run,
    )
    if generated_at is not None:
        report.generated_at = generated_at
    return report


class DLQMessageReprocessor:
    """Redrives dead-lettered messages from *dlq* to *primary*.

    Usage::

        reprocessor = DLQMessageReprocessor(dlq, primary, settings.reprocessor)
        report = await reprocessor.reprocess_all(max_messages=20, dry_run=True)
    """

    def __init__(
        self,
        dlq: QueueProvider,
        primary: QueueProvider,
        config: ReprocessorConfig | None = None,
        report_writer: ReportWriter | None = None,
        performance: PerformanceMonitor | None = None,
        timer: Callable[[], float] = time.monotonic,
        clock: Callable[[], float] = time.time,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._dlq = dlq
        self._primary = primary
        self._config = config or ReprocessorConfig()
        self._writer = report_writer if report_writer is not None else ReportWriter(
            self._config.report_dir,
        )
        self._performance = performance
        self._timer = timer
        self._clock = clock
        self._sleep = sleep

    # ── Public API ──────────────────────────────────────────────

    async def reprocess(self, options: ReprocessingOptions | None = None) -> ReprocessingReport:
        """Run one reprocessing pass and return its (persisted) report.

        Provider errors while draining propagate after the partial drain is
        released; per-message errors become FAILED outcomes.
        """
        opts = options or ReprocessingOptions()
        started = self._timer()
        log = logger.bind(dlq=self._dlq.queue_name, dry_run=opts.dry_run)
        log.info("reprocessing_started", batch_size=opts.batch_size)

        drained: list[QueueMessage] = []
        deleted: set[str] = set()
        outcomes: list[ReprocessingOutcome] = []
        warnings: dict[str, list[str]] = {}
        try:
            await self.drain(into=drained)
            candidates = self.select(drained, opts)
            log.info("reprocessing_candidates", drained=len(drained), selected=len(candidates))

            if candidates and opts.validate_before_reprocess:
                warnings = self.validate_messages(candidates)

            batches = [
                candidates[i:i + opts.batch_size]
                for i in range(0, len(candidates), opts.batch_size)
            ]
            for index, batch in enumerate(batches):
                log.info(
                    "reprocessing_batch",
                    batch=index + 1,
                    batches=len(batches),
                    size=len(batch),
                )
                outcomes.extend(await self._run_batch(batch, opts.dry_run, deleted))
                if index < len(batches) - 1:
                    await self._sleep(self._config.inter_batch_delay_secs)
        finally:
            await self._release_undeleted(drained, deleted)

        report = build_report(
            outcomes,
            duration_ms=(self._timer() - started) * 1000.0,
            dry_run=opts.dry_run,
            validation_warnings=warnings,
            generated_at=self._clock(),
        )
        log.info(
            "reprocessing_completed",
            total=report.total,
            success=report.success_count,
            failed=report.failed_count,
            skipped=report.skipped_count,
            success_rate=round(report.success_rate_percent, 1),
            duration_ms=round(report.duration_ms, 2),
        )
        self._persist(report)
        return report

    async def reprocess_by_ids(
        self, message_ids: Sequence[str], dry_run: bool = False,
    ) -> ReprocessingReport:
        return await self.reprocess(ReprocessingOptions(
            message_ids=list(message_ids), dry_run=dry_run,
        ))

    async def reprocess_by_error_type(
        self, error_types: Sequence[str], max_messages: int = 10, dry_run: bool = False,
    ) -> ReprocessingReport:
        return await self.reprocess(ReprocessingOptions(
            error_types=list(error_types), max_messages=max_messages, dry_run=dry_run,
        ))

    async def reprocess_all(
        self, max_messages: int = 50, dry_run: bool = True,
    ) -> ReprocessingReport:
        """Dry-run by default. Repeated dry runs still count a receive per message."""
        return await self.reprocess(ReprocessingOptions(
            max_messages=max_messages, dry_run=dry_run, batch_size=3,
        ))

    # ── Steps ───────────────────────────────────────────────────

    async def drain(self, into: list[QueueMessage] | None = None) -> list[QueueMessage]:
        """Receive from the DLQ until a receive returns nothing.

        Messages are appended to *into* as they arrive, so a caller still
        holds the partial drain when a later receive fails.
        """
        drained = into if into is not None else []
        while True:
            batch = await self._dlq.receive_batch(
                max_messages=self._config.receive_batch_size,
                wait_seconds=self._config.receive_wait_secs,
            )
            if not batch:
                return drained
            drained.extend(batch)

    @staticmethod
    def select(
        messages: Sequence[QueueMessage], options: ReprocessingOptions,
    ) -> list[QueueMessage]:
        """Apply the id allow-list, the error-type filter and the size cap."""
        seen: set[str] = set()
        selected: list[QueueMessage] = []
        for m in messages:
            if m.message_id not in seen:
                seen.add(m.message_id)
                selected.append(m)

        if options.message_ids:
            wanted = set(options.message_ids)
            selected = [m for m in selected if m.message_id in wanted]

        if options.error_types:
            logger.warning(
                "error_type_filter_unavailable",
                error_types=options.error_types,
                note="filtering by error type needs a prior DLQ analysis pass",
            )

        if options.max_messages:
            selected = selected[:options.max_messages]
        return selected

    def validate_messages(self, messages: Sequence[QueueMessage]) -> dict[str, list[str]]:
        """Return problems per invalid message id; messages are not removed."""
        invalid: dict[str, list[str]] = {}
        for m in messages:
            problems = validate_envelope(m.body, self._config.required_event_fields)
            if problems:
                invalid[m.message_id] = problems
                logger.warning("message_validation_failed", message_id=m.message_id, problems=problems)
            else:
                logger.debug("message_validation_passed", message_id=m.message_id)
        return invalid

    async def _run_batch(
        self, batch: list[QueueMessage], dry_run: bool, deleted: set[str],
    ) -> list[ReprocessingOutcome]:
        async def process() -> list[ReprocessingOutcome]:
            return [await self.process_message(m, dry_run, deleted) for m in batch]

        if self._performance is None:
            return await process()
        return await self._performance.monitor_batch_processing(
            process, {"batch_size": len(batch), "dry_run": dry_run},
        )

    async def process_message(
        self,
        message: QueueMessage,
        dry_run: bool,
        deleted: set[str] | None = None,
    ) -> ReprocessingOutcome:
        """Decide and apply the outcome for one message; never raises."""
        mid = message.message_id
        try:
            if message.receive_count > self._config.max_receive_count:
                return self._outcome(mid, ReprocessingStatus.SKIPPED, REASON_RETRY_EXCEEDED)

            try:
                parse_envelope(message.body)
            except EnvelopeError as exc:
                return self._outcome(
                    mid, ReprocessingStatus.SKIPPED, REASON_INVALID_FORMAT, str(exc),
                )

            if dry_run:
                return self._outcome(mid, ReprocessingStatus.SUCCESS, REASON_DRY_RUN)

            try:
                await self._primary.send(message.body, {
                    "ReprocessedFromDLQ": "true",
                    "OriginalMessageId": mid,
                    "ReprocessedAt": self._now_iso(),
                })
            except Exception as exc:
                logger.exception("message_resubmit_failed", message_id=mid)
                return self._outcome(
                    mid, ReprocessingStatus.FAILED, REASON_SEND_FAILED, str(exc),
                )

            await self._delete(message)
            if deleted is not None:
                deleted.add(message.receipt_handle)
            return self._outcome(mid, ReprocessingStatus.SUCCESS, REASON_SENT)
        except Exception as exc:
            logger.exception("message_reprocessing_error", message_id=mid)
            return self._outcome(mid, ReprocessingStatus.FAILED, REASON_ERROR, str(exc))

    # ── Internal ────────────────────────────────────────────────

    def _outcome(
        self,
        message_id: str,
        status: ReprocessingStatus,
        reason: str,
        detail: str | None = None,
    ) -> ReprocessingOutcome:
        return ReprocessingOutcome(
            message_id=message_id,
            status=status,
            reason=reason,
            detail=detail,
            timestamp=self._clock(),
        )

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=UTC).isoformat()

    async def _delete(self, message: QueueMessage) -> None:
        try:
            await self._dlq.delete(message.receipt_handle)
        except Exception:
            logger.error("dlq_delete_failed", message_id=message.message_id)
            raise
        logger.info("dlq_message_deleted", message_id=message.message_id)

    async def _release_undeleted(
        self, drained: Sequence[QueueMessage], deleted: set[str],
    ) -> None:
        for m in drained:
            if m.receipt_handle in deleted:
                continue
            try:
                await self._dlq.release(m.receipt_handle)
            except Exception:
                logger.exception("dlq_release_failed", message_id=m.message_id)

    def _persist(self, report: ReprocessingReport) -> None:
        try:
            self._writer.write(report)
        except OSError:
            logger.exception("reprocessing_report_write_failed", output_dir=str(self._writer.output_dir))
