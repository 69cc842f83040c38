#!/usr/bin/env python3
"""DLQ reprocessing CLI — redrive dead-lettered notifications to the primary queue.

Usage::

    # Preview what would be reprocessed (no side effects)
    python scripts/reprocess.py --dry-run --max=20

    # Reprocess specific messages
    python scripts/reprocess.py --ids=abc-123,def-456

    # Reprocess up to 10 messages for real
    python scripts/reprocess.py --max=10

Writes ``dlq-reprocessing-report-<ts>.json`` and
``dlq-reprocessing-summary-<ts>.md`` to the output directory.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.monitor.factory import create_performance_monitor
from src.queue.factory import create_queue_provider
from src.reprocess.report import ReportWriter, render_summary
from src.reprocess.reprocessor import DLQMessageReprocessor
from src.reprocess.types import ReprocessingOptions

logger = structlog.get_logger(__name__)


def _split_ids(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    dlq = create_queue_provider(settings, settings.queues.dlq_url)
    primary = create_queue_provider(settings, settings.queues.primary_url)
    reprocessor = DLQMessageReprocessor(
        dlq,
        primary,
        settings.reprocessor,
        report_writer=ReportWriter(args.output or settings.reprocessor.report_dir),
        performance=create_performance_monitor(settings),
    )

    ids = _split_ids(args.ids)
    batch_size = args.batch_size or settings.reprocessor.batch_size
    if ids:
        logger.info("reprocessing_selected_messages", ids=ids, dry_run=args.dry_run)
        options = ReprocessingOptions(message_ids=ids, dry_run=args.dry_run, batch_size=batch_size)
    else:
        logger.info("reprocessing_up_to", max_messages=args.max, dry_run=args.dry_run)
        options = ReprocessingOptions(max_messages=args.max, dry_run=args.dry_run, batch_size=batch_size)

    report = await reprocessor.reprocess(options)

    print(render_summary(report))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Selectively reprocess messages from the notification DLQ.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate only; send and delete nothing")
    parser.add_argument("--max", type=int, default=10, help="Maximum messages to process (default: 10)")
    parser.add_argument("--ids", default=None, help="Comma-separated message ids to reprocess")
    parser.add_argument("--batch-size", type=int, default=None, help="Messages per batch")
    parser.add_argument("--output", default=None, help="Report directory (default: reprocessor.report_dir)")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args()

    try:
        code = asyncio.run(run(args))
    except Exception:
        logger.exception("reprocessing_failed")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
