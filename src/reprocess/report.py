"""Persistence of reprocessing reports as JSON plus a Markdown summary."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import structlog

from src.reprocess.types import ReprocessingReport, ReprocessingStatus

logger = structlog.stdlib.get_logger()


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z",
    )


def report_stamp(ts: float) -> str:
    """File-name-safe ISO timestamp, e.g. ``2026-10-18T09-30-00-123Z``."""
    return _iso(ts).replace(":", "-").replace(".", "-")


def _lines(report: ReprocessingReport, status: ReprocessingStatus, with_detail: bool) -> str:
    rows = []
    for o in report.by_status(status):
        suffix = f" ({o.detail})" if with_detail and o.detail else ""
        rows.append(f"- {o.message_id}: {o.reason}{suffix}")
    return "\n".join(rows)


def render_summary(report: ReprocessingReport) -> str:
    """Render the human-readable Markdown summary of *report*."""
    errors = "\n".join(f"- {e}" for e in report.errors) or "No errors occurred"

    recommendations = []
    if report.success_count:
        recommendations.append("- Monitor reprocessed messages for successful delivery")
    if report.failed_count:
        recommendations.append("- Investigate failed reprocessing attempts")
    if report.skipped_count:
        recommendations.append("- Review skipped messages for manual handling")

    mode = " (dry run)" if report.dry_run else ""
    return f"""# DLQ Reprocessing Report{mode}

Generated: {_iso(report.generated_at)}

## Summary

- **Total Processed**: {report.total}
- **Successful**: {report.success_count}
- **Failed**: {report.failed_count}
- **Skipped**: {report.skipped_count}
- **Success Rate**: {report.success_rate_percent:.1f}%
- **Duration**: {report.duration_ms / 1000:.2f} seconds

## Results by Status

### Successful ({report.success_count})
{_lines(report, ReprocessingStatus.SUCCESS, with_detail=False)}

### Failed ({report.failed_count})
{_lines(report, ReprocessingStatus.FAILED, with_detail=True)}

### Skipped ({report.skipped_count})
{_lines(report, ReprocessingStatus.SKIPPED, with_detail=False)}

## Errors

{errors}

## Recommendations

{chr(10).join(recommendations)}
"""


class ReportWriter:
    """Writes each report as ``dlq-reprocessing-report-<ts>.json`` plus a summary."""

    def __init__(self, output_dir: str | Path = "reports") -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def write(self, report: ReprocessingReport) -> tuple[Path, Path]:
        """Persist *report*; returns ``(json_path, summary_path)``."""
        self._output_dir.mkdir(parents=True, exist_ok=True)
        stamp = report_stamp(report.generated_at)
        json_path = self._output_dir / f"dlq-reprocessing-report-{stamp}.json"
        summary_path = self._output_dir / f"dlq-reprocessing-summary-{stamp}.md"

        json_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        summary_path.write_text(render_summary(report), encoding="utf-8")
        logger.info(
            "reprocessing_report_saved",
            report_path=str(json_path),
            summary_path=str(summary_path),
        )
        return json_path, summary_path
