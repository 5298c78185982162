"""Markdown rendering of report documents."""

from pathlib import Path

from loguru import logger

from ..constants import LogMessage
from .models import ReportDocument


def _signed(value: float) -> str:
    return f"{value:+.2f}pp"


def render_markdown(report: ReportDocument) -> str:
    """Render a report document as markdown text."""
    summary = report.summary
    lines = [
        f"# QC Report: {report.period_label}",
        "",
        f"**Report Type:** {report.report_type}",
        f"**Window:** {report.date_range.start} to {report.date_range.end}",
        f"**Compared With:** {report.previous_range.start} to {report.previous_range.end}",
        f"**Filters:** {', '.join(f'{k}={v}' for k, v in report.filters.items()) or 'none'}",
        f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M')}",
    ]
    if report.partial:
        lines += ["", "> Source data was incomplete; figures cover received records only."]
        if report.received_range is not None:
            lines.append(
                f"> Received: {report.received_range.start} to {report.received_range.end}"
            )

    lines += [
        "",
        "---",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Evaluations | {summary.total_evaluations} |",
        f"| Agents | {summary.total_agents} |",
        f"| Overall Error Rate | {summary.overall_error_rate:.2f}% |",
        f"| Attitude Error Rate | {summary.attitude_error_rate:.2f}% |",
        f"| Ops Error Rate | {summary.ops_error_rate:.2f}% |",
        (
            f"| Trend vs Previous | {_signed(summary.trend)} |"
            if summary.trend_available
            else "| Trend vs Previous | n/a |"
        ),
        "",
        "## Top Issues",
        "",
    ]

    if report.top_issues:
        lines += ["| Item | Category | Count | Rate |", "|------|----------|-------|------|"]
        lines += [
            f"| {row.name} | {row.category} | {row.count} | {row.rate:.2f}% |"
            for row in report.top_issues
        ]
    else:
        lines.append("✓ No errors recorded in this window")

    lines += ["", "## Center Comparison", ""]
    if report.center_comparison:
        lines += [
            "| Center | Evaluations | Agents | Error Rate |",
            "|--------|-------------|--------|------------|",
        ]
        lines += [
            f"| {row.center} | {row.total_evaluations} | {row.agent_count} | {row.error_rate:.2f}% |"
            for row in report.center_comparison
        ]
    else:
        lines.append("No evaluations in this window")

    lines += ["", "## Daily Trend", ""]
    if report.daily_trend:
        lines += [
            "| Day | Evaluations | Overall Rate | Target |",
            "|-----|-------------|--------------|--------|",
        ]
        lines += [
            f"| {row.day} | {row.total_evaluations} | {row.overall_error_rate:.2f}% | {row.target_rate:.2f}% |"
            for row in report.daily_trend
        ]
    else:
        lines.append("No evaluations in this window")

    lines += ["", "## Group Ranking", ""]
    if report.group_ranking:
        lines += [
            "| # | Group | Evaluations | Overall Rate | Trend |",
            "|---|-------|-------------|--------------|-------|",
        ]
        lines += [
            f"| {rank} | {row.label} | {row.total_evaluations} | {row.overall_error_rate:.2f}% | {_signed(row.trend)} |"
            for rank, row in enumerate(report.group_ranking, start=1)
        ]
    else:
        lines.append("No evaluations in this window")

    lines.append("")
    return "\n".join(lines)


def write_markdown(report: ReportDocument, output_path: Path) -> Path:
    """Write the markdown rendering of ``report`` to ``output_path``."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_markdown(report), encoding="utf-8")
    logger.success(LogMessage.SAVED_OUTPUT.format("markdown report", output_path))
    return output_path
