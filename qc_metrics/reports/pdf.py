"""PDF rendering of report documents."""

from pathlib import Path

from loguru import logger
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Flowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ..constants import LogMessage
from .models import ReportDocument

TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("GRID", (0, 0), (-1, -1), 1, colors.black),
    ]
)


def _table(rows: list[list[str]], col_widths: list[float]) -> Table:
    table = Table(rows, colWidths=col_widths)
    table.setStyle(TABLE_STYLE)
    return table


def write_pdf(report: ReportDocument, output_path: Path) -> Path:
    """Render ``report`` to a PDF file.

    Args:
        report: Report document to render.
        output_path: Where the PDF is written; parent directories are created.

    Returns:
        Path: ``output_path``.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=letter,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=colors.HexColor("#1f77b4"),
        spaceAfter=20,
    )
    heading_style = ParagraphStyle(
        "ReportHeading", parent=styles["Heading2"], fontSize=15, spaceAfter=10
    )

    summary = report.summary
    story: list[Flowable] = [
        Paragraph(f"QC Report: {report.period_label}", title_style),
        Paragraph(
            f"Window: {report.date_range.start} to {report.date_range.end} "
            f"(generated {report.generated_at.strftime('%Y-%m-%d %H:%M')})",
            styles["Normal"],
        ),
    ]
    if report.partial:
        story.append(
            Paragraph(
                "Source data was incomplete; figures cover received records only.",
                styles["Italic"],
            )
        )
    story.append(Spacer(1, 0.3 * inch))

    story.append(Paragraph("Summary", heading_style))
    story.append(
        _table(
            [
                ["Metric", "Value"],
                ["Evaluations", str(summary.total_evaluations)],
                ["Agents", str(summary.total_agents)],
                ["Overall Error Rate", f"{summary.overall_error_rate:.2f}%"],
                ["Attitude Error Rate", f"{summary.attitude_error_rate:.2f}%"],
                ["Ops Error Rate", f"{summary.ops_error_rate:.2f}%"],
                [
                    "Trend vs Previous",
                    f"{summary.trend:+.2f}pp" if summary.trend_available else "n/a",
                ],
            ],
            [3.0 * inch, 2.5 * inch],
        )
    )
    story.append(Spacer(1, 0.3 * inch))

    if report.top_issues:
        story.append(Paragraph("Top Issues", heading_style))
        story.append(
            _table(
                [["Item", "Category", "Count", "Rate"]]
                + [
                    [row.name, row.category, str(row.count), f"{row.rate:.2f}%"]
                    for row in report.top_issues
                ],
                [2.5 * inch, 1.5 * inch, 1.0 * inch, 1.0 * inch],
            )
        )
        story.append(Spacer(1, 0.3 * inch))

    if report.center_comparison:
        story.append(Paragraph("Center Comparison", heading_style))
        story.append(
            _table(
                [["Center", "Evaluations", "Agents", "Error Rate"]]
                + [
                    [
                        row.center,
                        str(row.total_evaluations),
                        str(row.agent_count),
                        f"{row.error_rate:.2f}%",
                    ]
                    for row in report.center_comparison
                ],
                [2.0 * inch, 1.5 * inch, 1.0 * inch, 1.5 * inch],
            )
        )
        story.append(Spacer(1, 0.3 * inch))

    if report.daily_trend:
        story.append(Paragraph("Daily Trend", heading_style))
        story.append(
            _table(
                [["Day", "Evaluations", "Overall Rate", "Target"]]
                + [
                    [
                        row.day.isoformat(),
                        str(row.total_evaluations),
                        f"{row.overall_error_rate:.2f}%",
                        f"{row.target_rate:.2f}%",
                    ]
                    for row in report.daily_trend
                ],
                [1.5 * inch, 1.5 * inch, 1.5 * inch, 1.5 * inch],
            )
        )
        story.append(Spacer(1, 0.3 * inch))

    if report.group_ranking:
        story.append(Paragraph("Group Ranking", heading_style))
        story.append(
            _table(
                [["#", "Group", "Evaluations", "Rate", "Trend"]]
                + [
                    [
                        str(rank),
                        row.label,
                        str(row.total_evaluations),
                        f"{row.overall_error_rate:.2f}%",
                        f"{row.trend:+.2f}pp",
                    ]
                    for rank, row in enumerate(report.group_ranking, start=1)
                ],
                [0.4 * inch, 2.6 * inch, 1.0 * inch, 1.0 * inch, 1.0 * inch],
            )
        )

    doc.build(story)
    logger.success(LogMessage.SAVED_OUTPUT.format("PDF report", output_path))
    return output_path
