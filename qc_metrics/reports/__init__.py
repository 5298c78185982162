"""Report generation package.

- models.py: report document and row data classes
- composer.py: assembles a ReportDocument from daily snapshots
- markdown.py: markdown rendering
- pdf.py: PDF rendering (reportlab)
"""

from .composer import compose_report
from .markdown import render_markdown, write_markdown
from .models import (
    CenterRow,
    DailyTrendRow,
    GroupRankingRow,
    IssueRow,
    ReportDocument,
    ReportSummary,
)
from .pdf import write_pdf

__all__ = [
    "CenterRow",
    "DailyTrendRow",
    "GroupRankingRow",
    "IssueRow",
    "ReportDocument",
    "ReportSummary",
    "compose_report",
    "render_markdown",
    "write_markdown",
    "write_pdf",
]
