"""Data models for report generation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..constants import ReportType
from ..models import DateRange, optional_range_dict


@dataclass
class ReportSummary:
    """Headline figures for the report window."""

    total_evaluations: int
    total_agents: int
    overall_error_rate: float
    attitude_error_rate: float
    ops_error_rate: float
    previous_overall_error_rate: float
    trend: float  # overall rate minus previous window's, 0 unless both have data
    previous_available: bool
    current_available: bool = True

    @property
    def trend_available(self) -> bool:
        return self.current_available and self.previous_available


@dataclass
class IssueRow:
    """Error item ranked by count across the window."""

    item_id: str
    name: str
    category: str
    count: int
    rate: float


@dataclass
class CenterRow:
    """Per-center comparison."""

    center: str
    total_evaluations: int
    agent_count: int
    error_rate: float
    attitude_error_rate: float
    ops_error_rate: float


@dataclass
class DailyTrendRow:
    """Daily overall rate and the target line it is judged against."""

    day: date
    total_evaluations: int
    overall_error_rate: float
    target_rate: float


@dataclass
class GroupRankingRow:
    """Group ranked by overall error rate."""

    group: dict[str, str]
    label: str
    total_evaluations: int
    agent_count: int
    overall_error_rate: float
    attitude_error_rate: float
    ops_error_rate: float
    trend: float


@dataclass
class ReportDocument:
    """Assembled report for one window."""

    report_type: ReportType
    period_label: str
    date_range: DateRange
    previous_range: DateRange
    filters: dict[str, str]
    generated_at: datetime
    summary: ReportSummary
    top_issues: list[IssueRow] = field(default_factory=list)
    center_comparison: list[CenterRow] = field(default_factory=list)
    daily_trend: list[DailyTrendRow] = field(default_factory=list)
    group_ranking: list[GroupRankingRow] = field(default_factory=list)
    partial: bool = False
    received_range: DateRange | None = None
    previous_received_range: DateRange | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_type": self.report_type.value,
            "period_label": self.period_label,
            "date_range": self.date_range.to_dict(),
            "previous_range": self.previous_range.to_dict(),
            "filters": dict(self.filters),
            "generated_at": self.generated_at.isoformat(),
            "partial": self.partial,
            "received_range": optional_range_dict(self.received_range),
            "previous_received_range": optional_range_dict(self.previous_received_range),
            "summary": vars(self.summary).copy(),
            "top_issues": [vars(row).copy() for row in self.top_issues],
            "center_comparison": [vars(row).copy() for row in self.center_comparison],
            "daily_trend": [
                {**vars(row), "day": row.day.isoformat()} for row in self.daily_trend
            ],
            "group_ranking": [
                {**vars(row), "group": dict(row.group)} for row in self.group_ranking
            ],
        }
