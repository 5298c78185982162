"""
QC Metrics - Unit Tests for the Period Calendar
"""

from datetime import date

import pytest

from qc_metrics.constants import Granularity, ReportType
from qc_metrics.errors import InvalidFilterError
from qc_metrics.models import DateRange
from qc_metrics.periods import (
    month_week,
    parse_granularity,
    parse_report_type,
    period_for,
    period_label,
    periods_in_range,
    previous_range,
    report_range,
)


class TestMonthWeek:
    """Tests for in-month week bucketing"""

    @pytest.mark.parametrize(
        "day, expected",
        [(1, 1), (5, 1), (6, 2), (12, 2), (13, 3), (19, 3), (20, 4), (31, 4)],
    )
    def test_boundaries(self, day, expected):
        """Days 1-5, 6-12, 13-19 and 20-end map to W1..W4"""
        assert month_week(date(2024, 1, day)) == expected

    def test_last_bucket_runs_to_month_end(self):
        """The fourth in-month week ends on the last day of the month"""
        period = period_for(date(2024, 2, 21), Granularity.MONTH_WEEK)

        assert period.start == date(2024, 2, 20)
        assert period.end == date(2024, 2, 29)
        assert period.label == "2024-02 W4"


class TestPeriodFor:
    """Tests for bucketing days into periods"""

    def test_week_starts_monday(self):
        """Weeks run Monday to Sunday with ISO labels"""
        period = period_for(date(2024, 1, 3), Granularity.WEEK)

        assert period.start == date(2024, 1, 1)
        assert period.end == date(2024, 1, 7)
        assert period.label == "2024-W01"

    def test_consecutive_weeks_have_consecutive_ordinals(self):
        """Week ordinals step by one across a year boundary"""
        last = period_for(date(2023, 12, 31), Granularity.WEEK)
        first = period_for(date(2024, 1, 1), Granularity.WEEK)

        assert first.ordinal - last.ordinal == 1

    def test_month(self):
        period = period_for(date(2024, 2, 10), Granularity.MONTH)

        assert (period.start, period.end, period.label) == (
            date(2024, 2, 1),
            date(2024, 2, 29),
            "2024-02",
        )

    def test_day(self):
        period = period_for(date(2024, 2, 10), Granularity.DAY)

        assert period.start == period.end == date(2024, 2, 10)


class TestPeriodsInRange:
    """Tests for enumerating periods over a range"""

    def test_january_by_week(self):
        """A partial trailing week still counts as a period"""
        periods = periods_in_range(
            DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31)), Granularity.WEEK
        )

        assert len(periods) == 5
        assert periods == sorted(periods)

    def test_january_by_month_week(self):
        periods = periods_in_range(
            DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31)),
            Granularity.MONTH_WEEK,
        )

        assert [p.label for p in periods] == [
            "2024-01 W1",
            "2024-01 W2",
            "2024-01 W3",
            "2024-01 W4",
        ]


class TestReportRange:
    """Tests for report window derivation"""

    TODAY = date(2024, 3, 15)

    @pytest.mark.parametrize(
        "report_type, start, end",
        [
            (ReportType.WEEK, date(2024, 3, 9), date(2024, 3, 15)),
            (ReportType.MONTH, date(2024, 3, 1), date(2024, 3, 31)),
            (ReportType.QUARTER, date(2024, 1, 1), date(2024, 3, 31)),
            (ReportType.HALF_YEAR, date(2024, 1, 1), date(2024, 6, 30)),
            (ReportType.YEAR, date(2024, 1, 1), date(2024, 12, 31)),
        ],
    )
    def test_derived_windows(self, report_type, start, end):
        """Each report type covers its calendar unit around today"""
        window = report_range(report_type, today=self.TODAY)

        assert window == DateRange(start=start, end=end)

    def test_explicit_range_wins(self):
        explicit = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 10))

        assert report_range(ReportType.MONTH, today=self.TODAY, date_range=explicit) == explicit

    def test_custom_requires_range(self):
        """A custom report without a range is rejected"""
        with pytest.raises(InvalidFilterError):
            report_range(ReportType.CUSTOM, today=self.TODAY)

    def test_previous_range_has_equal_length(self):
        window = DateRange(start=date(2024, 3, 1), end=date(2024, 3, 31))

        previous = previous_range(window)

        assert previous == DateRange(start=date(2024, 1, 30), end=date(2024, 2, 29))
        assert previous.days == window.days

    def test_period_labels(self):
        window = report_range(ReportType.QUARTER, today=self.TODAY)

        assert period_label(ReportType.QUARTER, window) == "2024-Q1"
        assert period_label(ReportType.HALF_YEAR, window) == "2024-H1"


class TestParsing:
    """Tests for granularity, report type and range parsing"""

    def test_report_type_aliases(self):
        assert parse_report_type("monthly") == ReportType.MONTH
        assert parse_report_type("halfYear") == ReportType.HALF_YEAR
        assert parse_report_type("custom") == ReportType.CUSTOM

    def test_unknown_values_raise(self):
        with pytest.raises(InvalidFilterError):
            parse_report_type("decade")
        with pytest.raises(InvalidFilterError):
            parse_granularity("hour")

    def test_date_range_parse(self):
        window = DateRange.parse(start="2024-01-01", end="2024-01-07T12:00:00")

        assert window.days == 7

    @pytest.mark.parametrize(
        "start, end", [("2024-01-08", "2024-01-01"), ("2024-13-01", "2024-12-31")]
    )
    def test_date_range_errors(self, start, end):
        """Reversed or malformed bounds are rejected"""
        with pytest.raises(InvalidFilterError):
            DateRange.parse(start=start, end=end)
