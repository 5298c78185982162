"""Period calendar: bucketing days into periods and deriving report windows."""

import calendar
from datetime import date, timedelta

from .constants import MONTH_WEEK_BOUNDARIES, WEEK_REPORT_DAYS, Granularity, ReportType
from .errors import InvalidFilterError
from .models import DateRange, Period


def parse_granularity(value: Granularity | str) -> Granularity:
    try:
        return Granularity(value)
    except ValueError as e:
        raise InvalidFilterError(f"Unknown granularity: {value!r}") from e


def parse_report_type(value: ReportType | str) -> ReportType:
    # "weekly"/"monthly"/"halfYear" spellings are accepted as well
    aliases = {
        "weekly": ReportType.WEEK,
        "monthly": ReportType.MONTH,
        "quarterly": ReportType.QUARTER,
        "halfyear": ReportType.HALF_YEAR,
        "half-year": ReportType.HALF_YEAR,
        "half-yearly": ReportType.HALF_YEAR,
        "yearly": ReportType.YEAR,
    }
    if isinstance(value, str) and value.lower() in aliases:
        return aliases[value.lower()]
    try:
        return ReportType(value)
    except ValueError as e:
        raise InvalidFilterError(f"Unknown report type: {value!r}") from e


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def month_week(day: date) -> int:
    """Return the in-month week (1-4): days 1-5, 6-12, 13-19, 20-end."""
    for week, last_day in enumerate(MONTH_WEEK_BOUNDARIES, start=1):
        if day.day <= last_day:
            return week
    return len(MONTH_WEEK_BOUNDARIES) + 1


def period_for(day: date, granularity: Granularity) -> Period:
    """Return the period of the given granularity containing ``day``."""
    if granularity == Granularity.DAY:
        return Period(
            start=day,
            end=day,
            granularity=granularity,
            ordinal=day.toordinal(),
            label=day.isoformat(),
        )

    if granularity == Granularity.WEEK:
        monday = day - timedelta(days=day.weekday())
        iso_year, iso_week, _ = monday.isocalendar()
        return Period(
            start=monday,
            end=monday + timedelta(days=6),
            granularity=granularity,
            ordinal=monday.toordinal() // 7,
            label=f"{iso_year}-W{iso_week:02d}",
        )

    if granularity == Granularity.MONTH:
        return Period(
            start=day.replace(day=1),
            end=_month_end(day.year, day.month),
            granularity=granularity,
            ordinal=day.year * 12 + day.month - 1,
            label=f"{day.year}-{day.month:02d}",
        )

    if granularity == Granularity.MONTH_WEEK:
        week = month_week(day)
        first_day = 1 if week == 1 else MONTH_WEEK_BOUNDARIES[week - 2] + 1
        last = (
            MONTH_WEEK_BOUNDARIES[week - 1]
            if week <= len(MONTH_WEEK_BOUNDARIES)
            else _month_end(day.year, day.month).day
        )
        return Period(
            start=day.replace(day=first_day),
            end=day.replace(day=last),
            granularity=granularity,
            ordinal=(day.year * 12 + day.month - 1) * 4 + week - 1,
            label=f"{day.year}-{day.month:02d} W{week}",
        )

    raise InvalidFilterError(f"Unknown granularity: {granularity!r}")


def periods_in_range(date_range: DateRange, granularity: Granularity) -> list[Period]:
    """Return every period overlapping the range, ascending."""
    periods: list[Period] = []
    day = date_range.start
    while day <= date_range.end:
        period = period_for(day, granularity)
        periods.append(period)
        day = period.end + timedelta(days=1)
    return periods


def span_period(date_range: DateRange, *, label: str | None = None) -> Period:
    """A single period covering a whole range, used for roll-ups of daily data."""
    return Period(
        start=date_range.start,
        end=date_range.end,
        granularity=Granularity.DAY,
        ordinal=date_range.start.toordinal(),
        label=label or date_range.label,
    )


def report_range(
    report_type: ReportType,
    *,
    today: date,
    date_range: DateRange | None = None,
) -> DateRange:
    """Derive the window a report covers.

    An explicit range always wins. Otherwise week is the seven days ending on
    ``today`` and the other types are the calendar unit containing ``today``.

    Raises:
        InvalidFilterError: For a custom report without an explicit range.
    """
    if date_range is not None:
        return date_range

    if report_type == ReportType.WEEK:
        return DateRange(start=today - timedelta(days=WEEK_REPORT_DAYS - 1), end=today)
    if report_type == ReportType.MONTH:
        return DateRange(
            start=today.replace(day=1), end=_month_end(today.year, today.month)
        )
    if report_type == ReportType.QUARTER:
        first_month = (today.month - 1) // 3 * 3 + 1
        return DateRange(
            start=date(today.year, first_month, 1),
            end=_month_end(today.year, first_month + 2),
        )
    if report_type == ReportType.HALF_YEAR:
        first_month = 1 if today.month <= 6 else 7
        return DateRange(
            start=date(today.year, first_month, 1),
            end=_month_end(today.year, first_month + 5),
        )
    if report_type == ReportType.YEAR:
        return DateRange(start=date(today.year, 1, 1), end=date(today.year, 12, 31))

    raise InvalidFilterError("A custom report requires an explicit date range")


def previous_range(date_range: DateRange) -> DateRange:
    """Return the immediately preceding range of equal length."""
    return DateRange(
        start=date_range.start - timedelta(days=date_range.days),
        end=date_range.start - timedelta(days=1),
    )


def period_label(report_type: ReportType, date_range: DateRange) -> str:
    """Human readable label for a report window."""
    start = date_range.start
    if report_type == ReportType.MONTH:
        return f"{start.year}-{start.month:02d}"
    if report_type == ReportType.QUARTER:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    if report_type == ReportType.HALF_YEAR:
        return f"{start.year}-H{1 if start.month <= 6 else 2}"
    if report_type == ReportType.YEAR:
        return str(start.year)
    return date_range.label
