"""Compose report documents from daily snapshots."""

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Sequence
from datetime import date, datetime

from loguru import logger

from ..analyzers.aggregator import aggregate, empty_snapshot, error_rate, merge_snapshots
from ..analyzers.targets import resolve_target
from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import (
    DEFAULT_GROUP_DIMENSIONS,
    Granularity,
    GroupDimension,
    LogMessage,
    ReportType,
)
from ..items import ITEMS_BY_ID, item_position
from ..models import (
    DateRange,
    EvaluationRecord,
    GroupFilter,
    GroupKey,
    MetricSnapshot,
    Target,
)
from ..periods import (
    parse_report_type,
    period_for,
    period_label,
    previous_range,
    report_range,
    span_period,
)
from .models import (
    CenterRow,
    DailyTrendRow,
    GroupRankingRow,
    IssueRow,
    ReportDocument,
    ReportSummary,
)


def _roll_up(
    snapshots: Iterable[MetricSnapshot], key: Callable[[MetricSnapshot], Hashable]
) -> dict[Hashable, MetricSnapshot]:
    buckets: dict[Hashable, list[MetricSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        buckets[key(snapshot)].append(snapshot)
    return {
        bucket_key: merge_snapshots(items, period=min(s.period for s in items))
        for bucket_key, items in buckets.items()
    }


def _window_total(
    snapshots: Sequence[MetricSnapshot], date_range: DateRange, label: str
) -> MetricSnapshot:
    period = span_period(date_range, label=label)
    if not snapshots:
        return empty_snapshot(GroupKey(), period)
    return merge_snapshots(snapshots, group_key=GroupKey(), period=period)


def build_summary(
    current: MetricSnapshot, previous: MetricSnapshot
) -> ReportSummary:
    current_available = not current.empty
    previous_available = not previous.empty
    return ReportSummary(
        total_evaluations=current.total_evaluations,
        total_agents=current.agent_count,
        overall_error_rate=current.overall_error_rate,
        attitude_error_rate=current.attitude_error_rate,
        ops_error_rate=current.ops_error_rate,
        previous_overall_error_rate=previous.overall_error_rate,
        trend=(
            current.overall_error_rate - previous.overall_error_rate
            if current_available and previous_available
            else 0.0
        ),
        previous_available=previous_available,
        current_available=current_available,
    )


def build_top_issues(total: MetricSnapshot, limit: int) -> list[IssueRow]:
    ranked = sorted(
        (
            (item_id, count)
            for item_id, count in total.per_item_error_counts.items()
            if count > 0
        ),
        key=lambda pair: (-pair[1], item_position(pair[0])),
    )
    return [
        IssueRow(
            item_id=item_id,
            name=ITEMS_BY_ID[item_id].name,
            category=ITEMS_BY_ID[item_id].category.value,
            count=count,
            rate=error_rate(count, total.total_evaluations),
        )
        for item_id, count in ranked[:limit]
    ]


def build_center_comparison(daily: Iterable[MetricSnapshot]) -> list[CenterRow]:
    by_center = _roll_up(daily, lambda s: s.group_key.center or "")
    return [
        CenterRow(
            center=center,
            total_evaluations=snapshot.total_evaluations,
            agent_count=snapshot.agent_count,
            error_rate=snapshot.overall_error_rate,
            attitude_error_rate=snapshot.attitude_error_rate,
            ops_error_rate=snapshot.ops_error_rate,
        )
        for center, snapshot in sorted(by_center.items())
    ]


def build_daily_trend(
    daily: Iterable[MetricSnapshot],
    targets: Sequence[Target],
    scope: GroupKey,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[DailyTrendRow]:
    by_day = _roll_up(daily, lambda s: s.period.start)
    rows = []
    for day, snapshot in sorted(by_day.items()):
        target = resolve_target(
            targets, scope, period_for(day, Granularity.DAY), config=config
        )
        rows.append(
            DailyTrendRow(
                day=day,
                total_evaluations=snapshot.total_evaluations,
                overall_error_rate=snapshot.overall_error_rate,
                target_rate=target.target_overall_rate,
            )
        )
    return rows


def build_group_ranking(
    daily: Iterable[MetricSnapshot], previous_daily: Iterable[MetricSnapshot]
) -> list[GroupRankingRow]:
    current = _roll_up(daily, lambda s: s.group_key)
    previous = _roll_up(previous_daily, lambda s: s.group_key)

    ranked = sorted(
        current.values(),
        key=lambda s: (-s.overall_error_rate, s.group_key.sort_key()),
    )
    rows = []
    for snapshot in ranked:
        before = previous.get(snapshot.group_key)
        rows.append(
            GroupRankingRow(
                group=snapshot.group_key.to_dict(),
                label=snapshot.group_key.label,
                total_evaluations=snapshot.total_evaluations,
                agent_count=snapshot.agent_count,
                overall_error_rate=snapshot.overall_error_rate,
                attitude_error_rate=snapshot.attitude_error_rate,
                ops_error_rate=snapshot.ops_error_rate,
                trend=(
                    snapshot.overall_error_rate - before.overall_error_rate
                    if before is not None
                    else 0.0
                ),
            )
        )
    return rows


def compose_report(
    records: Iterable[EvaluationRecord],
    report_type: ReportType | str,
    *,
    today: date,
    date_range: DateRange | None = None,
    group_filter: GroupFilter | None = None,
    targets: Iterable[Target] = (),
    previous_records: Iterable[EvaluationRecord] | None = None,
    dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    config: EngineConfig = DEFAULT_CONFIG,
    partial: bool = False,
    received_range: DateRange | None = None,
    previous_received_range: DateRange | None = None,
    generated_at: datetime | None = None,
) -> ReportDocument:
    """Assemble a report for a window from evaluation records.

    Every figure is a roll-up of the daily snapshots the aggregator builds for
    the window; nothing is recomputed from records directly.

    Args:
        records: Records covering at least the report window.
        report_type: Window type; custom requires ``date_range``.
        today: Reference day for derived windows.
        date_range: Explicit window, overriding the derived one.
        group_filter: Dimension filter applied to every section.
        targets: Targets for the daily target line.
        previous_records: Records of the preceding window; ``records`` is used
            when None.
        dimensions: Dimensions of the group ranking.
        config: Engine configuration.
        partial: Mark the report as built from an incomplete record set.
        received_range: Days the incomplete current records covered.
        previous_received_range: Days the incomplete previous records covered.
        generated_at: Timestamp stamped on the document; now when None.

    Returns:
        ReportDocument: The assembled report.

    Raises:
        InvalidFilterError: On an unknown report type, a custom report without
            a range or a malformed filter.
    """
    report_type = parse_report_type(report_type)
    window = report_range(report_type, today=today, date_range=date_range)
    before = previous_range(window)
    group_filter = group_filter or GroupFilter()
    label = period_label(report_type, window)
    records = list(records)
    previous_records = records if previous_records is None else list(previous_records)
    targets = list(targets)

    logger.info(LogMessage.COMPOSING_REPORT.format(report_type, label))

    daily = aggregate(
        records, group_filter, Granularity.DAY, window, dimensions=dimensions
    )
    previous_daily = aggregate(
        previous_records, group_filter, Granularity.DAY, before, dimensions=dimensions
    )
    center_daily = aggregate(
        records,
        group_filter,
        Granularity.DAY,
        window,
        dimensions=(GroupDimension.CENTER,),
    )
    total = _window_total(daily, window, label)
    previous_total = _window_total(previous_daily, before, before.label)

    return ReportDocument(
        report_type=report_type,
        period_label=label,
        date_range=window,
        previous_range=before,
        filters=group_filter.to_dict(),
        generated_at=generated_at or datetime.now(),
        summary=build_summary(total, previous_total),
        top_issues=build_top_issues(total, config.top_issues_limit),
        center_comparison=build_center_comparison(center_daily),
        daily_trend=build_daily_trend(
            daily, targets, group_filter.as_group_key(), config=config
        ),
        group_ranking=build_group_ranking(daily, previous_daily),
        partial=partial,
        received_range=received_range,
        previous_received_range=previous_received_range,
    )
