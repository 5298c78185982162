"""Aggregate evaluation records into per-group, per-period error-rate snapshots."""

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import fields
from datetime import date

from loguru import logger

from ..constants import (
    DEFAULT_GROUP_DIMENSIONS,
    RATE_SCALE,
    ErrorCategory,
    Granularity,
    GroupDimension,
    LogMessage,
)
from ..errors import InvalidFilterError, InvalidRecordError
from ..items import ITEM_IDS
from ..models import (
    DateRange,
    EvaluationRecord,
    GroupFilter,
    GroupKey,
    MetricSnapshot,
    Period,
)
from ..periods import parse_granularity, period_for, periods_in_range


def error_rate(count: int, total: int) -> float:
    """Percentage of ``total`` represented by ``count``; 0 when total is 0."""
    if total <= 0:
        return 0.0
    return count * RATE_SCALE / total


def empty_snapshot(group_key: GroupKey, period: Period) -> MetricSnapshot:
    """Snapshot for a group and period with no evaluations."""
    return MetricSnapshot(
        group_key=group_key,
        period=period,
        total_evaluations=0,
        attitude_error_calls=0,
        ops_error_calls=0,
        error_calls=0,
        attitude_error_rate=0.0,
        ops_error_rate=0.0,
        overall_error_rate=0.0,
        per_item_error_counts={item_id: 0 for item_id in ITEM_IDS},
        agent_ids=frozenset(),
        empty=True,
    )


def build_snapshot(
    records: Sequence[EvaluationRecord], group_key: GroupKey, period: Period
) -> MetricSnapshot:
    """Compute one snapshot from the records of a single group and period.

    Category rates count calls with at least one flagged item in the category,
    so a call with several errors is counted once.

    Args:
        records: Records already restricted to the group and period.
        group_key: Group the records belong to.
        period: Period the records fall into.

    Returns:
        MetricSnapshot: The aggregate; ``empty`` when ``records`` is empty.
    """
    total = len(records)
    if total == 0:
        return empty_snapshot(group_key, period)

    attitude_calls = 0
    ops_calls = 0
    error_calls = 0
    per_item = {item_id: 0 for item_id in ITEM_IDS}
    agent_ids: set[str] = set()

    for record in records:
        agent_ids.add(record.agent_id)
        flagged = [item_id for item_id in ITEM_IDS if record.flag(item_id)]
        for item_id in flagged:
            per_item[item_id] += 1
        if flagged:
            error_calls += 1
        if record.has_error(ErrorCategory.ATTITUDE):
            attitude_calls += 1
        if record.has_error(ErrorCategory.OPERATIONS):
            ops_calls += 1

    return MetricSnapshot(
        group_key=group_key,
        period=period,
        total_evaluations=total,
        attitude_error_calls=attitude_calls,
        ops_error_calls=ops_calls,
        error_calls=error_calls,
        attitude_error_rate=error_rate(attitude_calls, total),
        ops_error_rate=error_rate(ops_calls, total),
        overall_error_rate=error_rate(error_calls, total),
        per_item_error_counts=per_item,
        agent_ids=frozenset(agent_ids),
        empty=False,
    )


def _common_group_key(keys: Iterable[GroupKey]) -> GroupKey:
    keys = list(keys)
    common = {}
    for f in fields(GroupKey):
        values = {getattr(key, f.name) for key in keys}
        if len(values) == 1:
            common[f.name] = values.pop()
    return GroupKey(**common)


def merge_snapshots(
    snapshots: Iterable[MetricSnapshot],
    *,
    group_key: GroupKey | None = None,
    period: Period | None = None,
) -> MetricSnapshot:
    """Roll several snapshots up into one.

    Counts are summed and rates recomputed from the summed call counts, so the
    result equals aggregating the union of the underlying records.

    Args:
        snapshots: Snapshots to merge (empty ones contribute nothing).
        group_key: Key of the result. Defaults to the dimensions every input
            shares.
        period: Period of the result. Required when inputs span several periods.

    Raises:
        InvalidRecordError: If nothing is given, or periods differ and no
            ``period`` was passed.
    """
    snapshots = list(snapshots)
    if not snapshots:
        raise InvalidRecordError("merge_snapshots needs at least one snapshot")
    for snapshot in snapshots:
        if not isinstance(snapshot, MetricSnapshot):
            raise InvalidRecordError(f"Not a MetricSnapshot: {type(snapshot).__name__}")

    if period is None:
        periods = {snapshot.period for snapshot in snapshots}
        if len(periods) > 1:
            raise InvalidRecordError("Snapshots span several periods; pass period")
        period = snapshots[0].period
    if group_key is None:
        group_key = _common_group_key(snapshot.group_key for snapshot in snapshots)

    total = sum(snapshot.total_evaluations for snapshot in snapshots)
    if total == 0:
        return empty_snapshot(group_key, period)

    attitude_calls = sum(snapshot.attitude_error_calls for snapshot in snapshots)
    ops_calls = sum(snapshot.ops_error_calls for snapshot in snapshots)
    error_calls = sum(snapshot.error_calls for snapshot in snapshots)
    per_item = {
        item_id: sum(s.per_item_error_counts.get(item_id, 0) for s in snapshots)
        for item_id in ITEM_IDS
    }
    agent_ids = frozenset().union(*(snapshot.agent_ids for snapshot in snapshots))

    return MetricSnapshot(
        group_key=group_key,
        period=period,
        total_evaluations=total,
        attitude_error_calls=attitude_calls,
        ops_error_calls=ops_calls,
        error_calls=error_calls,
        attitude_error_rate=error_rate(attitude_calls, total),
        ops_error_rate=error_rate(ops_calls, total),
        overall_error_rate=error_rate(error_calls, total),
        per_item_error_counts=per_item,
        agent_ids=agent_ids,
        empty=False,
    )


def parse_dimensions(
    dimensions: Iterable[GroupDimension | str] | str,
) -> tuple[GroupDimension, ...]:
    """Validate a grouping dimension set (a sequence or comma separated string)."""
    if isinstance(dimensions, str):
        dimensions = [part.strip() for part in dimensions.split(",") if part.strip()]
    parsed: list[GroupDimension] = []
    for dim in dimensions:
        try:
            value = GroupDimension(dim)
        except ValueError as e:
            raise InvalidFilterError(f"Unknown group dimension: {dim!r}") from e
        if value not in parsed:
            parsed.append(value)
    return tuple(parsed)


def _validate_inputs(
    records: Iterable[EvaluationRecord],
    group_filter: GroupFilter | None,
    date_range: DateRange,
) -> tuple[list[EvaluationRecord], GroupFilter]:
    if group_filter is None:
        group_filter = GroupFilter()
    if not isinstance(group_filter, GroupFilter):
        raise InvalidFilterError(f"Not a GroupFilter: {type(group_filter).__name__}")
    if not isinstance(date_range, DateRange):
        raise InvalidFilterError(f"Not a DateRange: {type(date_range).__name__}")

    records = list(records)
    for record in records:
        if not isinstance(record, EvaluationRecord):
            raise InvalidRecordError(
                f"Not an EvaluationRecord: {type(record).__name__}"
            )
    return records, group_filter


def _period_snapshots(
    groups: dict[GroupKey, list[EvaluationRecord]], period: Period
) -> Iterator[MetricSnapshot]:
    for key in sorted(groups, key=GroupKey.sort_key):
        yield build_snapshot(groups[key], key, period)


def _stream_periods(
    records: Iterable[EvaluationRecord],
    group_filter: GroupFilter | None,
    granularity: Granularity,
    date_range: DateRange,
    dimensions: tuple[GroupDimension, ...],
) -> Iterator[MetricSnapshot]:
    _, group_filter = _validate_inputs((), group_filter, date_range)
    logger.debug(
        LogMessage.AGGREGATING.format(
            "streamed", ",".join(dimensions) or "all", granularity
        )
    )

    current: Period | None = None
    last_day: date | None = None
    groups: dict[GroupKey, list[EvaluationRecord]] = defaultdict(list)
    for record in records:
        if not isinstance(record, EvaluationRecord):
            raise InvalidRecordError(f"Not an EvaluationRecord: {type(record).__name__}")
        if not date_range.contains(record.date) or not group_filter.matches(record):
            continue
        if last_day is not None and record.date < last_day:
            raise InvalidRecordError(
                f"Records are not sorted by date: {record.date} after {last_day}"
            )
        last_day = record.date

        period = period_for(record.date, granularity)
        if current is not None and period != current:
            yield from _period_snapshots(groups, current)
            groups = defaultdict(list)
        current = period
        groups[GroupKey.from_record(record, dimensions)].append(record)

    if current is not None:
        yield from _period_snapshots(groups, current)

def iter_aggregate(
    records: Iterable[EvaluationRecord],
    group_filter: GroupFilter | None,
    granularity: Granularity | str,
    date_range: DateRange,
    *,
    dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    include_empty: bool = False,
    presorted: bool = False,
) -> Iterator[MetricSnapshot]:
    """Yield snapshots period by period in ascending order.

    Within a period snapshots are ordered by group key. Records outside the
    range or not matching the filter are ignored.

    By default every record is bucketed before the first period is yielded,
    so input of any order works but memory grows with the whole range. With
    ``presorted`` the records must arrive in ascending date order; each
    period is yielded as soon as a record of a later period arrives and only
    one period's records are held at a time.

    Args:
        records: Validated evaluation records.
        group_filter: Dimension filter; None keeps every record.
        granularity: Period granularity.
        date_range: Inclusive window to aggregate.
        dimensions: Dimensions forming the group key.
        include_empty: Also yield ``empty`` snapshots for periods of the range
            where a group seen elsewhere in the range has no records.
        presorted: Stream date-sorted records one period at a time.

    Raises:
        InvalidFilterError: On a malformed filter, range, granularity or
            dimension, or ``include_empty`` combined with ``presorted``.
        InvalidRecordError: If a record is not an EvaluationRecord, or
            ``presorted`` input goes back in time.
    """
    granularity = parse_granularity(granularity)
    dimensions = parse_dimensions(dimensions)
    if presorted:
        if include_empty:
            raise InvalidFilterError(
                "include_empty needs the whole range and cannot stream presorted input"
            )
        yield from _stream_periods(
            records, group_filter, granularity, date_range, dimensions
        )
        return
    records, group_filter = _validate_inputs(records, group_filter, date_range)

    logger.debug(
        LogMessage.AGGREGATING.format(
            len(records), ",".join(dimensions) or "all", granularity
        )
    )

    buckets: dict[Period, dict[GroupKey, list[EvaluationRecord]]] = defaultdict(
        lambda: defaultdict(list)
    )
    seen_groups: set[GroupKey] = set()
    for record in records:
        if not date_range.contains(record.date) or not group_filter.matches(record):
            continue
        key = GroupKey.from_record(record, dimensions)
        buckets[period_for(record.date, granularity)][key].append(record)
        seen_groups.add(key)

    ordered_groups = sorted(seen_groups, key=GroupKey.sort_key)
    for period in periods_in_range(date_range, granularity):
        groups = buckets.get(period, {})
        keys = ordered_groups if include_empty else sorted(groups, key=GroupKey.sort_key)
        for key in keys:
            yield build_snapshot(groups.get(key, []), key, period)


def aggregate(
    records: Iterable[EvaluationRecord],
    group_filter: GroupFilter | None,
    granularity: Granularity | str,
    date_range: DateRange,
    *,
    dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    include_empty: bool = False,
) -> list[MetricSnapshot]:
    """Compute one snapshot per (group key, period) present in the range.

    See ``iter_aggregate`` for argument details.

    Returns:
        list[MetricSnapshot]: Snapshots ordered by period, then group key.
    """
    snapshots = list(
        iter_aggregate(
            records,
            group_filter,
            granularity,
            date_range,
            dimensions=dimensions,
            include_empty=include_empty,
        )
    )
    logger.debug(
        LogMessage.AGGREGATED.format(
            len(snapshots), len({snapshot.group_key for snapshot in snapshots})
        )
    )
    return snapshots


def group_series(
    snapshots: Iterable[MetricSnapshot],
) -> dict[GroupKey, list[MetricSnapshot]]:
    """Split snapshots into per-group series sorted by period."""
    series: dict[GroupKey, list[MetricSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        series[snapshot.group_key].append(snapshot)
    return {
        key: sorted(items, key=lambda s: s.period)
        for key, items in sorted(series.items(), key=lambda kv: kv[0].sort_key())
    }
