"""Caller-side memo of metric snapshots."""

from collections.abc import Iterable
from datetime import date

from loguru import logger

from .analyzers.aggregator import build_snapshot, parse_dimensions
from .constants import DEFAULT_GROUP_DIMENSIONS, Granularity, GroupDimension
from .models import EvaluationRecord, GroupKey, MetricSnapshot, Period
from .periods import parse_granularity

CacheKey = tuple[tuple[GroupDimension, ...], Granularity, GroupKey, Period]


class SnapshotCache:
    """Memoizes snapshots by (dimensions, granularity, group key, period).

    The record store stays the source of truth: callers invalidate a period
    when new records arrive for it. A hit returns exactly what a fresh
    computation would.
    """

    def __init__(self):
        self._entries: dict[CacheKey, MetricSnapshot] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_build(
        self,
        records: Iterable[EvaluationRecord],
        group_key: GroupKey,
        period: Period,
        *,
        dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    ) -> MetricSnapshot:
        """Return the cached snapshot or build it from ``records``.

        Args:
            records: Records to build from on a miss; only those in the group
                and period are used.
            group_key: Group of the snapshot.
            period: Period of the snapshot.
            dimensions: Dimensions ``group_key`` was built from.
        """
        dims = parse_dimensions(dimensions)
        key = (dims, parse_granularity(period.granularity), group_key, period)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        selected = [
            record
            for record in records
            if period.contains(record.date)
            and GroupKey.from_record(record, dims) == group_key
        ]
        snapshot = build_snapshot(selected, group_key, period)
        self._entries[key] = snapshot
        return snapshot

    def put(
        self,
        snapshot: MetricSnapshot,
        *,
        dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    ) -> None:
        key = (
            parse_dimensions(dimensions),
            snapshot.period.granularity,
            snapshot.group_key,
            snapshot.period,
        )
        self._entries[key] = snapshot

    def invalidate(self, period: Period | date) -> int:
        """Drop every entry whose period overlaps ``period`` (or contains a day).

        Returns:
            int: Number of entries dropped.
        """
        if isinstance(period, date):
            start = end = period
        else:
            start, end = period.start, period.end
        stale = [
            key
            for key in self._entries
            if key[3].start <= end and start <= key[3].end
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached snapshots for {start}..{end}")
        return len(stale)

    def invalidate_records(self, records: Iterable[EvaluationRecord]) -> int:
        """Drop entries for every day new records arrived for."""
        return sum(self.invalidate(day) for day in {record.date for record in records})

    def clear(self) -> None:
        self._entries.clear()
