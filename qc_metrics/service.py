"""Calling layer that pairs a record store handle with the engine."""

import asyncio
from collections.abc import Iterable
from datetime import date

from loguru import logger

from .analyzers.aggregator import aggregate, parse_dimensions
from .analyzers.predictor import predict_groups
from .analyzers.watchlist import build_watchlist
from .config import DEFAULT_CONFIG, EngineConfig
from .constants import (
    DEFAULT_GROUP_DIMENSIONS,
    Granularity,
    GroupDimension,
    LogMessage,
    ReportType,
)
from .models import (
    DateRange,
    FetchResult,
    GroupFilter,
    Prediction,
    SnapshotBatch,
    Watchlist,
)
from .periods import parse_granularity, parse_report_type, previous_range, report_range
from .reports.composer import compose_report
from .reports.models import ReportDocument
from .storage import RecordStore, check_request

WATCHLIST_DIMENSIONS = (
    GroupDimension.AGENT,
    GroupDimension.CENTER,
    GroupDimension.SERVICE,
    GroupDimension.CHANNEL,
)


def _warn_if_partial(*results: FetchResult) -> bool:
    partial = False
    for result in results:
        if not result.complete:
            partial = True
            received = result.received_range.label if result.received_range else "nothing"
            logger.warning(
                LogMessage.PARTIAL_FETCH.format(
                    len(result.records),
                    f"requested {result.requested_range.label}, received {received}",
                )
            )
    return partial


def _source_range(result: FetchResult) -> DateRange | None:
    """Days a partial fetch covered; None for complete fetches."""
    return None if result.complete else result.received_range


class QCMetricsService:
    """Fetches records through an explicit store handle and runs the engine.

    Filters, ranges and options are validated before the store is touched.
    Current and previous windows are fetched concurrently. Upstream failures
    propagate; incomplete fetches mark their outputs partial.

    Attributes:
        store: Record store handle.
        config: Engine configuration.
    """

    def __init__(self, store: RecordStore, *, config: EngineConfig = DEFAULT_CONFIG):
        self.store = store
        self.config = config

    async def snapshots(
        self,
        date_range: DateRange,
        *,
        group_filter: GroupFilter | None = None,
        granularity: Granularity | str = Granularity.WEEK,
        dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
        include_empty: bool = False,
    ) -> SnapshotBatch:
        """Aggregate the records of a window.

        Returns:
            SnapshotBatch: Snapshots, the partial flag and, on a partial fetch,
                the days the received records covered.
        """
        group_filter = group_filter or GroupFilter()
        granularity = parse_granularity(granularity)
        dimensions = parse_dimensions(dimensions)
        check_request(group_filter, date_range)

        result = await self.store.fetch_evaluations(group_filter, date_range)
        partial = _warn_if_partial(result)
        snapshots = aggregate(
            result.records,
            group_filter,
            granularity,
            date_range,
            dimensions=dimensions,
            include_empty=include_empty,
        )
        return SnapshotBatch(
            snapshots=snapshots,
            date_range=date_range,
            partial=partial,
            received_range=_source_range(result),
        )

    async def predict(
        self,
        date_range: DateRange,
        *,
        group_filter: GroupFilter | None = None,
        granularity: Granularity | str = Granularity.WEEK,
        dimensions: Iterable[GroupDimension | str] = DEFAULT_GROUP_DIMENSIONS,
    ) -> list[Prediction]:
        """Predict every group with records in the window."""
        group_filter = group_filter or GroupFilter()
        granularity = parse_granularity(granularity)
        dimensions = parse_dimensions(dimensions)
        check_request(group_filter, date_range)

        result, targets = await asyncio.gather(
            self.store.fetch_evaluations(group_filter, date_range),
            self.store.fetch_targets(group_filter, date_range),
        )
        partial = _warn_if_partial(result)
        snapshots = aggregate(
            result.records, group_filter, granularity, date_range, dimensions=dimensions
        )
        return predict_groups(
            snapshots,
            targets,
            config=self.config,
            partial=partial,
            received_range=_source_range(result),
        )

    async def build_watchlist(
        self,
        date_range: DateRange,
        *,
        group_filter: GroupFilter | None = None,
        k: int | None = None,
    ) -> Watchlist:
        """Rank agents for the window against the preceding equal-length window."""
        group_filter = group_filter or GroupFilter()
        check_request(group_filter, date_range)
        if k is not None and k < 0:
            raise ValueError("k must be >= 0")
        prior_range = previous_range(date_range)

        current, prior = await asyncio.gather(
            self.store.fetch_evaluations(group_filter, date_range),
            self.store.fetch_evaluations(group_filter, prior_range),
        )
        partial = _warn_if_partial(current, prior)

        current_snapshots = aggregate(
            current.records,
            group_filter,
            Granularity.MONTH,
            date_range,
            dimensions=WATCHLIST_DIMENSIONS,
        )
        prior_snapshots = aggregate(
            prior.records,
            group_filter,
            Granularity.MONTH,
            prior_range,
            dimensions=WATCHLIST_DIMENSIONS,
        )
        entries = build_watchlist(
            current_snapshots, prior_snapshots, k, config=self.config
        )
        return Watchlist(
            entries=entries,
            date_range=date_range,
            prior_range=prior_range,
            partial=partial,
            received_range=_source_range(current),
            prior_received_range=_source_range(prior),
        )

    async def compose_report(
        self,
        report_type: ReportType | str,
        *,
        date_range: DateRange | None = None,
        group_filter: GroupFilter | None = None,
        today: date | None = None,
    ) -> ReportDocument:
        """Fetch the report window and its predecessor, then compose the report."""
        group_filter = group_filter or GroupFilter()
        report_type = parse_report_type(report_type)
        today = today or date.today()
        window = report_range(report_type, today=today, date_range=date_range)
        check_request(group_filter, window)
        before = previous_range(window)

        current, previous, targets = await asyncio.gather(
            self.store.fetch_evaluations(group_filter, window),
            self.store.fetch_evaluations(group_filter, before),
            self.store.fetch_targets(group_filter, window),
        )
        partial = _warn_if_partial(current, previous)

        return compose_report(
            current.records,
            report_type,
            today=today,
            date_range=window,
            group_filter=group_filter,
            targets=targets,
            previous_records=previous.records,
            config=self.config,
            partial=partial,
            received_range=_source_range(current),
            previous_received_range=_source_range(previous),
        )
