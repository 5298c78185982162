"""Watchlist selection of agents needing intervention."""

from collections import defaultdict
from collections.abc import Iterable

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import WatchReason
from ..errors import InvalidRecordError
from ..items import item_position
from ..models import MetricSnapshot, WatchEntry
from .aggregator import error_rate, merge_snapshots


def _by_agent(snapshots: Iterable[MetricSnapshot]) -> dict[str, MetricSnapshot]:
    grouped: dict[str, list[MetricSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        if not isinstance(snapshot, MetricSnapshot):
            raise InvalidRecordError(f"Not a MetricSnapshot: {type(snapshot).__name__}")
        if snapshot.group_key.agent_id is None:
            raise InvalidRecordError("Watchlist snapshots must be grouped by agent_id")
        if not snapshot.empty:
            grouped[snapshot.group_key.agent_id].append(snapshot)

    merged: dict[str, MetricSnapshot] = {}
    for agent_id, items in grouped.items():
        if len(items) == 1:
            merged[agent_id] = items[0]
        else:
            merged[agent_id] = merge_snapshots(
                items, period=min(s.period for s in items)
            )
    return merged


def top_items(snapshot: MetricSnapshot, limit: int) -> list[tuple[str, int, float]]:
    """Items with at least one error, by count descending then catalog order."""
    ranked = sorted(
        (
            (item_id, count)
            for item_id, count in snapshot.per_item_error_counts.items()
            if count > 0
        ),
        key=lambda pair: (-pair[1], item_position(pair[0])),
    )
    return [
        (item_id, count, error_rate(count, snapshot.total_evaluations))
        for item_id, count in ranked[:limit]
    ]


def agent_watch_reasons(
    snapshot: MetricSnapshot, *, config: EngineConfig = DEFAULT_CONFIG
) -> list[str]:
    reasons = []
    if snapshot.attitude_error_rate > config.agent_attitude_watch_rate:
        reasons.append(
            WatchReason.AGENT_ATTITUDE.format(
                snapshot.attitude_error_rate, config.agent_attitude_watch_rate
            )
        )
    if snapshot.ops_error_rate > config.agent_ops_watch_rate:
        reasons.append(
            WatchReason.AGENT_OPS.format(
                snapshot.ops_error_rate, config.agent_ops_watch_rate
            )
        )
    return reasons


def build_watchlist(
    current: Iterable[MetricSnapshot],
    prior: Iterable[MetricSnapshot] = (),
    k: int | None = None,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[WatchEntry]:
    """Rank agents by current overall error rate and keep the top ``k``.

    Ties are broken by agent id. Several snapshots of one agent (several
    periods or groups) are merged first; empty snapshots are ignored.

    Args:
        current: Current-period snapshots grouped by agent_id.
        prior: Prior-period snapshots grouped by agent_id.
        k: Number of entries; ``config.watchlist_size`` when None.
        config: Engine configuration.

    Returns:
        list[WatchEntry]: At most ``k`` entries, highest error rate first.

    Raises:
        InvalidRecordError: If a snapshot is not grouped by agent.
        ValueError: If ``k`` is negative.
    """
    if k is None:
        k = config.watchlist_size
    if k < 0:
        raise ValueError("k must be >= 0")

    current_by_agent = _by_agent(current)
    prior_by_agent = _by_agent(prior)

    ranked = sorted(
        current_by_agent.values(),
        key=lambda s: (-s.overall_error_rate, s.group_key.agent_id),
    )

    entries: list[WatchEntry] = []
    for snapshot in ranked[:k]:
        agent_id = snapshot.group_key.agent_id
        previous = prior_by_agent.get(agent_id)
        main_errors = top_items(snapshot, config.agent_main_errors)
        entries.append(
            WatchEntry(
                agent_id=agent_id,
                error_rate=snapshot.overall_error_rate,
                trend=(
                    snapshot.overall_error_rate - previous.overall_error_rate
                    if previous is not None
                    else 0.0
                ),
                main_issue=main_errors[0][0] if main_errors else None,
                center=snapshot.group_key.center,
                service=snapshot.group_key.service,
                channel=snapshot.group_key.channel,
                total_evaluations=snapshot.total_evaluations,
                attitude_error_rate=snapshot.attitude_error_rate,
                ops_error_rate=snapshot.ops_error_rate,
                main_errors=main_errors,
                reasons=agent_watch_reasons(snapshot, config=config),
            )
        )
    return entries
