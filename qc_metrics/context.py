"""Context payloads handed to the external analysis assistant.

The assistant runs its own dialogue; these functions only shape engine
output into plain dicts it can embed in a prompt.
"""

from collections.abc import Iterable
from typing import Any

from .analyzers.aggregator import merge_snapshots
from .analyzers.watchlist import top_items
from .items import ITEM_IDS, ITEMS_BY_ID
from .models import MetricSnapshot


def _rates(snapshot: MetricSnapshot) -> dict[str, Any]:
    return {
        "total_evaluations": snapshot.total_evaluations,
        "attitude_error_rate": round(snapshot.attitude_error_rate, 2),
        "ops_error_rate": round(snapshot.ops_error_rate, 2),
        "overall_error_rate": round(snapshot.overall_error_rate, 2),
    }


def _item_row(item_id: str, count: int, rate: float) -> dict[str, Any]:
    item = ITEMS_BY_ID[item_id]
    return {
        "item": item_id,
        "name": item.name,
        "category": item.category.value,
        "count": count,
        "rate": round(rate, 2),
    }


def agent_analysis_context(
    agent_id: str, snapshots: Iterable[MetricSnapshot]
) -> dict[str, Any]:
    """Summarize one agent's snapshots (typically daily) for the assistant.

    Args:
        agent_id: Agent to describe; snapshots of other agents are ignored.
        snapshots: Snapshots grouped by agent_id.

    Returns:
        dict[str, Any]: Rates over all periods, the item breakdown and a
            per-period trend.
    """
    own = sorted(
        (s for s in snapshots if s.group_key.agent_id == agent_id and not s.empty),
        key=lambda s: s.period,
    )
    if not own:
        return {
            "agent_id": agent_id,
            "total_evaluations": 0,
            "attitude_error_rate": 0.0,
            "ops_error_rate": 0.0,
            "overall_error_rate": 0.0,
            "item_breakdown": [],
            "daily_trend": [],
        }

    total = merge_snapshots(own, period=own[0].period)
    return {
        "agent_id": agent_id,
        **_rates(total),
        "item_breakdown": [
            _item_row(item_id, count, rate)
            for item_id, count, rate in top_items(total, len(ITEM_IDS))
        ],
        "daily_trend": [
            {
                "period": snapshot.period.label,
                "evaluations": snapshot.total_evaluations,
                "overall_error_rate": round(snapshot.overall_error_rate, 2),
            }
            for snapshot in own
        ],
    }


def group_analysis_context(
    group_snapshot: MetricSnapshot, agent_snapshots: Iterable[MetricSnapshot]
) -> dict[str, Any]:
    """Summarize a group and its agents for the assistant.

    Args:
        group_snapshot: Snapshot of the whole group.
        agent_snapshots: One snapshot per agent of the group.

    Returns:
        dict[str, Any]: Group rates, top errors with how many agents they
            affect, and agents ranked by overall error rate.
    """
    agents = [s for s in agent_snapshots if not s.empty]
    top_errors = []
    for item_id, count, rate in top_items(group_snapshot, len(ITEM_IDS)):
        row = _item_row(item_id, count, rate)
        row["affected_agents"] = sum(
            1 for s in agents if s.per_item_error_counts.get(item_id, 0) > 0
        )
        top_errors.append(row)

    ranking = sorted(
        agents, key=lambda s: (-s.overall_error_rate, s.group_key.agent_id or "")
    )
    return {
        "group": group_snapshot.group_key.to_dict(),
        "period": group_snapshot.period.label,
        **_rates(group_snapshot),
        "agent_count": group_snapshot.agent_count,
        "top_errors": top_errors,
        "agent_ranking": [
            {
                "agent_id": s.group_key.agent_id,
                "evaluations": s.total_evaluations,
                "overall_error_rate": round(s.overall_error_rate, 2),
                "main_issue": next(iter(top_items(s, 1)), (None,))[0],
            }
            for s in ranking
        ],
    }
