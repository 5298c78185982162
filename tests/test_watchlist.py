"""
QC Metrics - Unit Tests for Watchlist Selection
"""

import pytest

from qc_metrics.analyzers.watchlist import build_watchlist, top_items
from qc_metrics.constants import WatchReason
from qc_metrics.errors import InvalidRecordError
from qc_metrics.models import GroupKey


@pytest.fixture
def agent_snapshot(make_snapshot):
    """Weekly snapshot grouped by agent"""

    def _make(agent_id, overall, *, week=1, **kwargs):
        return make_snapshot(
            week=week,
            overall=overall,
            group_key=GroupKey(center="Seoul", agent_id=agent_id),
            agent_ids=frozenset({agent_id}),
            **kwargs,
        )

    return _make


class TestSelection:
    """Tests for ranking and truncation"""

    def test_top_five_of_twenty(self, agent_snapshot):
        """Agents are ranked by current overall error rate"""
        current = [agent_snapshot(f"a{i}", float(i)) for i in range(20)]

        entries = build_watchlist(current, k=5)

        assert [e.agent_id for e in entries] == ["a19", "a18", "a17", "a16", "a15"]
        assert entries[0].error_rate == 19.0

    def test_default_size(self, agent_snapshot):
        current = [agent_snapshot(f"a{i}", float(i)) for i in range(8)]

        assert len(build_watchlist(current)) == 5

    def test_ties_break_on_agent_id(self, agent_snapshot):
        current = [agent_snapshot("b2", 5.0), agent_snapshot("a9", 5.0), agent_snapshot("c1", 7.0)]

        entries = build_watchlist(current, k=3)

        assert [e.agent_id for e in entries] == ["c1", "a9", "b2"]

    def test_zero_size(self, agent_snapshot):
        assert build_watchlist([agent_snapshot("a1", 10.0)], k=0) == []

    def test_negative_size_raises(self, agent_snapshot):
        with pytest.raises(ValueError):
            build_watchlist([agent_snapshot("a1", 10.0)], k=-1)

    def test_empty_snapshots_are_ignored(self, agent_snapshot):
        current = [agent_snapshot("a1", 0.0, total=0), agent_snapshot("a2", 1.0)]

        assert [e.agent_id for e in build_watchlist(current)] == ["a2"]

    def test_several_snapshots_per_agent_are_merged(self, agent_snapshot):
        """Rates are recomputed over the agent's combined evaluations"""
        current = [agent_snapshot("a1", 10.0, week=0), agent_snapshot("a1", 20.0, week=1)]

        [entry] = build_watchlist(current)

        assert entry.total_evaluations == 200
        assert entry.error_rate == 15.0

    def test_requires_agent_grouping(self, make_snapshot):
        with pytest.raises(InvalidRecordError):
            build_watchlist([make_snapshot(week=0, overall=5.0)])


class TestEntryDetails:
    """Tests for trend, main issue and reasons"""

    def test_trend_against_prior(self, agent_snapshot):
        current = [agent_snapshot("a1", 8.0), agent_snapshot("a2", 6.0)]
        prior = [agent_snapshot("a1", 5.0, week=0)]

        entries = {e.agent_id: e for e in build_watchlist(current, prior)}

        assert entries["a1"].trend == 3.0
        assert entries["a2"].trend == 0.0

    def test_main_issue_ties_follow_catalog_order(self, agent_snapshot):
        """Equal counts resolve to the item listed first"""
        snapshot = agent_snapshot("a1", 4.0, per_item={"guide": 2, "empathy": 2, "greeting": 1})

        [entry] = build_watchlist([snapshot])

        assert entry.main_issue == "empathy"
        assert [item for item, _, _ in entry.main_errors] == ["empathy", "guide", "greeting"]

    def test_no_errors_means_no_main_issue(self, agent_snapshot):
        [entry] = build_watchlist([agent_snapshot("a1", 0.0)])

        assert entry.main_issue is None
        assert entry.main_errors == []

    def test_category_thresholds_add_reasons(self, agent_snapshot):
        """Attitude above 5% is a reason; ops at exactly 6% is not"""
        [entry] = build_watchlist([agent_snapshot("a1", 10.0, attitude=6.0, ops=6.0)])

        assert entry.reasons == [WatchReason.AGENT_ATTITUDE.format(6.0, 5.0)]

    def test_top_items_rates(self, agent_snapshot):
        snapshot = agent_snapshot("a1", 5.0, per_item={"history": 5})

        assert top_items(snapshot, 3) == [("history", 5, 5.0)]
