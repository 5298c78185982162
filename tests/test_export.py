"""
QC Metrics - Unit Tests for DataFrame Export
"""

from datetime import date

import pandas as pd

from qc_metrics.analyzers.predictor import forecast
from qc_metrics.analyzers.watchlist import build_watchlist
from qc_metrics.export import (
    predictions_frame,
    snapshots_frame,
    watchlist_frame,
    write_csv,
)
from qc_metrics.models import GroupKey, Target


def flat_target(rate):
    return Target(
        group_key=None,
        period_start=date(2024, 1, 1),
        period_end=date(2024, 12, 31),
        target_attitude_rate=rate,
        target_ops_rate=rate,
        target_overall_rate=rate,
    )


class TestFrames:
    """Tests for flattening engine output"""

    def test_snapshots_frame(self, weekly_series):
        df = snapshots_frame(weekly_series([4.0, 5.0], per_item={"guide": 4}))

        assert len(df) == 2
        assert list(df["period"]) == ["2024-W01", "2024-W02"]
        assert list(df["center"]) == ["Seoul", "Seoul"]
        assert list(df["guide_count"]) == [4, 4]

    def test_predictions_frame_sorts_most_at_risk_first(self, weekly_series, make_snapshot):
        busan = GroupKey(center="Busan", service="taxi", channel="phone")
        safe = forecast(weekly_series([2.0, 2.0, 2.0]), flat_target(5.0))
        risky = forecast(
            [make_snapshot(week=w, overall=r, group_key=busan) for w, r in enumerate([6, 8, 10])],
            flat_target(5.0),
        )

        df = predictions_frame([safe, risky])

        assert list(df["group"]) == [risky.group_key.label, safe.group_key.label]
        assert "overall_achievement_probability" in df.columns
        assert "attitude_risk_level" in df.columns

    def test_empty_predictions_frame(self):
        assert predictions_frame([]).empty

    def test_watchlist_frame(self, make_snapshot):
        snapshot = make_snapshot(
            week=0,
            overall=10.0,
            group_key=GroupKey(center="Seoul", agent_id="a1"),
            per_item={"guide": 10},
        )

        df = watchlist_frame(build_watchlist([snapshot]))

        assert df.loc[0, "agent_id"] == "a1"
        assert df.loc[0, "main_errors"] == "guide(10)"


class TestWriteCsv:
    def test_creates_parent_directories(self, tmp_path):
        path = write_csv(
            pd.DataFrame([{"a": 1}]), tmp_path / "nested" / "out.csv", label="rows"
        )

        assert pd.read_csv(path).to_dict("records") == [{"a": 1}]
