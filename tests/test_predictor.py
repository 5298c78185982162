"""
QC Metrics - Unit Tests for Group Predictions
"""

import json
from datetime import date

import pytest

from qc_metrics.analyzers.predictor import forecast, predict_groups
from qc_metrics.constants import RiskLevel, StatusLevel, Trend, WatchReason
from qc_metrics.errors import InsufficientHistoryError, InvalidRecordError
from qc_metrics.models import GroupKey, Target

BUSAN = GroupKey(center="Busan", service="taxi", channel="phone")


def flat_target(rate, group_key=None):
    return Target(
        group_key=group_key,
        period_start=date(2024, 1, 1),
        period_end=date(2024, 12, 31),
        target_attitude_rate=rate,
        target_ops_rate=rate,
        target_overall_rate=rate,
    )


class TestForecast:
    """Tests for single-group forecasting"""

    def test_improving_series_below_target(self, weekly_series):
        """[10, 9, 8, 7] against 5 is on course to achieve"""
        prediction = forecast(weekly_series([10, 9, 8, 7]), flat_target(5.0))

        assert prediction.overall.predicted_rate == pytest.approx(6.0)
        assert prediction.overall.w4_predicted_rate == pytest.approx(3.0)
        assert prediction.overall.achievement_probability > 50
        assert prediction.overall.trend.trend == Trend.IMPROVING
        assert prediction.overall_risk == RiskLevel.LOW
        assert prediction.alert_flag is False

    def test_flat_series_on_target(self, weekly_series):
        """A flat series exactly at target has even odds"""
        prediction = forecast(weekly_series([8, 8, 8, 8]), flat_target(8.0))

        assert prediction.overall.achievement_probability == 50.0
        assert prediction.overall.risk_level == RiskLevel.MEDIUM
        assert prediction.overall.status == StatusLevel.CAUTION
        assert prediction.overall_risk == RiskLevel.MEDIUM
        assert prediction.alert_flag is False
        assert prediction.watch_reasons == []

    def test_rising_series_above_target(self, weekly_series):
        """[4, 6, 8, 10] against 3 is critical and raises an alert"""
        prediction = forecast(weekly_series([4, 6, 8, 10]), flat_target(3.0))

        assert prediction.overall.achievement_probability < 20
        assert prediction.overall_risk == RiskLevel.CRITICAL
        assert prediction.alert_flag is True
        assert WatchReason.CRITICAL in prediction.watch_reasons
        assert (
            WatchReason.WORSENING_ABOVE_TARGET.format("overall") in prediction.watch_reasons
        )
        assert WatchReason.LOW_PROBABILITY.format("attitude", 30) in prediction.watch_reasons

    def test_surge_is_a_watch_reason(self, weekly_series):
        """Doubling week over week is flagged as a surge"""
        prediction = forecast(weekly_series([4, 4, 4, 8]), flat_target(10.0))

        assert WatchReason.SURGE.format(50) in prediction.watch_reasons

    def test_overall_risk_follows_worst_category(self, make_snapshot):
        """The overall risk is the most severe of attitude and ops"""
        snapshots = [
            make_snapshot(week=week, overall=rate + 1, attitude=1.0, ops=rate)
            for week, rate in enumerate([4.0, 6.0, 8.0])
        ]

        prediction = forecast(snapshots, flat_target(3.0))

        assert prediction.attitude.risk_level == RiskLevel.LOW
        assert prediction.operations.risk_level == RiskLevel.CRITICAL
        assert prediction.overall_risk == RiskLevel.CRITICAL

    def test_single_period_is_low_confidence(self, weekly_series):
        prediction = forecast(weekly_series([5.0]), flat_target(5.0))

        assert prediction.low_confidence is True
        assert prediction.overall.predicted_rate == 5.0
        assert prediction.overall.achievement_probability == 50.0

    def test_default_target_applies(self, weekly_series):
        prediction = forecast(weekly_series([2.0, 2.0]))

        assert prediction.overall.target_rate == 3.0

    def test_keyed_by_latest_non_empty_period(self, make_snapshot):
        snapshots = [
            make_snapshot(week=0, overall=4.0),
            make_snapshot(week=1, overall=5.0),
            make_snapshot(week=2, overall=0.0, total=0),
        ]

        prediction = forecast(snapshots)

        assert prediction.period == snapshots[1].period
        assert prediction.overall.current_rate == 5.0

    def test_mixed_groups_raise(self, make_snapshot):
        snapshots = [
            make_snapshot(week=0, overall=4.0),
            make_snapshot(week=1, overall=5.0, group_key=BUSAN),
        ]

        with pytest.raises(InvalidRecordError):
            forecast(snapshots)

    def test_all_empty_raises(self, make_snapshot):
        with pytest.raises(InsufficientHistoryError):
            forecast([make_snapshot(week=0, overall=0.0, total=0)])

    def test_serializable(self, weekly_series):
        prediction = forecast(weekly_series([10, 9, 8, 7]), flat_target(5.0), partial=True)

        payload = json.loads(json.dumps(prediction.to_dict()))

        assert payload["partial"] is True
        assert payload["overall_risk"] == "low"
        assert payload["overall"]["trend"] == "improving"


class TestPredictGroups:
    """Tests for predicting every group at once"""

    def test_one_prediction_per_group(self, weekly_series, make_snapshot):
        snapshots = weekly_series([4, 5, 6]) + [
            make_snapshot(week=0, overall=2.0, group_key=BUSAN),
            make_snapshot(week=1, overall=1.0, group_key=BUSAN),
        ]

        predictions = predict_groups(snapshots)

        assert [p.group_key.center for p in predictions] == ["Busan", "Seoul"]

    def test_group_specific_targets(self, weekly_series, make_snapshot):
        snapshots = weekly_series([4, 4]) + [make_snapshot(week=0, overall=4.0, group_key=BUSAN)]
        targets = [flat_target(2.0), flat_target(6.0, GroupKey(center="Busan"))]

        by_center = {p.group_key.center: p for p in predict_groups(snapshots, targets)}

        assert by_center["Busan"].overall.target_rate == 6.0
        assert by_center["Seoul"].overall.target_rate == 2.0

    def test_groups_without_history_are_skipped(self, weekly_series, make_snapshot):
        snapshots = weekly_series([4, 4]) + [
            make_snapshot(week=0, overall=0.0, total=0, group_key=BUSAN)
        ]

        predictions = predict_groups(snapshots)

        assert len(predictions) == 1
        assert predictions[0].group_key.center == "Seoul"
