"""
QC Metrics - Unit Tests for Ingestion Schemas
"""

from datetime import date

import pytest

from qc_metrics.models import GroupKey
from qc_metrics.schemas import coerce_flag, parse_records, parse_targets


class TestCoerceFlag:
    """Tests for spreadsheet flag coercion"""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1, 1),
            (0, 0),
            (True, 1),
            ("Y", 1),
            ("yes", 1),
            ("1.0", 1),
            ("N", 0),
            ("", 0),
            (None, 0),
            ("garbage", 0),
            (-1, 0),
        ],
    )
    def test_values(self, value, expected):
        assert coerce_flag(value) == expected


class TestParseRecords:
    """Tests for record validation"""

    def test_nested_items(self, make_row):
        records, skipped = parse_records([make_row("2024-01-01", errors=("guide",))])

        assert skipped == 0
        assert records[0].date == date(2024, 1, 1)
        assert records[0].flag("guide") == 1
        assert records[0].flag("empathy") == 0
        assert records[0].tenure_group == "senior"

    def test_top_level_alias_columns(self):
        """Items may arrive as flat spreadsheet columns"""
        row = {
            "evaluationDate": "2024-01-02T10:15:00",
            "agentId": 1042,
            "center": "Seoul",
            "service": "taxi",
            "channel": "chat",
            "공감표현누락": "Y",
            "guide_error": "1",
            "history": "N",
        }

        [record], skipped = parse_records([row])

        assert skipped == 0
        assert record.date == date(2024, 1, 2)
        assert record.agent_id == "1042"
        assert record.flag("empathy") == 1
        assert record.flag("guide") == 1
        assert record.flag("history") == 0
        assert record.tenure_months is None

    def test_every_item_is_present(self, make_row):
        [record], _ = parse_records([make_row("2024-01-01")])

        assert len(record.items) == 16

    def test_invalid_rows_are_skipped(self, make_row):
        rows = [
            make_row("2024-01-01"),
            {**make_row("2024-01-01"), "agent_id": ""},
            {**make_row("not-a-date")},
            {"center": "Seoul"},
        ]

        records, skipped = parse_records(rows)

        assert len(records) == 1
        assert skipped == 3


class TestParseTargets:
    """Tests for target validation"""

    BASE = {
        "period_start": "2024-01-01",
        "period_end": "2024-03-31",
        "target_attitude_rate": 2.0,
        "target_ops_rate": 3.0,
    }

    def test_overall_defaults_to_category_sum(self):
        [target] = parse_targets([self.BASE])

        assert target.is_global
        assert target.target_overall_rate == 5.0

    def test_group_from_top_level_columns(self):
        [target] = parse_targets([{**self.BASE, "center": "Seoul", "target_overall_rate": 4}])

        assert target.group_key == GroupKey(center="Seoul")
        assert target.target_overall_rate == 4.0

    def test_nested_group(self):
        [target] = parse_targets([{**self.BASE, "group": {"service": "taxi"}}])

        assert target.group_key == GroupKey(service="taxi")

    @pytest.mark.parametrize(
        "override",
        [
            {"period_end": "2023-12-31"},
            {"target_ops_rate": 120},
            {"group": {"region": "north"}},
        ],
    )
    def test_invalid_targets_are_skipped(self, override):
        assert parse_targets([{**self.BASE, **override}]) == []
