"""
QC Metrics - Pytest Configuration
Shared fixtures and configuration for all tests
"""

import json
from datetime import date, timedelta
from pathlib import Path

import pytest

from qc_metrics.constants import Granularity
from qc_metrics.items import ITEM_IDS
from qc_metrics.models import EvaluationRecord, GroupKey, MetricSnapshot
from qc_metrics.periods import period_for

# Monday
BASE_DAY = date(2024, 1, 1)
SEOUL_TAXI = GroupKey(center="Seoul", service="taxi", channel="phone")


# ==================== RECORD FIXTURES ====================

@pytest.fixture
def make_record():
    """Factory for evaluation records; ``errors`` lists flagged item ids"""

    def _make(
        *,
        day: date = BASE_DAY,
        agent_id: str = "a1",
        center: str = "Seoul",
        service: str = "taxi",
        channel: str = "phone",
        tenure_months: int | None = 12,
        errors: tuple[str, ...] = (),
    ) -> EvaluationRecord:
        return EvaluationRecord(
            date=day,
            agent_id=agent_id,
            center=center,
            service=service,
            channel=channel,
            tenure_months=tenure_months,
            items={item_id: 1 for item_id in errors},
        )

    return _make


@pytest.fixture
def scenario_records(make_record):
    """100 calls: 5 attitude-only, 6 ops-only, 1 with both"""
    records = [make_record(errors=("empathy",)) for _ in range(5)]
    records += [make_record(errors=("guide",)) for _ in range(6)]
    records += [make_record(errors=("greeting", "guide"))]
    records += [make_record() for _ in range(88)]
    return records


# ==================== SNAPSHOT FIXTURES ====================

@pytest.fixture
def make_snapshot():
    """Factory for weekly snapshots with given rates (per 100 evaluations)"""

    def _make(
        *,
        week: int,
        overall: float,
        attitude: float | None = None,
        ops: float | None = None,
        group_key: GroupKey = SEOUL_TAXI,
        total: int = 100,
        per_item: dict[str, int] | None = None,
        agent_ids: frozenset[str] = frozenset({"a1"}),
    ) -> MetricSnapshot:
        period = period_for(BASE_DAY + timedelta(weeks=week), Granularity.WEEK)
        attitude = overall if attitude is None else attitude
        ops = overall if ops is None else ops
        counts = {item_id: 0 for item_id in ITEM_IDS}
        counts.update(per_item or {})
        if total == 0:
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
                per_item_error_counts=counts,
                empty=True,
            )
        attitude_calls = round(attitude * total / 100)
        ops_calls = round(ops * total / 100)
        error_calls = round(overall * total / 100)
        return MetricSnapshot(
            group_key=group_key,
            period=period,
            total_evaluations=total,
            attitude_error_calls=attitude_calls,
            ops_error_calls=ops_calls,
            error_calls=error_calls,
            attitude_error_rate=attitude,
            ops_error_rate=ops,
            overall_error_rate=overall,
            per_item_error_counts=counts,
            agent_ids=agent_ids,
        )

    return _make


@pytest.fixture
def weekly_series(make_snapshot):
    """Build a weekly series from a list of overall rates"""

    def _series(rates, **kwargs):
        return [
            make_snapshot(week=week, overall=rate, **kwargs)
            for week, rate in enumerate(rates)
        ]

    return _series


# ==================== FILE FIXTURES ====================

def _record_row(
    day: str,
    agent_id: str = "a1",
    center: str = "Seoul",
    errors: tuple[str, ...] = (),
) -> dict:
    return {
        "date": day,
        "agent_id": agent_id,
        "center": center,
        "service": "taxi",
        "channel": "phone",
        "tenure_months": 12,
        "items": {item_id: 1 for item_id in errors},
    }


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    """JSON export with two weeks of records for two agents"""
    rows = []
    for offset in range(14):
        day = (BASE_DAY + timedelta(days=offset)).isoformat()
        rows.append(_record_row(day, "a1", errors=("guide",) if offset % 2 else ()))
        rows.append(_record_row(day, "b1", center="Busan", errors=("empathy",)))
        rows.append(_record_row(day, "b1", center="Busan"))
    path = tmp_path / "evaluations.json"
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


@pytest.fixture
def targets_file(tmp_path: Path) -> Path:
    rows = [
        {
            "period_start": "2024-01-01",
            "period_end": "2024-12-31",
            "target_attitude_rate": 2.0,
            "target_ops_rate": 3.0,
            "target_overall_rate": 4.0,
        }
    ]
    path = tmp_path / "targets.json"
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def make_row():
    """Factory for raw JSON rows as the record API returns them"""
    return _record_row
