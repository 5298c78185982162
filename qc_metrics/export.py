"""Flatten engine output into pandas DataFrames and CSV files."""

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd
from loguru import logger

from .constants import LogMessage
from .items import ITEM_IDS
from .models import MetricSnapshot, Prediction, WatchEntry


def flatten_snapshot(snapshot: MetricSnapshot) -> dict[str, Any]:
    """Flatten a snapshot into a single-level dict (one column per item)."""
    flat: dict[str, Any] = {
        "period": snapshot.period.label,
        "period_start": snapshot.period.start.isoformat(),
        "period_end": snapshot.period.end.isoformat(),
        "group": snapshot.group_key.label,
    }
    flat.update(snapshot.group_key.to_dict())
    flat["total_evaluations"] = snapshot.total_evaluations
    flat["agent_count"] = snapshot.agent_count
    flat["attitude_error_rate"] = snapshot.attitude_error_rate
    flat["ops_error_rate"] = snapshot.ops_error_rate
    flat["overall_error_rate"] = snapshot.overall_error_rate
    flat["empty"] = snapshot.empty
    for item_id in ITEM_IDS:
        flat[f"{item_id}_count"] = snapshot.per_item_error_counts.get(item_id, 0)
    return flat


def flatten_prediction(prediction: Prediction) -> dict[str, Any]:
    """Flatten a prediction; category fields are prefixed by category."""
    flat: dict[str, Any] = {
        "group": prediction.group_key.label,
        "period": prediction.period.label,
        "total_evaluations": prediction.total_evaluations,
        "overall_risk": prediction.overall_risk.value,
        "alert_flag": prediction.alert_flag,
        "low_confidence": prediction.low_confidence,
        "partial": prediction.partial,
        "watch_reasons": "; ".join(prediction.watch_reasons),
    }
    for category in (prediction.attitude, prediction.operations, prediction.overall):
        prefix = category.category.value
        flat[f"{prefix}_current_rate"] = category.current_rate
        flat[f"{prefix}_predicted_rate"] = category.predicted_rate
        flat[f"{prefix}_w4_predicted_rate"] = category.w4_predicted_rate
        flat[f"{prefix}_target_rate"] = category.target_rate
        flat[f"{prefix}_trend"] = category.trend.trend.value
        flat[f"{prefix}_achievement_probability"] = category.achievement_probability
        flat[f"{prefix}_risk_level"] = category.risk_level.value
    return flat


def flatten_watch_entry(entry: WatchEntry) -> dict[str, Any]:
    flat = entry.to_dict()
    flat["main_errors"] = ", ".join(
        f"{item_id}({count})" for item_id, count, _ in entry.main_errors
    )
    flat["reasons"] = "; ".join(entry.reasons)
    return flat


def snapshots_frame(snapshots: Iterable[MetricSnapshot]) -> pd.DataFrame:
    return pd.DataFrame([flatten_snapshot(snapshot) for snapshot in snapshots])


def predictions_frame(predictions: Iterable[Prediction]) -> pd.DataFrame:
    """Predictions frame, most at-risk groups first."""
    df = pd.DataFrame([flatten_prediction(prediction) for prediction in predictions])
    if df.empty:
        return df
    return df.sort_values(
        ["overall_achievement_probability", "group"], ascending=[True, True]
    ).reset_index(drop=True)


def watchlist_frame(entries: Iterable[WatchEntry]) -> pd.DataFrame:
    return pd.DataFrame([flatten_watch_entry(entry) for entry in entries])


def write_csv(df: pd.DataFrame, output_path: Path, *, label: str) -> Path:
    """Write a frame to CSV, creating parent directories."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.success(LogMessage.SAVED_OUTPUT.format(f"{len(df)} {label}", output_path))
    return output_path
