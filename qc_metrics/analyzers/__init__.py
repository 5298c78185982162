"""Metric analyzers: aggregation, trend, forecast, scoring and selection."""

from .aggregator import aggregate, iter_aggregate, merge_snapshots
from .predictor import forecast, predict_groups
from .risk import risk_from_probability, status_from_probability, status_from_ratio
from .targets import achievement_probability, resolve_target
from .trend import analyze_trend
from .watchlist import build_watchlist

__all__ = [
    "achievement_probability",
    "aggregate",
    "analyze_trend",
    "build_watchlist",
    "forecast",
    "iter_aggregate",
    "merge_snapshots",
    "predict_groups",
    "resolve_target",
    "risk_from_probability",
    "status_from_probability",
    "status_from_ratio",
]
