"""Call-center QC metrics aggregation and forecasting package."""

from .analyzers import aggregate, build_watchlist, forecast, predict_groups
from .cache import SnapshotCache
from .config import EngineConfig
from .context import agent_analysis_context, group_analysis_context
from .fetcher import EvaluationFetcher
from .models import (
    DateRange,
    EvaluationRecord,
    GroupFilter,
    GroupKey,
    MetricSnapshot,
    Prediction,
    SnapshotBatch,
    Target,
    WatchEntry,
)
from .reports import ReportDocument, compose_report
from .service import QCMetricsService
from .storage import FileRecordStore, ResultStorage

__all__ = [
    "DateRange",
    "EngineConfig",
    "EvaluationFetcher",
    "EvaluationRecord",
    "FileRecordStore",
    "GroupFilter",
    "GroupKey",
    "MetricSnapshot",
    "Prediction",
    "QCMetricsService",
    "ReportDocument",
    "ResultStorage",
    "SnapshotBatch",
    "SnapshotCache",
    "Target",
    "WatchEntry",
    "agent_analysis_context",
    "aggregate",
    "build_watchlist",
    "compose_report",
    "forecast",
    "group_analysis_context",
    "predict_groups",
]
