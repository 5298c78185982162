"""Trend classification of error-rate series."""

from collections.abc import Sequence

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import MIN_POINTS_FOR_DISPERSION, Confidence, MetricCategory, Trend
from ..models import MetricSnapshot, TrendResult
from .forecaster import fit_linear, usable_series


def classify_slope(slope: float, epsilon: float) -> Trend:
    """Lower error is better, so a falling rate is improving."""
    if slope < -epsilon:
        return Trend.IMPROVING
    if slope > epsilon:
        return Trend.WORSENING
    return Trend.STABLE


def confidence_for(points: int) -> Confidence:
    if points < 2:
        return Confidence.LOW
    if points < MIN_POINTS_FOR_DISPERSION:
        return Confidence.MEDIUM
    return Confidence.HIGH


def analyze_trend(
    snapshots: Sequence[MetricSnapshot],
    category: MetricCategory,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> TrendResult:
    """Classify the direction of one rate category for a single group.

    Empty snapshots are skipped. The slope is the regression slope over the
    trailing ``forecast_window`` usable periods; fewer than two usable
    periods give a stable, low-confidence result.
    """
    series = usable_series(snapshots, window=config.forecast_window)
    points = len(series)
    if points < 2:
        return TrendResult(
            trend=Trend.STABLE,
            slope=0.0,
            delta=0.0,
            confidence=Confidence.LOW,
            points=points,
        )

    rates = [s.rate(category) for s in series]
    fit = fit_linear([s.period.ordinal for s in series], rates)
    return TrendResult(
        trend=classify_slope(fit.slope, config.trend_epsilon),
        slope=fit.slope,
        delta=rates[-1] - rates[-2],
        confidence=confidence_for(points),
        points=points,
    )
