"""Linear extrapolation of error-rate series."""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import MAX_RATE, MIN_POINTS_FOR_DISPERSION, MIN_RATE, MetricCategory
from ..errors import InsufficientHistoryError
from ..models import MetricSnapshot


@dataclass(frozen=True)
class LinearFit:
    """Least-squares line through a series of (index, rate) points."""

    slope: float
    intercept: float
    residual_std: float | None
    points: int

    def value_at(self, index: float) -> float:
        return self.intercept + self.slope * index


@dataclass(frozen=True)
class SeriesForecast:
    """Next-period and horizon forecast for one rate series."""

    current_rate: float
    predicted_rate: float
    w4_predicted_rate: float
    slope: float
    dispersion: float
    points: int


def clamp_rate(value: float) -> float:
    return float(min(MAX_RATE, max(MIN_RATE, value)))


def fit_linear(xs: Sequence[float], ys: Sequence[float]) -> LinearFit:
    """Ordinary least squares fit of ``ys`` against ``xs``.

    One point gives a flat line through it. The residual standard deviation
    is only measured with at least three points; a line through two points
    always fits exactly and says nothing about dispersion.

    Raises:
        ValueError: If the inputs are empty or of different lengths.
    """
    if len(xs) != len(ys) or not xs:
        raise ValueError("fit_linear needs equally sized, non-empty inputs")

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if len(x) == 1:
        return LinearFit(slope=0.0, intercept=float(y[0]), residual_std=None, points=1)

    x_mean = x.mean()
    y_mean = y.mean()
    denominator = float(((x - x_mean) ** 2).sum())
    slope = float(((x - x_mean) * (y - y_mean)).sum()) / denominator if denominator else 0.0
    intercept = float(y_mean) - slope * float(x_mean)

    residual_std = None
    if len(x) >= MIN_POINTS_FOR_DISPERSION:
        residuals = y - (intercept + slope * x)
        residual_std = float(np.std(residuals))

    return LinearFit(
        slope=slope, intercept=intercept, residual_std=residual_std, points=len(x)
    )


def usable_series(
    snapshots: Sequence[MetricSnapshot], *, window: int
) -> list[MetricSnapshot]:
    """Non-empty snapshots sorted by period, limited to the trailing window."""
    usable = sorted((s for s in snapshots if not s.empty), key=lambda s: s.period)
    return usable[-window:] if window > 0 else usable


def forecast_series(
    snapshots: Sequence[MetricSnapshot],
    category: MetricCategory,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> SeriesForecast:
    """Forecast one rate category of a single group's series.

    The regression index is the period ordinal, so a skipped (empty) period
    still counts as elapsed time. ``predicted_rate`` is the line one period
    after the latest one and ``w4_predicted_rate`` ``horizon_periods`` after
    it, both clamped to [0, 100].

    Args:
        snapshots: Same-group snapshots in any order; empty ones are skipped.
        category: Rate series to forecast.
        config: Engine configuration.

    Returns:
        SeriesForecast: The forecast and the dispersion used for scoring.

    Raises:
        InsufficientHistoryError: If no non-empty snapshot is available.
    """
    series = usable_series(snapshots, window=config.forecast_window)
    if not series:
        raise InsufficientHistoryError("No non-empty snapshots to forecast from")

    xs = [s.period.ordinal for s in series]
    ys = [s.rate(category) for s in series]
    fit = fit_linear(xs, ys)
    last = xs[-1]

    dispersion = (
        fit.residual_std if fit.residual_std is not None else config.default_dispersion
    )
    return SeriesForecast(
        current_rate=ys[-1],
        predicted_rate=clamp_rate(fit.value_at(last + 1)),
        w4_predicted_rate=clamp_rate(fit.value_at(last + config.horizon_periods)),
        slope=fit.slope,
        dispersion=dispersion,
        points=fit.points,
    )
