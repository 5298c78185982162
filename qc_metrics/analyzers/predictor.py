"""Per-group predictions: forecast, target comparison, risk and watch reasons."""

from collections.abc import Iterable, Sequence

from loguru import logger

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import LogMessage, MetricCategory, RiskLevel, Trend, WatchReason
from ..errors import InsufficientHistoryError, InvalidRecordError
from ..models import CategoryForecast, DateRange, MetricSnapshot, Prediction, Target
from .aggregator import group_series
from .forecaster import forecast_series, usable_series
from .risk import alert_flag, most_severe, risk_from_probability, status_from_probability
from .targets import achievement_probability, default_target, resolve_target
from .trend import analyze_trend


def score_category(
    snapshots: Sequence[MetricSnapshot],
    category: MetricCategory,
    target_rate: float,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CategoryForecast:
    """Forecast one category and score it against its target rate."""
    series = forecast_series(snapshots, category, config=config)
    trend = analyze_trend(snapshots, category, config=config)

    gap = series.predicted_rate - target_rate
    horizon_gap = series.w4_predicted_rate - target_rate
    probability = achievement_probability(
        horizon_gap if config.score_at_horizon else gap,
        series.dispersion,
        config=config,
    )
    return CategoryForecast(
        category=category,
        current_rate=series.current_rate,
        predicted_rate=series.predicted_rate,
        w4_predicted_rate=series.w4_predicted_rate,
        target_rate=target_rate,
        gap=gap,
        horizon_gap=horizon_gap,
        dispersion=series.dispersion,
        achievement_probability=probability,
        trend=trend,
        risk_level=risk_from_probability(probability, config=config),
        status=status_from_probability(probability, config=config),
    )


def group_watch_reasons(
    series: Sequence[MetricSnapshot],
    categories: Iterable[CategoryForecast],
    overall_risk: RiskLevel,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[str]:
    """Reasons a group should be watched, in a stable order."""
    categories = list(categories)
    reasons: list[str] = []

    for forecast_ in categories:
        if forecast_.achievement_probability < config.group_low_probability:
            reasons.append(
                WatchReason.LOW_PROBABILITY.format(
                    forecast_.category, config.group_low_probability
                )
            )

    if len(series) >= 2:
        previous, latest = series[-2].overall_error_rate, series[-1].overall_error_rate
        if previous > 0 and latest >= previous * config.group_surge_ratio:
            reasons.append(
                WatchReason.SURGE.format((config.group_surge_ratio - 1) * 100)
            )

    for forecast_ in categories:
        if (
            forecast_.trend.trend == Trend.WORSENING
            and forecast_.current_rate > forecast_.target_rate
        ):
            reasons.append(WatchReason.WORSENING_ABOVE_TARGET.format(forecast_.category))

    if overall_risk == RiskLevel.CRITICAL:
        reasons.append(WatchReason.CRITICAL)
    return reasons


def forecast(
    snapshots: Sequence[MetricSnapshot],
    target: Target | None = None,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    partial: bool = False,
    received_range: DateRange | None = None,
) -> Prediction:
    """Predict the next period for one group.

    Args:
        snapshots: Snapshots of a single group, in any order. Empty snapshots
            are skipped.
        target: Target to score against; the configured default when None.
        config: Engine configuration.
        partial: Mark the prediction as computed from an incomplete record set.
        received_range: Days the incomplete record set actually covered.

    Returns:
        Prediction: Keyed by the group and its latest non-empty period. With a
            single usable period the forecast repeats that rate and is marked
            low confidence.

    Raises:
        InvalidRecordError: On non-snapshot input or snapshots of mixed groups.
        InsufficientHistoryError: If every snapshot is empty.
    """
    snapshots = list(snapshots)
    for snapshot in snapshots:
        if not isinstance(snapshot, MetricSnapshot):
            raise InvalidRecordError(f"Not a MetricSnapshot: {type(snapshot).__name__}")
    if len({snapshot.group_key for snapshot in snapshots}) > 1:
        raise InvalidRecordError("forecast expects snapshots of a single group")

    series = usable_series(snapshots, window=config.forecast_window)
    if not series:
        raise InsufficientHistoryError("No non-empty snapshots to forecast from")
    latest = series[-1]
    if len(series) < 2:
        logger.debug(
            LogMessage.INSUFFICIENT_HISTORY.format(latest.group_key.label, len(series))
        )

    if target is None:
        target = default_target(latest.period, config=config)

    attitude = score_category(
        series, MetricCategory.ATTITUDE, target.target_attitude_rate, config=config
    )
    operations = score_category(
        series, MetricCategory.OPERATIONS, target.target_ops_rate, config=config
    )
    overall = score_category(
        series, MetricCategory.OVERALL, target.target_overall_rate, config=config
    )
    overall_risk = most_severe([attitude.risk_level, operations.risk_level])

    return Prediction(
        group_key=latest.group_key,
        period=latest.period,
        total_evaluations=latest.total_evaluations,
        attitude=attitude,
        operations=operations,
        overall=overall,
        overall_risk=overall_risk,
        alert_flag=alert_flag(overall_risk),
        watch_reasons=group_watch_reasons(
            series, [attitude, operations, overall], overall_risk, config=config
        ),
        partial=partial,
        received_range=received_range,
    )


def predict_groups(
    snapshots: Iterable[MetricSnapshot],
    targets: Iterable[Target] = (),
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    partial: bool = False,
    received_range: DateRange | None = None,
) -> list[Prediction]:
    """Predict every group present in ``snapshots``.

    Groups with only empty snapshots are skipped. Each group's target is
    resolved for its latest non-empty period.

    Returns:
        list[Prediction]: Ordered by group key.
    """
    targets = list(targets)
    series_by_group = group_series(snapshots)
    logger.info(LogMessage.FORECASTING.format(len(series_by_group)))

    predictions: list[Prediction] = []
    for group_key, series in series_by_group.items():
        usable = [snapshot for snapshot in series if not snapshot.empty]
        if not usable:
            logger.debug(LogMessage.INSUFFICIENT_HISTORY.format(group_key.label, 0))
            continue
        target = resolve_target(targets, group_key, usable[-1].period, config=config)
        predictions.append(
            forecast(
                series,
                target,
                config=config,
                partial=partial,
                received_range=received_range,
            )
        )
    return predictions
