"""Engine configuration."""

from dataclasses import dataclass, replace

from .constants import (
    AGENT_ATTITUDE_WATCH_RATE,
    AGENT_OPS_WATCH_RATE,
    DEFAULT_AGENT_MAIN_ERRORS,
    DEFAULT_DISPERSION,
    DEFAULT_DISPERSION_DELTA,
    DEFAULT_FORECAST_WINDOW,
    DEFAULT_HORIZON_PERIODS,
    DEFAULT_TANH_SCALE,
    DEFAULT_TARGET_RATE,
    DEFAULT_TOP_ISSUES_LIMIT,
    DEFAULT_TREND_EPSILON,
    DEFAULT_WATCHLIST_SIZE,
    GROUP_LOW_PROBABILITY,
    GROUP_SURGE_RATIO,
    RISK_HIGH_MIN_PROBABILITY,
    RISK_LOW_MIN_PROBABILITY,
    RISK_MEDIUM_MIN_PROBABILITY,
    STATUS_ACHIEVED_MIN_PROBABILITY,
)


@dataclass(frozen=True)
class EngineConfig:
    """Configurable parameters for trend, forecast, scoring and selection.

    Attributes:
        trend_epsilon: Slope (points/period) below which a trend is stable.
        forecast_window: Maximum trailing periods used by the regression.
        horizon_periods: Periods ahead of the latest one for the horizon forecast.
        default_dispersion: Dispersion used when residuals cannot be measured.
        dispersion_delta: Added to dispersion to avoid dividing by zero.
        tanh_scale: Multiplier applied to gap / dispersion inside tanh.
        score_at_horizon: Score achievement on the horizon forecast gap
            instead of the next-period gap.
        risk_low_min: Lowest probability still classified as low risk.
        risk_medium_min: Lowest probability still classified as medium risk.
        risk_high_min: Lowest probability still classified as high risk.
        status_achieved_min: Lowest probability shown as "achieved".
        watchlist_size: Default number of agents on the watchlist.
        top_issues_limit: Items listed in a report's top issues.
        agent_main_errors: Items listed per watchlist entry.
        agent_attitude_watch_rate: Agent attitude rate that adds a watch reason.
        agent_ops_watch_rate: Agent ops rate that adds a watch reason.
        group_low_probability: Group probability that adds a watch reason.
        group_surge_ratio: Period-over-period ratio that counts as a surge.
        default_target_rate: Target used when no target record applies.
    """

    trend_epsilon: float = DEFAULT_TREND_EPSILON
    forecast_window: int = DEFAULT_FORECAST_WINDOW
    horizon_periods: int = DEFAULT_HORIZON_PERIODS
    default_dispersion: float = DEFAULT_DISPERSION
    dispersion_delta: float = DEFAULT_DISPERSION_DELTA
    tanh_scale: float = DEFAULT_TANH_SCALE
    score_at_horizon: bool = True
    risk_low_min: float = RISK_LOW_MIN_PROBABILITY
    risk_medium_min: float = RISK_MEDIUM_MIN_PROBABILITY
    risk_high_min: float = RISK_HIGH_MIN_PROBABILITY
    status_achieved_min: float = STATUS_ACHIEVED_MIN_PROBABILITY
    watchlist_size: int = DEFAULT_WATCHLIST_SIZE
    top_issues_limit: int = DEFAULT_TOP_ISSUES_LIMIT
    agent_main_errors: int = DEFAULT_AGENT_MAIN_ERRORS
    agent_attitude_watch_rate: float = AGENT_ATTITUDE_WATCH_RATE
    agent_ops_watch_rate: float = AGENT_OPS_WATCH_RATE
    group_low_probability: float = GROUP_LOW_PROBABILITY
    group_surge_ratio: float = GROUP_SURGE_RATIO
    default_target_rate: float = DEFAULT_TARGET_RATE

    def __post_init__(self) -> None:
        if self.trend_epsilon < 0:
            raise ValueError("trend_epsilon must be >= 0")
        if self.forecast_window < 2:
            raise ValueError("forecast_window must be >= 2")
        if self.horizon_periods < 1:
            raise ValueError("horizon_periods must be >= 1")
        if self.default_dispersion < 0:
            raise ValueError("default_dispersion must be >= 0")
        if self.dispersion_delta <= 0:
            raise ValueError("dispersion_delta must be > 0")
        if self.tanh_scale <= 0:
            raise ValueError("tanh_scale must be > 0")
        if not (
            self.status_achieved_min
            >= self.risk_low_min
            >= self.risk_medium_min
            >= self.risk_high_min
            >= 0
        ):
            raise ValueError("risk/status bands must be descending and non-negative")
        if self.watchlist_size < 0 or self.top_issues_limit < 0:
            raise ValueError("list sizes must be >= 0")

    def with_overrides(self, **overrides) -> "EngineConfig":
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(
            self, **{key: value for key, value in overrides.items() if value is not None}
        )


DEFAULT_CONFIG = EngineConfig()
