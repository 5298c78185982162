"""Risk and status classification.

Predictions use four risk levels while dashboards colour by five status
bands. Both read the same probability bands: achieved (>= 80) and on_track
(>= 60) are low risk, caution (>= 40) medium, warning (>= 20) high and
danger (< 20) critical.
"""

from collections.abc import Iterable

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import RISK_SEVERITY, RiskLevel, StatusLevel

STATUS_RATIO_BANDS: tuple[tuple[float, StatusLevel], ...] = (
    (0.8, StatusLevel.ACHIEVED),
    (1.0, StatusLevel.ON_TRACK),
    (1.2, StatusLevel.CAUTION),
    (1.5, StatusLevel.WARNING),
)


def risk_from_probability(
    probability: float, *, config: EngineConfig = DEFAULT_CONFIG
) -> RiskLevel:
    if probability >= config.risk_low_min:
        return RiskLevel.LOW
    if probability >= config.risk_medium_min:
        return RiskLevel.MEDIUM
    if probability >= config.risk_high_min:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def status_from_probability(
    probability: float, *, config: EngineConfig = DEFAULT_CONFIG
) -> StatusLevel:
    if probability >= config.status_achieved_min:
        return StatusLevel.ACHIEVED
    if probability >= config.risk_low_min:
        return StatusLevel.ON_TRACK
    if probability >= config.risk_medium_min:
        return StatusLevel.CAUTION
    if probability >= config.risk_high_min:
        return StatusLevel.WARNING
    return StatusLevel.DANGER


def status_from_ratio(rate: float, target: float) -> StatusLevel:
    """Status band of a current rate relative to its target.

    A zero target is only achieved by a zero rate.
    """
    if target <= 0:
        return StatusLevel.ACHIEVED if rate <= 0 else StatusLevel.DANGER
    ratio = rate / target
    for upper_bound, status in STATUS_RATIO_BANDS:
        if ratio <= upper_bound:
            return status
    return StatusLevel.DANGER


def most_severe(levels: Iterable[RiskLevel]) -> RiskLevel:
    """Most severe risk level; low when nothing is given."""
    return max(levels, key=RISK_SEVERITY.__getitem__, default=RiskLevel.LOW)


def alert_flag(risk: RiskLevel) -> bool:
    return risk in (RiskLevel.HIGH, RiskLevel.CRITICAL)
