"""Target lookup and achievement-probability scoring."""

import math
from collections.abc import Iterable

from ..config import DEFAULT_CONFIG, EngineConfig
from ..constants import MAX_PROBABILITY, MIN_PROBABILITY
from ..errors import InvalidRecordError
from ..models import GroupKey, Period, Target


def default_target(period: Period, *, config: EngineConfig = DEFAULT_CONFIG) -> Target:
    """Global target used when no target record applies."""
    return Target(
        group_key=None,
        period_start=period.start,
        period_end=period.end,
        target_attitude_rate=config.default_target_rate,
        target_ops_rate=config.default_target_rate,
        target_overall_rate=config.default_target_rate,
    )


def resolve_target(
    targets: Iterable[Target],
    group_key: GroupKey,
    period: Period,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Target:
    """Find the target that applies to a group in a period.

    A candidate must enclose the period start and every dimension it names
    must equal the group's. Among candidates the most specific group wins,
    then the narrowest span, then the latest start. Global targets are the
    least specific candidates; without any candidate the configured default
    target is returned.

    Raises:
        InvalidRecordError: If an element is not a Target.
    """
    candidates: list[Target] = []
    for target in targets:
        if not isinstance(target, Target):
            raise InvalidRecordError(f"Not a Target: {type(target).__name__}")
        if not target.encloses(period.start):
            continue
        if target.is_global or target.group_key.covers(group_key):
            candidates.append(target)

    if not candidates:
        return default_target(period, config=config)

    def rank(target: Target) -> tuple[int, int, int]:
        specificity = 0 if target.is_global else target.group_key.specificity
        return (-specificity, target.span_days, -target.period_start.toordinal())

    return min(candidates, key=rank)


def achievement_probability(
    gap: float, dispersion: float, *, config: EngineConfig = DEFAULT_CONFIG
) -> float:
    """Probability (0-100) of meeting a target given the forecast gap.

    ``gap`` is forecast minus target, so a positive gap is a miss. The result
    is exactly 50 at gap 0, strictly decreasing in gap and flattens toward 50
    as dispersion grows.
    """
    z = config.tanh_scale * gap / (max(dispersion, 0.0) + config.dispersion_delta)
    probability = MAX_PROBABILITY * (0.5 - 0.5 * math.tanh(z))
    return min(MAX_PROBABILITY, max(MIN_PROBABILITY, probability))
