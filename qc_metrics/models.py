"""Data models for QC metrics aggregation and forecasting."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any

from .constants import (
    ALL_VALUES,
    TENURE_BUCKETS,
    TENURE_TOP_BUCKET,
    TENURE_UNCLASSIFIED,
    Confidence,
    ErrorCategory,
    Granularity,
    GroupDimension,
    MetricCategory,
    RiskLevel,
    SnapshotKey,
    StatusLevel,
    Trend,
)
from .errors import InvalidFilterError
from .items import ATTITUDE_ITEM_IDS, ITEM_IDS, OPERATIONS_ITEM_IDS


def tenure_group(tenure_months: int | None) -> str:
    """Bucket a tenure in months into a named tenure group.

    Args:
        tenure_months: Months since hire, or None when unknown.

    Returns:
        str: One of new, junior, intermediate, senior, veteran or unclassified.
    """
    if tenure_months is None or tenure_months < 0:
        return TENURE_UNCLASSIFIED
    for upper_bound, name in TENURE_BUCKETS:
        if tenure_months < upper_bound:
            return name
    return TENURE_TOP_BUCKET


def _parse_day(value: date | str, *, label: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise InvalidFilterError(f"Invalid {label} date: {value!r}") from e


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days.

    Attributes:
        start: First day of the range.
        end: Last day of the range.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if not isinstance(self.start, date) or not isinstance(self.end, date):
            raise InvalidFilterError("Date range bounds must be dates")
        if self.start > self.end:
            raise InvalidFilterError(
                f"Date range start {self.start} is after end {self.end}"
            )

    @classmethod
    def parse(cls, *, start: date | str, end: date | str) -> "DateRange":
        """Build a range from ISO date strings or dates.

        Raises:
            InvalidFilterError: If either bound is malformed or start > end.
        """
        return cls(
            start=_parse_day(start, label="start"), end=_parse_day(end, label="end")
        )

    @property
    def days(self) -> int:
        """Number of days in the range (inclusive)."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def optional_range_dict(date_range: DateRange | None) -> dict[str, str] | None:
    return date_range.to_dict() if date_range is not None else None


@dataclass(frozen=True, order=True)
class Period:
    """A fixed-length time bucket snapshots are aligned to.

    Ordering and equality use (start, end, granularity); ``ordinal`` is a
    consecutive integer per granularity so that regression indices reflect
    real gaps between periods.
    """

    start: date
    end: date
    granularity: Granularity
    ordinal: int = field(compare=False)
    label: str = field(compare=False)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "granularity": self.granularity.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass(frozen=True)
class GroupKey:
    """Grouping tuple metrics are computed against.

    Dimensions that are not part of the grouping are None. Two records belong
    to the same group iff all present dimensions match exactly.
    """

    center: str | None = None
    service: str | None = None
    channel: str | None = None
    tenure_group: str | None = None
    agent_id: str | None = None

    @classmethod
    def from_record(
        cls, record: "EvaluationRecord", dimensions: Iterable[GroupDimension]
    ) -> "GroupKey":
        return cls(**{dim.value: record.dimension(dim) for dim in dimensions})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GroupKey":
        """Build a key from a mapping, rejecting unknown dimensions."""
        if not data:
            return cls()
        known = {dim.value for dim in GroupDimension}
        unknown = set(data) - known
        if unknown:
            raise InvalidFilterError(f"Unknown group dimensions: {sorted(unknown)}")
        return cls(
            **{
                key: str(value)
                for key, value in data.items()
                if value not in (None, "", ALL_VALUES)
            }
        )

    @property
    def is_global(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    @property
    def specificity(self) -> int:
        """Number of present dimensions."""
        return sum(getattr(self, f.name) is not None for f in fields(self))

    def covers(self, other: "GroupKey") -> bool:
        """True if every present dimension of this key equals ``other``'s."""
        return all(
            getattr(self, f.name) is None
            or getattr(self, f.name) == getattr(other, f.name)
            for f in fields(self)
        )

    def sort_key(self) -> tuple[str, ...]:
        return tuple(getattr(self, f.name) or "" for f in fields(self))

    @property
    def label(self) -> str:
        parts = [getattr(self, f.name) for f in fields(self)]
        present = [part for part in parts if part is not None]
        return "/".join(present) if present else "all"

    def to_dict(self) -> dict[str, str]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class GroupFilter:
    """Record filter on group dimensions.

    A None value (or "all") means the dimension is not filtered.

    Raises:
        InvalidFilterError: If a value is not a non-empty string.
    """

    center: str | None = None
    service: str | None = None
    channel: str | None = None
    tenure_group: str | None = None
    agent_id: str | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                raise InvalidFilterError(f"Invalid {f.name} filter: {value!r}")
            if value == ALL_VALUES:
                object.__setattr__(self, f.name, None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GroupFilter":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidFilterError(f"Unknown filter keys: {sorted(unknown)}")
        return cls(**{key: value for key, value in data.items() if value is not None})

    def matches(self, record: "EvaluationRecord") -> bool:
        return all(
            getattr(self, f.name) is None
            or record.dimension(GroupDimension(f.name)) == getattr(self, f.name)
            for f in fields(self)
        )

    def as_group_key(self) -> GroupKey:
        return GroupKey(**{f.name: getattr(self, f.name) for f in fields(self)})

    def to_dict(self) -> dict[str, str]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class EvaluationRecord:
    """One evaluated call. Immutable once ingested.

    Attributes:
        date: Evaluation day.
        agent_id: Evaluated agent.
        center: Contact center the agent belongs to.
        service: Service line (e.g. taxi, driver, quick).
        channel: Contact channel (e.g. phone, chat).
        tenure_months: Agent tenure at evaluation time, if known.
        items: Item id to flag (0/1 or bool). Missing items count as no error.
        agent_name: Optional display name.
        evaluation_id: Optional identifier from the source system.
    """

    date: date
    agent_id: str
    center: str
    service: str
    channel: str
    tenure_months: int | None = None
    items: Mapping[str, Any] = field(default_factory=dict)
    agent_name: str | None = None
    evaluation_id: str | None = None

    @property
    def tenure_group(self) -> str:
        return tenure_group(self.tenure_months)

    def dimension(self, dimension: GroupDimension) -> str:
        if dimension == GroupDimension.TENURE_GROUP:
            return self.tenure_group
        return getattr(self, dimension.value)

    def flag(self, item_id: str) -> int:
        """Return 1 if the item was flagged as an error, else 0.

        Missing or malformed flag values are treated as no error.
        """
        value = self.items.get(item_id)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)) and value > 0:
            return 1
        return 0

    def has_error(self, category: ErrorCategory | None = None) -> bool:
        """True if at least one item (of the category, if given) is flagged."""
        if category == ErrorCategory.ATTITUDE:
            item_ids = ATTITUDE_ITEM_IDS
        elif category == ErrorCategory.OPERATIONS:
            item_ids = OPERATIONS_ITEM_IDS
        else:
            item_ids = ITEM_IDS
        return any(self.flag(item_id) for item_id in item_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "evaluation_id": self.evaluation_id,
            "center": self.center,
            "service": self.service,
            "channel": self.channel,
            "tenure_months": self.tenure_months,
            "items": {item_id: self.flag(item_id) for item_id in ITEM_IDS},
        }


@dataclass(frozen=True)
class MetricSnapshot:
    """Error-rate aggregate for one group and period.

    Rates are percentages of calls with at least one error in the category.
    A snapshot with no evaluations has every rate at 0 and ``empty`` set.
    """

    group_key: GroupKey
    period: Period
    total_evaluations: int
    attitude_error_calls: int
    ops_error_calls: int
    error_calls: int
    attitude_error_rate: float
    ops_error_rate: float
    overall_error_rate: float
    per_item_error_counts: dict[str, int]
    agent_ids: frozenset[str] = frozenset()
    empty: bool = False

    @property
    def agent_count(self) -> int:
        return len(self.agent_ids)

    def rate(self, category: MetricCategory) -> float:
        if category == MetricCategory.ATTITUDE:
            return self.attitude_error_rate
        if category == MetricCategory.OPERATIONS:
            return self.ops_error_rate
        return self.overall_error_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            SnapshotKey.GROUP: self.group_key.to_dict(),
            SnapshotKey.PERIOD: self.period.to_dict(),
            SnapshotKey.TOTAL_EVALUATIONS: self.total_evaluations,
            SnapshotKey.ATTITUDE_ERROR_RATE: self.attitude_error_rate,
            SnapshotKey.OPS_ERROR_RATE: self.ops_error_rate,
            SnapshotKey.OVERALL_ERROR_RATE: self.overall_error_rate,
            SnapshotKey.PER_ITEM_ERROR_COUNTS: dict(self.per_item_error_counts),
            "agent_count": self.agent_count,
            SnapshotKey.EMPTY: self.empty,
        }


@dataclass(frozen=True)
class Target:
    """Target error rates for a group (or globally) over a date span.

    Attributes:
        group_key: Group the target applies to; None for a global target.
        period_start: First day the target applies.
        period_end: Last day the target applies.
        target_attitude_rate: Target attitude error rate (%).
        target_ops_rate: Target operations error rate (%).
        target_overall_rate: Target overall error rate (%).
    """

    group_key: GroupKey | None
    period_start: date
    period_end: date
    target_attitude_rate: float
    target_ops_rate: float
    target_overall_rate: float

    @property
    def is_global(self) -> bool:
        return self.group_key is None or self.group_key.is_global

    @property
    def span_days(self) -> int:
        return (self.period_end - self.period_start).days + 1

    def encloses(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end

    def rate_for(self, category: MetricCategory) -> float:
        if category == MetricCategory.ATTITUDE:
            return self.target_attitude_rate
        if category == MetricCategory.OPERATIONS:
            return self.target_ops_rate
        return self.target_overall_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group_key.to_dict() if self.group_key else None,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "target_attitude_rate": self.target_attitude_rate,
            "target_ops_rate": self.target_ops_rate,
            "target_overall_rate": self.target_overall_rate,
        }


@dataclass(frozen=True)
class TrendResult:
    """Directional classification of a rate series.

    Attributes:
        trend: improving, stable or worsening.
        slope: Regression slope in percentage points per period.
        delta: Latest rate minus the previous rate (0 with one point).
        confidence: Low when fewer than two usable periods were available.
        points: Number of usable periods the trend was computed from.
    """

    trend: Trend
    slope: float
    delta: float
    confidence: Confidence
    points: int

    @property
    def low_confidence(self) -> bool:
        return self.confidence == Confidence.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "trend": self.trend.value,
            "slope": self.slope,
            "delta": self.delta,
            "confidence": self.confidence.value,
            "points": self.points,
        }


@dataclass(frozen=True)
class CategoryForecast:
    """Forecast, target comparison and risk for one rate category."""

    category: MetricCategory
    current_rate: float
    predicted_rate: float
    w4_predicted_rate: float
    target_rate: float
    gap: float
    horizon_gap: float
    dispersion: float
    achievement_probability: float
    trend: TrendResult
    risk_level: RiskLevel
    status: StatusLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "current_rate": self.current_rate,
            "predicted_rate": self.predicted_rate,
            "w4_predicted_rate": self.w4_predicted_rate,
            "target_rate": self.target_rate,
            "gap": self.gap,
            "horizon_gap": self.horizon_gap,
            "dispersion": self.dispersion,
            "achievement_probability": self.achievement_probability,
            "trend": self.trend.trend.value,
            "trend_delta": self.trend.delta,
            "slope": self.trend.slope,
            "confidence": self.trend.confidence.value,
            "risk_level": self.risk_level.value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class Prediction:
    """Per-group prediction for the period after ``period``."""

    group_key: GroupKey
    period: Period
    total_evaluations: int
    attitude: CategoryForecast
    operations: CategoryForecast
    overall: CategoryForecast
    overall_risk: RiskLevel
    alert_flag: bool
    watch_reasons: list[str] = field(default_factory=list)
    partial: bool = False
    received_range: DateRange | None = None  # set on partial fetches only

    @property
    def low_confidence(self) -> bool:
        return self.overall.trend.low_confidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group_key.to_dict(),
            "group_label": self.group_key.label,
            "period": self.period.to_dict(),
            "total_evaluations": self.total_evaluations,
            "attitude": self.attitude.to_dict(),
            "operations": self.operations.to_dict(),
            "overall": self.overall.to_dict(),
            "overall_risk": self.overall_risk.value,
            "alert_flag": self.alert_flag,
            "low_confidence": self.low_confidence,
            "watch_reasons": list(self.watch_reasons),
            "partial": self.partial,
            "received_range": optional_range_dict(self.received_range),
        }


@dataclass(frozen=True)
class WatchEntry:
    """Agent selected for intervention.

    Attributes:
        agent_id: Agent identifier.
        error_rate: Current-period overall error rate (%).
        trend: Current rate minus prior-period rate (0 if no prior period).
        main_issue: Item with the highest error count, None if no errors.
        main_errors: Top items as (item id, count, rate) tuples.
        reasons: Threshold breaches explaining the selection.
    """

    agent_id: str
    error_rate: float
    trend: float
    main_issue: str | None
    center: str | None = None
    service: str | None = None
    channel: str | None = None
    total_evaluations: int = 0
    attitude_error_rate: float = 0.0
    ops_error_rate: float = 0.0
    main_errors: list[tuple[str, int, float]] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "error_rate": self.error_rate,
            "trend": self.trend,
            "main_issue": self.main_issue,
            "center": self.center,
            "service": self.service,
            "channel": self.channel,
            "total_evaluations": self.total_evaluations,
            "attitude_error_rate": self.attitude_error_rate,
            "ops_error_rate": self.ops_error_rate,
            "main_errors": [
                {"item": item_id, "count": count, "rate": rate}
                for item_id, count, rate in self.main_errors
            ],
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class Watchlist:
    """Watchlist entries with the windows they were computed over.

    On a partial fetch ``received_range`` and ``prior_received_range`` hold
    the days each window's records actually covered; both stay None for
    complete fetches.
    """

    entries: list[WatchEntry]
    date_range: DateRange
    prior_range: DateRange
    partial: bool = False
    received_range: DateRange | None = None
    prior_received_range: DateRange | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_range": self.date_range.to_dict(),
            "prior_range": self.prior_range.to_dict(),
            "partial": self.partial,
            "received_range": optional_range_dict(self.received_range),
            "prior_received_range": optional_range_dict(self.prior_received_range),
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class SnapshotBatch:
    """Snapshots aggregated for one requested window."""

    snapshots: list[MetricSnapshot]
    date_range: DateRange
    partial: bool = False
    received_range: DateRange | None = None  # set on partial fetches only

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_range": self.date_range.to_dict(),
            "partial": self.partial,
            "received_range": optional_range_dict(self.received_range),
            "snapshots": [snapshot.to_dict() for snapshot in self.snapshots],
        }


@dataclass(frozen=True)
class FetchResult:
    """Records delivered by a record store for one request.

    Attributes:
        records: Records received.
        complete: False when the store stopped before delivering everything.
        requested_range: Range the caller asked for.
        received_range: Range actually covered (None when nothing arrived).
        skipped: Rows dropped by ingestion validation.
    """

    records: list[EvaluationRecord]
    complete: bool = True
    requested_range: DateRange | None = None
    received_range: DateRange | None = None
    skipped: int = 0
