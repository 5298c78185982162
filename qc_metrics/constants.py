"""Constants and enumerations for QC metrics aggregation and forecasting."""

from enum import StrEnum
from typing import Final


# Trend / Forecast Defaults
DEFAULT_TREND_EPSILON: Final[float] = 0.3  # percentage points per period
DEFAULT_FORECAST_WINDOW: Final[int] = 8
DEFAULT_HORIZON_PERIODS: Final[int] = 4
DEFAULT_DISPERSION: Final[float] = 0.5
DEFAULT_DISPERSION_DELTA: Final[float] = 0.1
DEFAULT_TANH_SCALE: Final[float] = 1.0
MIN_POINTS_FOR_DISPERSION: Final[int] = 3

# Risk Bands (lower bounds, inclusive)
RISK_LOW_MIN_PROBABILITY: Final[float] = 60.0
RISK_MEDIUM_MIN_PROBABILITY: Final[float] = 40.0
RISK_HIGH_MIN_PROBABILITY: Final[float] = 20.0
STATUS_ACHIEVED_MIN_PROBABILITY: Final[float] = 80.0

# Watch Conditions
DEFAULT_WATCHLIST_SIZE: Final[int] = 5
DEFAULT_TOP_ISSUES_LIMIT: Final[int] = 5
DEFAULT_AGENT_MAIN_ERRORS: Final[int] = 3
AGENT_ATTITUDE_WATCH_RATE: Final[float] = 5.0
AGENT_OPS_WATCH_RATE: Final[float] = 6.0
GROUP_LOW_PROBABILITY: Final[float] = 30.0
GROUP_SURGE_RATIO: Final[float] = 1.5

# Targets
DEFAULT_TARGET_RATE: Final[float] = 3.0

# Rates
RATE_SCALE: Final[int] = 100
MIN_RATE: Final[float] = 0.0
MAX_RATE: Final[float] = 100.0
MIN_PROBABILITY: Final[float] = 0.0
MAX_PROBABILITY: Final[float] = 100.0

# Report Windows
WEEK_REPORT_DAYS: Final[int] = 7

# Month-week boundaries (last day of W1, W2, W3)
MONTH_WEEK_BOUNDARIES: Final[tuple[int, int, int]] = (5, 12, 19)

# Tenure buckets (exclusive upper bound in months)
TENURE_BUCKETS: Final[tuple[tuple[int, str], ...]] = (
    (3, "new"),
    (6, "junior"),
    (12, "intermediate"),
    (24, "senior"),
)
TENURE_TOP_BUCKET: Final[str] = "veteran"
TENURE_UNCLASSIFIED: Final[str] = "unclassified"

# HTTP Record Store
DEFAULT_PAGE_LIMIT: Final[int] = 500
DEFAULT_MAX_PAGES: Final[int] = 200
DEFAULT_FETCH_CONCURRENCY: Final[int] = 10
DEFAULT_FETCH_RATE: Final[int] = 10
DEFAULT_FETCH_MAX_RETRIES: Final[int] = 4
API_EVALUATIONS_ENDPOINT: Final[str] = "/evaluations"
API_TARGETS_ENDPOINT: Final[str] = "/targets"

# Files
DEFAULT_OUTPUT_DIR: Final[str] = "output"
DEFAULT_CACHE_DIR: Final[str] = "evaluations"
DEFAULT_RECORDS_OUTPUT: Final[str] = "evaluations.json"
SNAPSHOTS_OUTPUT_STEM: Final[str] = "snapshots"
PREDICTIONS_OUTPUT_STEM: Final[str] = "predictions"
WATCHLIST_OUTPUT_STEM: Final[str] = "watchlist"
REPORT_OUTPUT_STEM: Final[str] = "report"
QC_API_BASE_URL_ENV: Final[str] = "QC_API_BASE_URL"
QC_API_TOKEN_ENV: Final[str] = "QC_API_TOKEN"
PREVIEW_ROWS: Final[int] = 20
JSON_INDENT: Final[int] = 2

# Numeric Constants
EXIT_CODE_ERROR: Final[int] = 1
FIRST_PAGE: Final[int] = 1

# Empty Values
EMPTY_STRING: Final[str] = ""
ALL_VALUES: Final[str] = "all"


class ErrorCategory(StrEnum):
    """Evaluation item categories."""

    ATTITUDE = "attitude"
    OPERATIONS = "operations"


class MetricCategory(StrEnum):
    """Rate series a forecast can be produced for."""

    ATTITUDE = "attitude"
    OPERATIONS = "operations"
    OVERALL = "overall"


class Granularity(StrEnum):
    """Period granularity snapshots are aligned to."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    MONTH_WEEK = "month_week"


class GroupDimension(StrEnum):
    """Record dimensions a group key can be built from."""

    CENTER = "center"
    SERVICE = "service"
    CHANNEL = "channel"
    TENURE_GROUP = "tenure_group"
    AGENT = "agent_id"


class Trend(StrEnum):
    """Directional classification of an error-rate series."""

    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class Confidence(StrEnum):
    """How much history backs a trend or forecast."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(StrEnum):
    """Four-level risk used by predictions."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StatusLevel(StrEnum):
    """Five-level status bands used by dashboard colouring."""

    ACHIEVED = "achieved"
    ON_TRACK = "on_track"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"


class ReportType(StrEnum):
    """Report window types."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    HALF_YEAR = "half_year"
    YEAR = "year"
    CUSTOM = "custom"


RISK_SEVERITY: Final[dict[RiskLevel, int]] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}

DEFAULT_GROUP_DIMENSIONS: Final[tuple[GroupDimension, ...]] = (
    GroupDimension.CENTER,
    GroupDimension.SERVICE,
    GroupDimension.CHANNEL,
)


class SnapshotKey(StrEnum):
    """Serialized MetricSnapshot keys."""

    GROUP = "group"
    PERIOD = "period"
    TOTAL_EVALUATIONS = "total_evaluations"
    ATTITUDE_ERROR_RATE = "attitude_error_rate"
    OPS_ERROR_RATE = "ops_error_rate"
    OVERALL_ERROR_RATE = "overall_error_rate"
    PER_ITEM_ERROR_COUNTS = "per_item_error_counts"
    EMPTY = "empty"


class WatchReason(StrEnum):
    """Watch reason templates."""

    AGENT_ATTITUDE = "attitude error rate {:.2f}% above {:.1f}%"
    AGENT_OPS = "ops error rate {:.2f}% above {:.1f}%"
    LOW_PROBABILITY = "{} achievement probability below {:.0f}%"
    SURGE = "overall error rate up {:.0f}% or more vs previous period"
    WORSENING_ABOVE_TARGET = "{} worsening while above target"
    CRITICAL = "overall risk critical"


class LogMessage(StrEnum):
    """Log message templates."""

    AGGREGATING = "Aggregating {} records by {} at {} granularity"
    AGGREGATED = "Built {} snapshots across {} groups"
    SKIPPED_RECORD = "Skipping invalid record {}: {}"
    LOADED_RECORDS = "Loaded {} records from {} ({} skipped)"
    LOADED_TARGETS = "Loaded {} targets from {}"
    FETCHING_PAGE = "Fetching page {}..."
    RETRIEVED_RECORDS = "Retrieved {} records (total: {})"
    MAX_PAGES_REACHED = "Reached maximum page limit of {}"
    PARTIAL_FETCH = "Fetch incomplete after {} records: {}"
    FORECASTING = "Forecasting {} groups"
    INSUFFICIENT_HISTORY = "Group {} has {} usable periods; forecast is low confidence"
    SAVED_OUTPUT = "Saved {} to {}"
    COMPOSING_REPORT = "Composing {} report for {}"
    ERROR_OCCURRED = "Error occurred: {}"


class CliHelp(StrEnum):
    """CLI help messages."""

    APP = "Call-center QC metrics aggregation and forecasting tool"
    RECORDS = "Evaluation records file (JSON or CSV)."
    TARGETS = "Targets file (JSON or CSV). Falls back to the default target."
    START = "First day of the window (YYYY-MM-DD)."
    END = "Last day of the window (YYYY-MM-DD)."
    GRANULARITY = "Period granularity: day, week, month or month_week."
    GROUP_BY = "Comma separated dimensions: center,service,channel,tenure_group,agent_id."
    CENTER = "Only include this center."
    SERVICE = "Only include this service."
    CHANNEL = "Only include this channel."
    OUTPUT_DIR = "Directory where results are written."
    WATCHLIST_SIZE = "Number of agents to put on the watchlist."
    REPORT_TYPE = "Report type: week, month, quarter, half_year, year or custom."
    TODAY = "Reference day for derived report windows (defaults to today)."
    VERBOSE = "Enable debug logging."
    PDF = "Also render the report as PDF."
    BASE_URL = "Base URL of the evaluation record API."
    API_TOKEN = "Bearer token for the evaluation record API."
    NO_CACHE = "Ignore cached pages and re-fetch from the API."
    INCLUDE_EMPTY = "Emit empty snapshots for periods without records."
    MAX_PAGES = "Maximum number of API pages to fetch."
