"""Ingestion schemas validating raw rows into engine records."""

from collections.abc import Iterable, Mapping
import datetime as dt
from typing import Any

from loguru import logger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import GroupDimension, LogMessage
from .items import ITEM_ALIASES, ITEM_IDS
from .models import EvaluationRecord, GroupKey, Target

_TRUE_FLAGS = {"y", "yes", "true", "1", "o"}
_FALSE_FLAGS = {"n", "no", "false", "0", "x", ""}


def coerce_flag(value: Any) -> int:
    """Coerce a spreadsheet-style flag to 0/1; malformed values count as 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return 1 if value > 0 else 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_FLAGS:
            return 1
        if text in _FALSE_FLAGS:
            return 0
        try:
            return 1 if float(text) > 0 else 0
        except ValueError:
            logger.debug(f"Malformed item flag {value!r} treated as no error")
            return 0
    return 0


class EvaluationRecordSchema(BaseModel):
    """Validated shape of one evaluation row.

    Item flags may be given in a nested ``items`` mapping or as top-level
    columns under any alias of the item (``empathy``, ``empathy_error`` or the
    spreadsheet header).
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    date: dt.date = Field(
        validation_alias=AliasChoices("date", "evaluation_date", "evaluationDate")
    )
    agent_id: str = Field(
        min_length=1, validation_alias=AliasChoices("agent_id", "agentId", "ID")
    )
    center: str = Field(min_length=1)
    service: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    tenure_months: int | None = Field(
        default=None,
        validation_alias=AliasChoices("tenure_months", "tenureMonths", "근속개월"),
    )
    agent_name: str | None = Field(
        default=None, validation_alias=AliasChoices("agent_name", "agentName", "이름")
    )
    evaluation_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("evaluation_id", "evaluationId", "id"),
    )
    items: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_item_flags(cls, data: Any) -> Any:
        """Gather item flags from top-level columns into ``items``."""
        if not isinstance(data, Mapping):
            return data
        collected: dict[str, int] = {}
        nested = data.get("items")
        if isinstance(nested, Mapping):
            for key, value in nested.items():
                item_id = ITEM_ALIASES.get(str(key))
                if item_id:
                    collected[item_id] = coerce_flag(value)
        for key, value in data.items():
            item_id = ITEM_ALIASES.get(str(key))
            if item_id and item_id not in collected:
                collected[item_id] = coerce_flag(value)
        return {**data, "items": collected}

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()[:10]
        return value

    @field_validator("tenure_months", mode="before")
    @classmethod
    def parse_tenure(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        if isinstance(value, float):
            return int(value)
        return value

    @field_validator("evaluation_id", "agent_id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    def to_record(self) -> EvaluationRecord:
        return EvaluationRecord(
            date=self.date,
            agent_id=self.agent_id,
            center=self.center,
            service=self.service,
            channel=self.channel,
            tenure_months=self.tenure_months,
            items={item_id: self.items.get(item_id, 0) for item_id in ITEM_IDS},
            agent_name=self.agent_name,
            evaluation_id=self.evaluation_id,
        )


class TargetSchema(BaseModel):
    """Validated shape of one target row.

    Group dimensions may be nested under ``group`` or given at top level; a
    target without any dimension is global. A missing overall target defaults
    to the sum of the category targets.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    group: dict[str, str] | None = None
    period_start: dt.date = Field(
        validation_alias=AliasChoices("period_start", "periodStart", "start_date")
    )
    period_end: dt.date = Field(
        validation_alias=AliasChoices("period_end", "periodEnd", "end_date")
    )
    target_attitude_rate: float = Field(
        ge=0,
        le=100,
        validation_alias=AliasChoices("target_attitude_rate", "targetAttitudeRate"),
    )
    target_ops_rate: float = Field(
        ge=0,
        le=100,
        validation_alias=AliasChoices("target_ops_rate", "targetOpsRate"),
    )
    target_overall_rate: float | None = Field(
        default=None,
        ge=0,
        le=100,
        validation_alias=AliasChoices("target_overall_rate", "targetOverallRate"),
    )

    @model_validator(mode="before")
    @classmethod
    def collect_group(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        group = dict(data.get("group") or {})
        for dim in GroupDimension:
            value = data.get(dim.value)
            if value not in (None, ""):
                group.setdefault(dim.value, str(value))
        return {**data, "group": group or None}

    @field_validator("group")
    @classmethod
    def check_dimensions(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        if value:
            unknown = set(value) - {dim.value for dim in GroupDimension}
            if unknown:
                raise ValueError(f"unknown group dimensions {sorted(unknown)}")
        return value

    @model_validator(mode="after")
    def check_span(self) -> "TargetSchema":
        if self.period_end < self.period_start:
            raise ValueError("period_end is before period_start")
        return self

    def to_target(self) -> Target:
        group_key = GroupKey.from_dict(self.group) if self.group else None
        overall = self.target_overall_rate
        if overall is None:
            overall = min(100.0, self.target_attitude_rate + self.target_ops_rate)
        return Target(
            group_key=None if group_key is None or group_key.is_global else group_key,
            period_start=self.period_start,
            period_end=self.period_end,
            target_attitude_rate=self.target_attitude_rate,
            target_ops_rate=self.target_ops_rate,
            target_overall_rate=overall,
        )


def parse_records(
    rows: Iterable[Mapping[str, Any]],
) -> tuple[list[EvaluationRecord], int]:
    """Validate raw rows into records.

    Invalid rows are logged and skipped.

    Returns:
        tuple[list[EvaluationRecord], int]: Valid records and the skipped count.
    """
    records: list[EvaluationRecord] = []
    skipped = 0
    for index, row in enumerate(rows):
        try:
            records.append(EvaluationRecordSchema.model_validate(row).to_record())
        except ValidationError as e:
            skipped += 1
            logger.warning(
                LogMessage.SKIPPED_RECORD.format(index, e.errors()[0].get("msg"))
            )
    return records, skipped


def parse_targets(rows: Iterable[Mapping[str, Any]]) -> list[Target]:
    """Validate raw rows into targets; invalid rows are logged and skipped."""
    targets: list[Target] = []
    for index, row in enumerate(rows):
        try:
            targets.append(TargetSchema.model_validate(row).to_target())
        except ValidationError as e:
            logger.warning(
                LogMessage.SKIPPED_RECORD.format(index, e.errors()[0].get("msg"))
            )
    return targets
