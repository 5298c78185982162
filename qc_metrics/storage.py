"""File-backed record store and result storage."""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import polars as pl
from loguru import logger

from .constants import (
    DEFAULT_RECORDS_OUTPUT,
    JSON_INDENT,
    GroupDimension,
    LogMessage,
)
from .errors import InvalidFilterError, UpstreamFailureError
from .items import ITEM_IDS
from .models import DateRange, EvaluationRecord, FetchResult, GroupFilter, Target
from .schemas import parse_records, parse_targets


class RecordStore(Protocol):
    """Data-store collaborator the service layer fetches from."""

    async def fetch_evaluations(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> FetchResult: ...

    async def fetch_targets(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> list[Target]: ...


def check_request(group_filter: GroupFilter, date_range: DateRange) -> None:
    """Reject malformed requests before any store access.

    Raises:
        InvalidFilterError: If either argument has the wrong type.
    """
    if not isinstance(group_filter, GroupFilter):
        raise InvalidFilterError(f"Not a GroupFilter: {type(group_filter).__name__}")
    if not isinstance(date_range, DateRange):
        raise InvalidFilterError(f"Not a DateRange: {type(date_range).__name__}")


def received_range(records: Iterable[EvaluationRecord]) -> DateRange | None:
    days = [record.date for record in records]
    if not days:
        return None
    return DateRange(start=min(days), end=max(days))


def target_applies(target: Target, group_filter: GroupFilter, date_range: DateRange) -> bool:
    """True if a target overlaps the range and does not contradict the filter."""
    if target.period_end < date_range.start or target.period_start > date_range.end:
        return False
    if target.is_global:
        return True
    for dim in GroupDimension:
        wanted = getattr(group_filter, dim.value)
        value = getattr(target.group_key, dim.value)
        if wanted is not None and value is not None and wanted != value:
            return False
    return True


def read_rows(filepath: Path | str) -> list[dict[str, Any]]:
    """Read raw rows from a JSON (list or {"records": [...]}) or CSV file.

    CSV cells are read as strings and coerced by the ingestion schemas.

    Raises:
        UpstreamFailureError: If the file is missing or unreadable.
    """
    filepath = Path(filepath)
    try:
        if filepath.suffix.lower() == ".csv":
            return pl.read_csv(filepath, infer_schema_length=0).to_dicts()
        with filepath.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError, pl.exceptions.PolarsError) as e:
        raise UpstreamFailureError(
            f"Could not read {filepath}: {e}", retryable=False
        ) from e

    if isinstance(data, dict):
        data = data.get("records", data.get("targets", []))
    if not isinstance(data, list):
        raise UpstreamFailureError(f"Unexpected layout in {filepath}", retryable=False)
    return data


class FileRecordStore:
    """Record store over local JSON/CSV exports.

    Files are read once on first use; rows failing validation are logged and
    skipped.

    Attributes:
        records_path: Evaluation records file.
        targets_path: Optional targets file.
    """

    def __init__(self, *, records_path: Path | str, targets_path: Path | str | None = None):
        self.records_path = Path(records_path)
        self.targets_path = Path(targets_path) if targets_path else None
        self._records: list[EvaluationRecord] | None = None
        self._skipped = 0
        self._targets: list[Target] | None = None

    def load_records(self) -> list[EvaluationRecord]:
        if self._records is None:
            self._records, self._skipped = parse_records(read_rows(self.records_path))
            logger.info(
                LogMessage.LOADED_RECORDS.format(
                    len(self._records), self.records_path, self._skipped
                )
            )
        return self._records

    def load_targets(self) -> list[Target]:
        if self._targets is None:
            if self.targets_path is None:
                self._targets = []
            else:
                self._targets = parse_targets(read_rows(self.targets_path))
                logger.info(
                    LogMessage.LOADED_TARGETS.format(
                        len(self._targets), self.targets_path
                    )
                )
        return self._targets

    async def fetch_evaluations(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> FetchResult:
        check_request(group_filter, date_range)
        records = [
            record
            for record in self.load_records()
            if date_range.contains(record.date) and group_filter.matches(record)
        ]
        return FetchResult(
            records=records,
            complete=True,
            requested_range=date_range,
            received_range=received_range(records),
            skipped=self._skipped,
        )

    async def fetch_targets(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> list[Target]:
        check_request(group_filter, date_range)
        return [
            target
            for target in self.load_targets()
            if target_applies(target, group_filter, date_range)
        ]


class ResultStorage:
    """Handles saving records and derived results to disk."""

    def __init__(self, *, output_dir: Path | str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_json(self, *, payload: Any, filename: str, label: str) -> Path:
        """Write a JSON-serializable payload into the output directory.

        Args:
            payload: Data to write; dates and other non-JSON values are stringified.
            filename: File name inside the output directory.
            label: What was saved, for the log line.

        Returns:
            Path: The written file.
        """
        filepath = self.output_dir / filename
        with filepath.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=JSON_INDENT, default=str, ensure_ascii=False)
        logger.success(LogMessage.SAVED_OUTPUT.format(label, filepath))
        return filepath

    def save_records(
        self,
        *,
        records: list[EvaluationRecord],
        filename: str = DEFAULT_RECORDS_OUTPUT,
    ) -> Path:
        return self.save_json(
            payload=[record.to_dict() for record in records],
            filename=filename,
            label=f"{len(records)} records",
        )

    def save_records_csv(
        self, *, records: list[EvaluationRecord], filename: str | None = None
    ) -> Path | None:
        """Save records as a flat CSV (one column per item) using Polars."""
        filepath = self.output_dir / (
            filename or Path(DEFAULT_RECORDS_OUTPUT).with_suffix(".csv").name
        )
        if not records:
            logger.warning("No records to save to CSV")
            return None

        rows = []
        for record in records:
            row = {k: v for k, v in record.to_dict().items() if k != "items"}
            row.update({item_id: record.flag(item_id) for item_id in ITEM_IDS})
            rows.append(row)

        df = pl.DataFrame(rows).sort(["date", "agent_id"])
        df.write_csv(filepath)
        logger.success(LogMessage.SAVED_OUTPUT.format(f"{len(df)} records", filepath))
        return filepath
