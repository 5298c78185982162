"""CLI interface for QC metrics aggregation and forecasting."""

import asyncio
import sys
from collections.abc import Coroutine
from datetime import date
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_MAX_PAGES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_WATCHLIST_SIZE,
    EXIT_CODE_ERROR,
    PREDICTIONS_OUTPUT_STEM,
    PREVIEW_ROWS,
    QC_API_BASE_URL_ENV,
    QC_API_TOKEN_ENV,
    REPORT_OUTPUT_STEM,
    SNAPSHOTS_OUTPUT_STEM,
    WATCHLIST_OUTPUT_STEM,
    CliHelp,
    Granularity,
    LogMessage,
    ReportType,
)
from .errors import QCMetricsError
from .export import predictions_frame, snapshots_frame, watchlist_frame, write_csv
from .fetcher import EvaluationFetcher
from .models import DateRange, GroupFilter, Prediction, Watchlist
from .reports import write_markdown, write_pdf
from .service import QCMetricsService
from .storage import FileRecordStore, ResultStorage

app = typer.Typer(help=CliHelp.APP)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help=CliHelp.VERBOSE),
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning engine errors into a failed exit."""
    try:
        asyncio.run(coro)
    except (QCMetricsError, ValueError) as e:
        logger.exception(LogMessage.ERROR_OCCURRED.format(e))
        raise typer.Exit(code=EXIT_CODE_ERROR) from e


def _service(records: Path, targets: Path | None) -> QCMetricsService:
    return QCMetricsService(
        FileRecordStore(records_path=records, targets_path=targets)
    )


def _print_predictions(predictions: list[Prediction]) -> None:
    table = Table(title="Predictions")
    for column in ("Group", "Period", "Overall", "Next", "W4", "Target", "Prob.", "Risk", "Alert"):
        table.add_column(column)
    for prediction in predictions[:PREVIEW_ROWS]:
        overall = prediction.overall
        table.add_row(
            prediction.group_key.label,
            prediction.period.label,
            f"{overall.current_rate:.2f}%",
            f"{overall.predicted_rate:.2f}%",
            f"{overall.w4_predicted_rate:.2f}%",
            f"{overall.target_rate:.2f}%",
            f"{overall.achievement_probability:.1f}",
            prediction.overall_risk.value,
            "!" if prediction.alert_flag else "",
        )
    console.print(table)


def _print_watchlist(watchlist: Watchlist) -> None:
    table = Table(title=f"Watchlist {watchlist.date_range.label}")
    for column in ("#", "Agent", "Center", "Error Rate", "Trend", "Main Issue", "Reasons"):
        table.add_column(column)
    for rank, entry in enumerate(watchlist.entries, start=1):
        table.add_row(
            str(rank),
            entry.agent_id,
            entry.center or "",
            f"{entry.error_rate:.2f}%",
            f"{entry.trend:+.2f}",
            entry.main_issue or "-",
            "; ".join(entry.reasons),
        )
    console.print(table)


async def _snapshots_async(
    *,
    records: Path,
    date_range: DateRange,
    group_filter: GroupFilter,
    granularity: str,
    group_by: str,
    include_empty: bool,
    output_dir: Path,
) -> None:
    service = _service(records, None)
    batch = await service.snapshots(
        date_range,
        group_filter=group_filter,
        granularity=granularity,
        dimensions=group_by,
        include_empty=include_empty,
    )
    storage = ResultStorage(output_dir=output_dir)
    storage.save_json(
        payload=batch.to_dict(),
        filename=f"{SNAPSHOTS_OUTPUT_STEM}.json",
        label=f"{len(batch.snapshots)} snapshots",
    )
    write_csv(
        snapshots_frame(batch.snapshots),
        output_dir / f"{SNAPSHOTS_OUTPUT_STEM}.csv",
        label="snapshots",
    )


async def _predict_async(
    *,
    records: Path,
    targets: Path | None,
    date_range: DateRange,
    group_filter: GroupFilter,
    granularity: str,
    group_by: str,
    output_dir: Path,
) -> None:
    service = _service(records, targets)
    predictions = await service.predict(
        date_range,
        group_filter=group_filter,
        granularity=granularity,
        dimensions=group_by,
    )
    storage = ResultStorage(output_dir=output_dir)
    storage.save_json(
        payload=[prediction.to_dict() for prediction in predictions],
        filename=f"{PREDICTIONS_OUTPUT_STEM}.json",
        label=f"{len(predictions)} predictions",
    )
    write_csv(
        predictions_frame(predictions),
        output_dir / f"{PREDICTIONS_OUTPUT_STEM}.csv",
        label="predictions",
    )
    _print_predictions(predictions)


async def _watchlist_async(
    *,
    records: Path,
    date_range: DateRange,
    group_filter: GroupFilter,
    size: int,
    output_dir: Path,
) -> None:
    service = _service(records, None)
    watchlist = await service.build_watchlist(
        date_range, group_filter=group_filter, k=size
    )
    storage = ResultStorage(output_dir=output_dir)
    storage.save_json(
        payload=watchlist.to_dict(),
        filename=f"{WATCHLIST_OUTPUT_STEM}.json",
        label=f"{len(watchlist.entries)} watchlist entries",
    )
    write_csv(
        watchlist_frame(watchlist.entries),
        output_dir / f"{WATCHLIST_OUTPUT_STEM}.csv",
        label="watchlist entries",
    )
    _print_watchlist(watchlist)


async def _report_async(
    *,
    records: Path,
    targets: Path | None,
    report_type: str,
    date_range: DateRange | None,
    group_filter: GroupFilter,
    today: date,
    pdf: bool,
    output_dir: Path,
) -> None:
    service = _service(records, targets)
    report = await service.compose_report(
        report_type, date_range=date_range, group_filter=group_filter, today=today
    )
    storage = ResultStorage(output_dir=output_dir)
    storage.save_json(
        payload=report.to_dict(),
        filename=f"{REPORT_OUTPUT_STEM}.json",
        label=f"{report.report_type} report",
    )
    write_markdown(report, output_dir / f"{REPORT_OUTPUT_STEM}.md")
    if pdf:
        write_pdf(report, output_dir / f"{REPORT_OUTPUT_STEM}.pdf")


async def _fetch_async(
    *,
    base_url: str,
    token: str | None,
    date_range: DateRange,
    group_filter: GroupFilter,
    max_pages: int,
    no_cache: bool,
    output_dir: Path,
) -> None:
    fetcher = EvaluationFetcher(
        base_url=base_url,
        token=token,
        no_cache=no_cache,
        cache_dir=DEFAULT_CACHE_DIR,
        max_pages=max_pages,
    )
    result = await fetcher.fetch_evaluations(group_filter, date_range)
    if not result.complete:
        logger.warning(
            LogMessage.PARTIAL_FETCH.format(len(result.records), "saving what arrived")
        )
    storage = ResultStorage(output_dir=output_dir)
    storage.save_records(records=result.records)
    storage.save_records_csv(records=result.records)


def _filter(center: str | None, service: str | None, channel: str | None) -> GroupFilter:
    return GroupFilter(center=center, service=service, channel=channel)


@app.command()
def snapshots(
    records: Path = typer.Option(..., "--records", "-r", help=CliHelp.RECORDS),
    start: str = typer.Option(..., "--start", help=CliHelp.START),
    end: str = typer.Option(..., "--end", help=CliHelp.END),
    granularity: str = typer.Option(
        Granularity.WEEK.value, "--granularity", "-g", help=CliHelp.GRANULARITY
    ),
    group_by: str = typer.Option(
        "center,service,channel", "--group-by", help=CliHelp.GROUP_BY
    ),
    center: str | None = typer.Option(None, "--center", help=CliHelp.CENTER),
    service: str | None = typer.Option(None, "--service", help=CliHelp.SERVICE),
    channel: str | None = typer.Option(None, "--channel", help=CliHelp.CHANNEL),
    include_empty: bool = typer.Option(
        False, "--include-empty", help=CliHelp.INCLUDE_EMPTY
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
) -> None:
    """Aggregate evaluation records into per-group, per-period snapshots."""

    async def command() -> None:
        await _snapshots_async(
            records=records,
            date_range=DateRange.parse(start=start, end=end),
            group_filter=_filter(center, service, channel),
            granularity=granularity,
            group_by=group_by,
            include_empty=include_empty,
            output_dir=output_dir,
        )

    _run(command())


@app.command()
def predict(
    records: Path = typer.Option(..., "--records", "-r", help=CliHelp.RECORDS),
    targets: Path | None = typer.Option(None, "--targets", "-t", help=CliHelp.TARGETS),
    start: str = typer.Option(..., "--start", help=CliHelp.START),
    end: str = typer.Option(..., "--end", help=CliHelp.END),
    granularity: str = typer.Option(
        Granularity.WEEK.value, "--granularity", "-g", help=CliHelp.GRANULARITY
    ),
    group_by: str = typer.Option(
        "center,service,channel", "--group-by", help=CliHelp.GROUP_BY
    ),
    center: str | None = typer.Option(None, "--center", help=CliHelp.CENTER),
    service: str | None = typer.Option(None, "--service", help=CliHelp.SERVICE),
    channel: str | None = typer.Option(None, "--channel", help=CliHelp.CHANNEL),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
) -> None:
    """Forecast error rates, achievement probability and risk per group."""

    async def command() -> None:
        await _predict_async(
            records=records,
            targets=targets,
            date_range=DateRange.parse(start=start, end=end),
            group_filter=_filter(center, service, channel),
            granularity=granularity,
            group_by=group_by,
            output_dir=output_dir,
        )

    _run(command())


@app.command()
def watchlist(
    records: Path = typer.Option(..., "--records", "-r", help=CliHelp.RECORDS),
    start: str = typer.Option(..., "--start", help=CliHelp.START),
    end: str = typer.Option(..., "--end", help=CliHelp.END),
    size: int = typer.Option(
        DEFAULT_WATCHLIST_SIZE, "--size", "-k", help=CliHelp.WATCHLIST_SIZE
    ),
    center: str | None = typer.Option(None, "--center", help=CliHelp.CENTER),
    service: str | None = typer.Option(None, "--service", help=CliHelp.SERVICE),
    channel: str | None = typer.Option(None, "--channel", help=CliHelp.CHANNEL),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
) -> None:
    """Rank agents needing intervention for a window."""

    async def command() -> None:
        await _watchlist_async(
            records=records,
            date_range=DateRange.parse(start=start, end=end),
            group_filter=_filter(center, service, channel),
            size=size,
            output_dir=output_dir,
        )

    _run(command())


@app.command()
def report(
    records: Path = typer.Option(..., "--records", "-r", help=CliHelp.RECORDS),
    targets: Path | None = typer.Option(None, "--targets", "-t", help=CliHelp.TARGETS),
    report_type: str = typer.Option(
        ReportType.WEEK.value, "--type", help=CliHelp.REPORT_TYPE
    ),
    start: str | None = typer.Option(None, "--start", help=CliHelp.START),
    end: str | None = typer.Option(None, "--end", help=CliHelp.END),
    today: str | None = typer.Option(None, "--today", help=CliHelp.TODAY),
    center: str | None = typer.Option(None, "--center", help=CliHelp.CENTER),
    service: str | None = typer.Option(None, "--service", help=CliHelp.SERVICE),
    channel: str | None = typer.Option(None, "--channel", help=CliHelp.CHANNEL),
    pdf: bool = typer.Option(False, "--pdf", help=CliHelp.PDF),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
) -> None:
    """Compose a report (markdown and JSON, optionally PDF) for a window."""

    async def command() -> None:
        date_range = (
            DateRange.parse(start=start, end=end) if start and end else None
        )
        reference = (
            DateRange.parse(start=today, end=today).start if today else date.today()
        )
        await _report_async(
            records=records,
            targets=targets,
            report_type=report_type,
            date_range=date_range,
            group_filter=_filter(center, service, channel),
            today=reference,
            pdf=pdf,
            output_dir=output_dir,
        )

    _run(command())


@app.command()
def fetch(
    start: str = typer.Option(..., "--start", help=CliHelp.START),
    end: str = typer.Option(..., "--end", help=CliHelp.END),
    base_url: str = typer.Option(
        ..., "--base-url", envvar=QC_API_BASE_URL_ENV, help=CliHelp.BASE_URL
    ),
    token: str | None = typer.Option(
        None, "--token", envvar=QC_API_TOKEN_ENV, help=CliHelp.API_TOKEN
    ),
    center: str | None = typer.Option(None, "--center", help=CliHelp.CENTER),
    service: str | None = typer.Option(None, "--service", help=CliHelp.SERVICE),
    channel: str | None = typer.Option(None, "--channel", help=CliHelp.CHANNEL),
    max_pages: int = typer.Option(
        DEFAULT_MAX_PAGES, "--max-pages", "-m", help=CliHelp.MAX_PAGES
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help=CliHelp.NO_CACHE),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help=CliHelp.OUTPUT_DIR
    ),
) -> None:
    """Fetch evaluation records from the records API and save them locally."""

    async def command() -> None:
        await _fetch_async(
            base_url=base_url,
            token=token,
            date_range=DateRange.parse(start=start, end=end),
            group_filter=_filter(center, service, channel),
            max_pages=max_pages,
            no_cache=no_cache,
            output_dir=output_dir,
        )

    _run(command())
