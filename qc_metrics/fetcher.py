"""Evaluation record fetcher for the QC records API."""

import asyncio
import hashlib
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
from aiolimiter import AsyncLimiter
from loguru import logger
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .constants import (
    API_EVALUATIONS_ENDPOINT,
    API_TARGETS_ENDPOINT,
    DEFAULT_FETCH_CONCURRENCY,
    DEFAULT_FETCH_MAX_RETRIES,
    DEFAULT_FETCH_RATE,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_LIMIT,
    FIRST_PAGE,
    JSON_INDENT,
    LogMessage,
)
from .errors import UpstreamFailureError
from .models import DateRange, FetchResult, GroupFilter, Target
from .schemas import parse_records, parse_targets
from .storage import check_request, received_range

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, httpx.TransportError)



def _page_items(data: Any, key: str) -> list[Any]:
    """Pull the row list out of a response body, rejecting unexpected shapes."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    items = data.get(key, [])
    if not isinstance(items, list):
        raise ValueError(f"Expected '{key}' to be a list, got {type(items).__name__}")
    return items


class EvaluationFetcher:
    """Fetches evaluation records and targets from the paginated records API.

    Implements the record store protocol used by the service layer.

    Attributes:
        base_url: Base URL for the API endpoint.
        semaphore: Asyncio semaphore limiting concurrent API calls.
        rate_limiter: AsyncLimiter limiting API calls per second.
        cache_dir: Directory caching complete responses, or None to disable.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        no_cache: bool = False,
        cache_dir: Path | str | None = None,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_retries: int = DEFAULT_FETCH_MAX_RETRIES,
        retry_wait_min: float = 2,
        retry_wait_max: float = 10,
        show_progress: bool = True,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the EvaluationFetcher.

        Args:
            base_url: Base URL for the API endpoint.
            token: Optional bearer token.
            no_cache: If True, ignore cached responses and always fetch from API.
            cache_dir: Directory for cached responses; caching is off when None.
            page_limit: Records requested per page.
            max_pages: Maximum number of pages per request.
            max_retries: Attempts per page before giving up.
            retry_wait_min: Minimum seconds between attempts.
            retry_wait_max: Maximum seconds between attempts.
            show_progress: Show a progress bar while paging.
            client: Pre-configured client to use instead of creating one.
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.no_cache = no_cache
        self.page_limit = page_limit
        self.max_pages = max_pages
        self.max_retries = max_retries
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.show_progress = show_progress
        self._client = client
        self.semaphore = asyncio.Semaphore(DEFAULT_FETCH_CONCURRENCY)
        self.rate_limiter = AsyncLimiter(max_rate=DEFAULT_FETCH_RATE, time_period=1)

        self.cache_dir = Path(cache_dir) if cache_dir else None
        if self.cache_dir:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        async with httpx.AsyncClient(headers=headers, timeout=30.0) as client:
            yield client

    def _build_params(
        self,
        *,
        group_filter: GroupFilter,
        date_range: DateRange,
        page_token: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "start": date_range.start.isoformat(),
            "end": date_range.end.isoformat(),
            "limit": self.page_limit,
            **group_filter.to_dict(),
        }
        if page_token:
            params["page_token"] = page_token
        return params

    async def _get_json(
        self, client: httpx.AsyncClient, url: str, params: dict[str, Any]
    ) -> Any:
        """GET one page, retrying transport errors and retryable statuses."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(
                multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                async with self.semaphore:
                    async with self.rate_limiter:
                        response = await client.get(url, params=params)
                        response.raise_for_status()
                return response.json()
        raise UpstreamFailureError(f"No response from {url}")

    def _cache_path(self, *, kind: str, params: dict[str, Any]) -> Path | None:
        if self.cache_dir is None:
            return None
        digest = hashlib.sha1(
            json.dumps(params, sort_keys=True).encode("utf-8")
        ).hexdigest()[:16]
        return self.cache_dir / f"{kind}-{digest}.json"

    def _load_cached_rows(self, cache_path: Path | None) -> list[dict] | None:
        if cache_path is None or self.no_cache or not cache_path.exists():
            return None
        try:
            with cache_path.open("r", encoding="utf-8") as f:
                rows = json.load(f)
            logger.debug(f"Loaded {len(rows)} cached rows from {cache_path}")
            return rows
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load cached rows from {cache_path}: {e}")
            return None

    def _save_cached_rows(self, cache_path: Path | None, rows: list[dict]) -> None:
        if cache_path is None:
            return
        try:
            with cache_path.open("w", encoding="utf-8") as f:
                json.dump(rows, f, indent=JSON_INDENT, default=str, ensure_ascii=False)
            logger.debug(f"Cached {len(rows)} rows to {cache_path}")
        except OSError as e:
            logger.warning(f"Failed to cache rows to {cache_path}: {e}")

    async def fetch_evaluations(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> FetchResult:
        """Fetch every record page for a filter and range.

        A failure after at least one page yields the records received so far
        with ``complete=False``; a failure on the first page raises.

        Raises:
            InvalidFilterError: On a malformed filter or range.
            UpstreamFailureError: If the first page cannot be fetched or has an
                unexpected shape.
        """
        check_request(group_filter, date_range)
        url = f"{self.base_url}{API_EVALUATIONS_ENDPOINT}"
        base_params = self._build_params(group_filter=group_filter, date_range=date_range)
        cache_path = self._cache_path(kind="evaluations", params=base_params)

        cached = self._load_cached_rows(cache_path)
        if cached is not None:
            records, skipped = parse_records(cached)
            return FetchResult(
                records=records,
                complete=True,
                requested_range=date_range,
                received_range=received_range(records),
                skipped=skipped,
            )

        rows: list[dict] = []
        complete = True
        page_token: str | None = None
        page_num = FIRST_PAGE

        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[green]{task.fields[records]} records"),
            disable=not self.show_progress,
        ) as progress:
            task = progress.add_task(
                "Fetching evaluations from API...", total=self.max_pages, records=0
            )

            async with self._open_client() as client:
                while True:
                    if page_num > self.max_pages:
                        logger.warning(LogMessage.MAX_PAGES_REACHED.format(self.max_pages))
                        complete = False
                        break

                    logger.debug(LogMessage.FETCHING_PAGE.format(page_num))
                    params = self._build_params(
                        group_filter=group_filter,
                        date_range=date_range,
                        page_token=page_token,
                    )
                    try:
                        data = await self._get_json(client, url, params)
                        page_rows = _page_items(data, "records")
                    except (httpx.HTTPError, ValueError) as e:
                        if page_num == FIRST_PAGE:
                            raise UpstreamFailureError(
                                f"Fetching evaluations failed: {e}",
                                retryable=_is_retryable(e),
                            ) from e
                        logger.warning(LogMessage.PARTIAL_FETCH.format(len(rows), e))
                        complete = False
                        break

                    rows.extend(page_rows)
                    logger.debug(
                        LogMessage.RETRIEVED_RECORDS.format(len(page_rows), len(rows))
                    )
                    progress.update(task, advance=1, records=len(rows))

                    page_token = data.get("next_page_token")
                    if not page_token or not page_rows:
                        break
                    page_num += 1

        records, skipped = parse_records(rows)
        if complete:
            self._save_cached_rows(cache_path, rows)
        logger.success(f"Fetched {len(records)} records from {page_num} pages")
        return FetchResult(
            records=records,
            complete=complete,
            requested_range=date_range,
            received_range=received_range(records),
            skipped=skipped,
        )

    async def fetch_targets(
        self, group_filter: GroupFilter, date_range: DateRange
    ) -> list[Target]:
        """Fetch targets overlapping the range.

        Raises:
            InvalidFilterError: On a malformed filter or range.
            UpstreamFailureError: If the request fails.
        """
        check_request(group_filter, date_range)
        url = f"{self.base_url}{API_TARGETS_ENDPOINT}"
        params = self._build_params(group_filter=group_filter, date_range=date_range)
        async with self._open_client() as client:
            try:
                data = await self._get_json(client, url, params)
                rows = _page_items(data, "targets")
            except (httpx.HTTPError, ValueError) as e:
                raise UpstreamFailureError(
                    f"Fetching targets failed: {e}", retryable=_is_retryable(e)
                ) from e
        return parse_targets(rows)
