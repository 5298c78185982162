"""
QC Metrics - Unit Tests for the Records API Fetcher
"""

import asyncio
from datetime import date

import httpx
import pytest

from qc_metrics.errors import UpstreamFailureError
from qc_metrics.fetcher import EvaluationFetcher
from qc_metrics.models import DateRange, GroupFilter

BASE_URL = "https://qc.test/api"
WEEK = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 7))


def run_fetch(handler, *, method="fetch_evaluations", group_filter=None, **kwargs):
    """Run one fetcher call against a mocked transport"""

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = EvaluationFetcher(
                base_url=BASE_URL,
                client=client,
                show_progress=False,
                retry_wait_min=0,
                retry_wait_max=0,
                max_retries=3,
                **kwargs,
            )
            return await getattr(fetcher, method)(group_filter or GroupFilter(), WEEK)

    return asyncio.run(_run())


@pytest.fixture
def paged_api(make_row):
    """Two pages of records; individual pages can be made to fail"""
    pages = {
        None: [make_row("2024-01-01"), make_row("2024-01-02")],
        "p2": [make_row("2024-01-03", errors=("guide",))],
    }
    state = {"requests": [], "fail": {}}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        token = request.url.params.get("page_token")
        failures = state["fail"].get(token)
        if failures:
            status = failures.pop(0)
            return httpx.Response(status, json={"error": "unavailable"})
        return httpx.Response(
            200,
            json={
                "records": pages[token],
                "next_page_token": "p2" if token is None else None,
            },
        )

    state["handler"] = handler
    return state


class TestFetchEvaluations:
    """Tests for paginated record fetching"""

    def test_follows_pages(self, paged_api):
        result = run_fetch(paged_api["handler"])

        assert result.complete is True
        assert len(result.records) == 3
        assert result.received_range == DateRange(
            start=date(2024, 1, 1), end=date(2024, 1, 3)
        )
        assert len(paged_api["requests"]) == 2

    def test_sends_range_and_filter(self, paged_api):
        run_fetch(paged_api["handler"], group_filter=GroupFilter(center="Seoul"))

        request = paged_api["requests"][0]
        assert request.url.path == "/api/evaluations"
        assert request.url.params["start"] == "2024-01-01"
        assert request.url.params["end"] == "2024-01-07"
        assert request.url.params["center"] == "Seoul"

    def test_retries_transient_errors(self, paged_api):
        paged_api["fail"][None] = [503, 429]

        result = run_fetch(paged_api["handler"])

        assert result.complete is True
        assert len(paged_api["requests"]) == 4

    def test_first_page_failure_raises_retryable(self, paged_api):
        paged_api["fail"][None] = [503, 503, 503]

        with pytest.raises(UpstreamFailureError) as exc_info:
            run_fetch(paged_api["handler"])

        assert exc_info.value.retryable is True
        assert len(paged_api["requests"]) == 3

    def test_client_errors_are_not_retried(self, paged_api):
        paged_api["fail"][None] = [404]

        with pytest.raises(UpstreamFailureError) as exc_info:
            run_fetch(paged_api["handler"])

        assert exc_info.value.retryable is False
        assert len(paged_api["requests"]) == 1

    def test_later_page_failure_is_partial(self, paged_api):
        """Records received before the failure are kept"""
        paged_api["fail"]["p2"] = [500, 500, 500]

        result = run_fetch(paged_api["handler"])

        assert result.complete is False
        assert len(result.records) == 2
        assert result.requested_range == WEEK
        assert result.received_range.end == date(2024, 1, 2)

    def test_page_limit_is_partial(self, paged_api):
        result = run_fetch(paged_api["handler"], max_pages=1)

        assert result.complete is False
        assert len(result.records) == 2

    @pytest.mark.parametrize(
        "body",
        [
            [{"date": "2024-01-01"}],
            {"records": None},
            {"records": {"date": "2024-01-01"}},
        ],
    )
    def test_malformed_first_page_raises(self, body):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=body)

        with pytest.raises(UpstreamFailureError) as exc_info:
            run_fetch(handler)

        assert exc_info.value.retryable is False
        assert len(requests) == 1

    def test_malformed_later_page_is_partial(self, make_row):
        def handler(request):
            if request.url.params.get("page_token") == "p2":
                return httpx.Response(200, json={"records": None})
            return httpx.Response(
                200, json={"records": [make_row("2024-01-01")], "next_page_token": "p2"}
            )

        result = run_fetch(handler)

        assert result.complete is False
        assert len(result.records) == 1

    def test_invalid_rows_are_skipped(self, make_row):
        def handler(request):
            return httpx.Response(
                200, json={"records": [make_row("2024-01-01"), {"center": "Seoul"}]}
            )

        result = run_fetch(handler)

        assert len(result.records) == 1
        assert result.skipped == 1


class TestCache:
    """Tests for the response cache"""

    def test_complete_fetch_is_cached(self, paged_api, tmp_path):
        first = run_fetch(paged_api["handler"], cache_dir=tmp_path)
        second = run_fetch(paged_api["handler"], cache_dir=tmp_path)

        assert len(paged_api["requests"]) == 2
        assert second.records == first.records

    def test_no_cache_refetches(self, paged_api, tmp_path):
        run_fetch(paged_api["handler"], cache_dir=tmp_path)
        run_fetch(paged_api["handler"], cache_dir=tmp_path, no_cache=True)

        assert len(paged_api["requests"]) == 4

    def test_partial_fetch_is_not_cached(self, paged_api, tmp_path):
        paged_api["fail"]["p2"] = [500, 500, 500]
        run_fetch(paged_api["handler"], cache_dir=tmp_path)

        assert list(tmp_path.glob("*.json")) == []


class TestFetchTargets:
    """Tests for target fetching"""

    def test_targets(self):
        def handler(request):
            assert request.url.path == "/api/targets"
            return httpx.Response(
                200,
                json={
                    "targets": [
                        {
                            "center": "Seoul",
                            "period_start": "2024-01-01",
                            "period_end": "2024-01-31",
                            "target_attitude_rate": 2.0,
                            "target_ops_rate": 3.0,
                        }
                    ]
                },
            )

        [target] = run_fetch(handler, method="fetch_targets")

        assert target.group_key.center == "Seoul"
        assert target.target_overall_rate == 5.0

    def test_malformed_targets_body_raises(self):
        def handler(request):
            return httpx.Response(200, json=["not", "an", "object"])

        with pytest.raises(UpstreamFailureError) as exc_info:
            run_fetch(handler, method="fetch_targets")

        assert exc_info.value.retryable is False

    def test_target_failure_raises(self):
        def handler(request):
            return httpx.Response(401)

        with pytest.raises(UpstreamFailureError) as exc_info:
            run_fetch(handler, method="fetch_targets")

        assert exc_info.value.retryable is False
