"""
QC Metrics - CLI Tests
"""

import json
import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from qc_metrics.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logger():
    """The CLI callback replaces loguru sinks; put the default one back"""
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestCommands:
    """Tests for the CLI commands against file fixtures"""

    def test_snapshots(self, records_file, tmp_path):
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            [
                "snapshots",
                "--records", str(records_file),
                "--start", "2024-01-01",
                "--end", "2024-01-14",
                "--group-by", "center",
                "--output-dir", str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads((out / "snapshots.json").read_text(encoding="utf-8"))
        assert len(payload["snapshots"]) == 4
        assert (out / "snapshots.csv").exists()

    def test_predict(self, records_file, targets_file, tmp_path):
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            [
                "predict",
                "-r", str(records_file),
                "-t", str(targets_file),
                "--start", "2024-01-01",
                "--end", "2024-01-14",
                "-o", str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads((out / "predictions.json").read_text(encoding="utf-8"))
        assert {p["group"]["center"] for p in payload} == {"Busan", "Seoul"}
        assert (out / "predictions.csv").exists()

    def test_watchlist(self, records_file, tmp_path):
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            [
                "watchlist",
                "-r", str(records_file),
                "--start", "2024-01-08",
                "--end", "2024-01-14",
                "-k", "1",
                "-o", str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads((out / "watchlist.json").read_text(encoding="utf-8"))
        assert [e["agent_id"] for e in payload["entries"]] == ["a1"]
        assert payload["prior_range"] == {"start": "2024-01-01", "end": "2024-01-07"}

    def test_report(self, records_file, targets_file, tmp_path):
        out = tmp_path / "out"

        result = runner.invoke(
            app,
            [
                "report",
                "-r", str(records_file),
                "-t", str(targets_file),
                "--type", "week",
                "--today", "2024-01-14",
                "-o", str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        assert (out / "report.md").read_text(encoding="utf-8").startswith("# QC Report:")
        payload = json.loads((out / "report.json").read_text(encoding="utf-8"))
        assert payload["summary"]["total_evaluations"] == 21
        assert not (out / "report.pdf").exists()


class TestErrors:
    """Tests for failed invocations"""

    def test_reversed_range_fails(self, records_file, tmp_path):
        result = runner.invoke(
            app,
            [
                "snapshots",
                "-r", str(records_file),
                "--start", "2024-01-14",
                "--end", "2024-01-01",
                "-o", str(tmp_path),
            ],
        )

        assert result.exit_code == 1

    def test_custom_report_without_range_fails(self, records_file, tmp_path):
        result = runner.invoke(
            app, ["report", "-r", str(records_file), "--type", "custom", "-o", str(tmp_path)]
        )

        assert result.exit_code == 1

    def test_missing_records_file_fails(self, tmp_path):
        result = runner.invoke(
            app,
            [
                "snapshots",
                "-r", str(tmp_path / "missing.json"),
                "--start", "2024-01-01",
                "--end", "2024-01-07",
                "-o", str(tmp_path),
            ],
        )

        assert result.exit_code == 1

    def test_fetch_requires_base_url(self, tmp_path, monkeypatch):
        monkeypatch.delenv("QC_API_BASE_URL", raising=False)

        result = runner.invoke(
            app, ["fetch", "--start", "2024-01-01", "--end", "2024-01-07", "-o", str(tmp_path)]
        )

        assert result.exit_code != 0
