"""CLI command tests (via typer.testing.CliRunner)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cic.cli.app import app
from cic.engine.batch import BatchItemResult, BatchResult
from cic.engine.scan import ScanReport
from cic.exceptions import RunFailedError
from cic.models.capture import CaptureMethod, ProxyBinding, RunContext, RunResult
from cic.models.states import RunState

TARGET = "https://blog.example.com/post"


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _result(method: CaptureMethod = CaptureMethod.NEW_TAB, url: str = "https://shop.example.com/deal") -> RunResult:
    ctx = RunContext(target_url=TARGET, ip="203.0.113.7")
    return RunResult(target_url=TARGET, records=(ctx.record(url, method),), ip="203.0.113.7")


class TestTopLevel:
    def test_help_lists_every_config_layer(self):
        from cic.cli.app import APP_HELP

        layers = ["settings.default.toml", "settings.{env}.toml", "settings.local.toml", "CIC_*"]
        positions = [APP_HELP.index(layer) for layer in layers]
        assert positions == sorted(positions)

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("cic ")

    def test_help_lists_groups(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "capture" in result.output
        assert "settings" in result.output


class TestCaptureUrl:
    def test_json_output(self, runner):
        with patch("cic.engine.runner.run_capture", return_value=_result()) as run:
            result = runner.invoke(app, ["capture", "url", TARGET, "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["records"][0]["method"] == "new_tab"
        assert data["records"][0]["ip"] == "203.0.113.7"
        assert run.call_args.args == (TARGET, None)

    def test_proxy_flags(self, runner):
        with patch("cic.engine.runner.run_capture", return_value=_result()) as run:
            result = runner.invoke(
                app,
                ["capture", "url", TARGET, "--proxy", "http://10.0.0.1:8080", "--proxy-username", "u", "--proxy-password", "p"],
            )

        assert result.exit_code == 0, result.output
        assert run.call_args.args[1] == ProxyBinding(server="http://10.0.0.1:8080", username="u", password="p")

    def test_bad_proxy_rejected(self, runner):
        with patch("cic.engine.runner.run_capture") as run:
            result = runner.invoke(app, ["capture", "url", TARGET, "--proxy", "http://"])

        assert result.exit_code == 1
        run.assert_not_called()

    def test_table_output(self, runner):
        with patch("cic.engine.runner.run_capture", return_value=_result()):
            result = runner.invoke(app, ["capture", "url", TARGET])

        assert result.exit_code == 0, result.output
        assert "1 destination(s) captured" in result.output
        assert "new_tab" in result.output

    def test_run_failure_exit_code(self, runner):
        ctx = RunContext(target_url=TARGET)
        failed = RunResult(
            target_url=TARGET, records=(ctx.record(TARGET, CaptureMethod.ERROR_FALLBACK),), state=RunState.FAILED
        )
        with patch("cic.engine.runner.run_capture", side_effect=RunFailedError("timeout", failed)):
            result = runner.invoke(app, ["capture", "url", TARGET, "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["records"][0]["method"] == "error_fallback"

    def test_invalid_url(self, runner):
        result = runner.invoke(app, ["capture", "url", "not-a-url"])
        assert result.exit_code == 1
        assert "Invalid target URL" in result.output


class TestCaptureBatch:
    def test_text_file(self, runner, tmp_path: Path):
        batch_file = tmp_path / "urls.txt"
        batch_file.write_text("# targets\nhttps://a.example\n\nhttps://b.example\n")
        summary = BatchResult(
            items=[
                BatchItemResult(url="https://a.example", status="completed", result=_result()),
                BatchItemResult(url="https://b.example", status="completed", result=_result()),
            ]
        )

        with patch("cic.engine.batch.run_batch", return_value=summary) as run:
            result = runner.invoke(app, ["capture", "batch", str(batch_file)])

        assert result.exit_code == 0, result.output
        items = run.call_args.args[0]
        assert [i.url for i in items] == ["https://a.example", "https://b.example"]
        assert "2 completed, 0 failed of 2" in result.output

    def test_json_manifest_with_proxies(self, runner, tmp_path: Path):
        batch_file = tmp_path / "batch.json"
        batch_file.write_text(
            json.dumps(["https://a.example", {"url": "https://b.example", "proxy": "http://10.0.0.1:8080"}, {"no": "url"}])
        )

        with patch("cic.engine.batch.run_batch", return_value=BatchResult()) as run:
            runner.invoke(app, ["capture", "batch", str(batch_file), "--format", "json"])

        items = run.call_args.args[0]
        assert len(items) == 2
        assert items[1].proxy.server == "http://10.0.0.1:8080"

    def test_failed_item_exit_code(self, runner, tmp_path: Path):
        batch_file = tmp_path / "urls.txt"
        batch_file.write_text("https://down.example\n")
        summary = BatchResult(items=[BatchItemResult(url="https://down.example", status="failed", error="timeout")])

        with patch("cic.engine.batch.run_batch", return_value=summary):
            result = runner.invoke(app, ["capture", "batch", str(batch_file), "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["failed"] == 1

    def test_missing_file(self, runner, tmp_path: Path):
        result = runner.invoke(app, ["capture", "batch", str(tmp_path / "missing.txt")])
        assert result.exit_code == 1

    def test_empty_file(self, runner, tmp_path: Path):
        batch_file = tmp_path / "urls.txt"
        batch_file.write_text("# nothing yet\n")

        result = runner.invoke(app, ["capture", "batch", str(batch_file)])

        assert result.exit_code == 0
        assert "No URLs to process" in result.output


class TestCaptureScan:
    def test_scan_json(self, runner):
        report = ScanReport(url=TARGET, ok=True, ip="192.0.2.1", final_url=TARGET, content_selector="main")
        with patch("cic.engine.scan.scan_page", return_value=report):
            result = runner.invoke(app, ["capture", "scan", TARGET, "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["content_selector"] == "main"

    def test_scan_failure(self, runner):
        report = ScanReport(url=TARGET, error="Navigation to x failed: timeout")
        with patch("cic.engine.scan.scan_page", return_value=report):
            result = runner.invoke(app, ["capture", "scan", TARGET])

        assert result.exit_code == 1
        assert "Scan failed" in result.output


class TestSettingsCommands:
    def test_validate(self, runner):
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "Settings are valid" in result.output

    def test_show(self, runner):
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "max_attempts" in result.output
