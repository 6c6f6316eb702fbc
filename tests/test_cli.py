"""Tests for the geoipqa command line interface."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from helpers import outcome

from geoipqa.cli import cli
from geoipqa.core.models import OutcomeStatus, ProbeResult
from geoipqa.matrix import Mode, es_scenario, plugin_scenario


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "geoipqa.yaml"
    path.write_text(f"results_dir: {tmp_path / 'results'}\nplugin_dir: {tmp_path / 'plugin'}\nprobe_attempts: 2\n")
    return path


def fake_harness(statuses: list[OutcomeStatus]):
    """HarnessRunner stand-in that records one outcome per status."""
    created = {}

    def build(config, results):
        harness = MagicMock()
        harness.stamp = "20250101_000000"

        def run(mode):
            created["mode"] = mode
            for i, status in enumerate(statuses):
                results.record(outcome(plugin_scenario(), f"check-{i}", status))
            return results

        harness.run.side_effect = run
        harness.validate.side_effect = lambda: run(None)
        return harness

    return build, created


class TestCliGroup:
    """Tests for global options."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "GeoIP filter compatibility harness" in result.output

    def test_bad_config_exits_2(self, runner, tmp_path):
        path = tmp_path / "geoipqa.yaml"
        path.write_text("probe_attempts: 0\n")

        result = runner.invoke(cli, ["--config", str(path), "run", "quick"])

        assert result.exit_code == 2
        assert "probe_attempts must be at least 1" in result.output

    def test_wrongly_typed_config_exits_2(self, runner, tmp_path):
        path = tmp_path / "geoipqa.yaml"
        path.write_text("probe_attempts: lots\n")

        result = runner.invoke(cli, ["--config", str(path), "run", "quick"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output
        assert "probe_attempts" in result.output


class TestRunCommand:
    """Tests for ``geoipqa run``."""

    def test_all_passing_exits_0(self, runner, config_file):
        build, created = fake_harness([OutcomeStatus.PASSED, OutcomeStatus.SOFT_PASSED])

        with patch("geoipqa.cli.commands.HarnessRunner", side_effect=build):
            result = runner.invoke(cli, ["--config", str(config_file), "run", "8"])

        assert result.exit_code == 0, result.output
        assert created["mode"] is Mode.V8
        assert "Passed: 2" in result.output
        assert "[PASS] plugin check-0" in result.output
        assert "[WARN] plugin check-1" in result.output

    def test_failure_exits_1(self, runner, config_file):
        build, _ = fake_harness(
            [OutcomeStatus.PASSED] * 3 + [OutcomeStatus.SOFT_PASSED, OutcomeStatus.FAILED]
        )

        with patch("geoipqa.cli.commands.HarnessRunner", side_effect=build):
            result = runner.invoke(cli, ["--config", str(config_file), "run", "cross"])

        assert result.exit_code == 1
        assert "Passed: 4" in result.output
        assert "Failed: 1" in result.output
        assert "[FAIL] plugin check-4" in result.output

    def test_default_mode_is_quick(self, runner, config_file):
        build, created = fake_harness([])

        with patch("geoipqa.cli.commands.HarnessRunner", side_effect=build):
            runner.invoke(cli, ["--config", str(config_file), "run"])

        assert created["mode"] is Mode.QUICK

    def test_unknown_mode(self, runner, config_file):
        result = runner.invoke(cli, ["--config", str(config_file), "run", "7.17"])
        assert result.exit_code == 2

    def test_report_written(self, runner, config_file, tmp_path):
        build, _ = fake_harness([OutcomeStatus.PASSED])

        with patch("geoipqa.cli.commands.HarnessRunner", side_effect=build):
            result = runner.invoke(cli, ["--config", str(config_file), "run", "quick", "-r", "json"])

        assert result.exit_code == 0, result.output
        report = tmp_path / "results" / "report_quick_20250101_000000.json"
        assert json.loads(report.read_text())["summary"]["passed"] == 1

    def test_validate(self, runner, config_file):
        build, _ = fake_harness([OutcomeStatus.FAILED])

        with patch("geoipqa.cli.commands.HarnessRunner", side_effect=build):
            result = runner.invoke(cli, ["--config", str(config_file), "validate"])

        assert result.exit_code == 1


class TestProbeCommand:
    """Tests for ``geoipqa probe``."""

    def test_ready(self, runner, config_file):
        with patch("geoipqa.cli.commands.ReadinessProber") as prober:
            prober.return_value.probe.return_value = ProbeResult(ready=True, elapsed_attempts=3)
            result = runner.invoke(cli, ["--config", str(config_file), "probe", "--version", "9.3"])

        assert result.exit_code == 0
        assert "http://localhost:9201 ready after 3 attempt(s)" in result.output
        prober.assert_called_once_with(max_attempts=2, interval=2.0)

    def test_not_ready(self, runner, config_file):
        with patch("geoipqa.cli.commands.ReadinessProber") as prober:
            prober.return_value.probe.return_value = ProbeResult(ready=False, elapsed_attempts=2)
            result = runner.invoke(cli, ["--config", str(config_file), "probe", "--port", "9999"])

        assert result.exit_code == 1
        assert "localhost:9999" in result.output


class TestCheckCommands:
    """Tests for check-es, check-ls and geodb."""

    def test_check_es(self, runner, config_file):
        def fake_check(client, results, **kwargs):
            results.record(outcome(es_scenario("9.3.0"), "es-sample-8.8.8.8"))

        with patch("geoipqa.cli.commands.check_search_engine", side_effect=fake_check) as check:
            result = runner.invoke(cli, ["--config", str(config_file), "check-es", "es.local", "9201"])

        assert result.exit_code == 0, result.output
        assert check.call_args.args[0].base_url == "http://es.local:9201"

    def test_check_ls_missing_home(self, runner, config_file, tmp_path):
        result = runner.invoke(cli, ["--config", str(config_file), "check-ls", str(tmp_path / "no-logstash")])

        assert result.exit_code == 1
        assert "Logstash not found" in result.output

    def test_geodb_without_databases(self, runner, config_file, tmp_path):
        empty = tmp_path / "dbs"
        empty.mkdir()

        result = runner.invoke(cli, ["--config", str(config_file), "geodb", "--db-dir", str(empty)])

        assert result.exit_code == 0, result.output
