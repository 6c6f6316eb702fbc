"""Tests for report generation."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET

import pytest
from helpers import outcome

from geoipqa.aggregator import ResultAggregator
from geoipqa.core.models import OutcomeStatus, VerificationOutcome
from geoipqa.matrix import es_scenario, ls_scenario, pair_scenario, plugin_scenario
from geoipqa.reporters import (
    REPORTERS,
    JSONReporter,
    JUnitReporter,
    MarkdownReporter,
    MatrixReporter,
    compatibility_matrix,
)


@pytest.fixture
def results() -> ResultAggregator:
    agg = ResultAggregator()
    agg.record(outcome(plugin_scenario(), "plugin-build", OutcomeStatus.PASSED, "Plugin build and tests passed"))
    agg.record(outcome(es_scenario("8.19"), "es-geoip-processor", OutcomeStatus.PASSED, "geoip present: US/N/A"))
    agg.record(outcome(es_scenario("9.3"), "es-geoip-processor", OutcomeStatus.SOFT_PASSED, "database downloading"))
    agg.record(outcome(ls_scenario("8.19"), "ls-geoip-filter", OutcomeStatus.PASSED, "GeoIP filter active"))
    agg.record(
        VerificationOutcome(
            ls_scenario("9.3"),
            "ls-geoip-filter",
            OutcomeStatus.FAILED,
            "Container not running | no activity",
            artifact="results/ls9.3_logs.log",
        )
    )
    return agg


class TestJSONReporter:
    """Tests for JSONReporter."""

    def test_generate(self, results):
        data = json.loads(JSONReporter().generate(results))

        assert data["summary"] == {"total": 5, "passed": 4, "soft_passed": 1, "failed": 1, "success": False}
        assert data["outcomes"][2]["status"] == "soft_passed"
        assert data["outcomes"][4]["artifact"] == "results/ls9.3_logs.log"

    def test_save(self, results, tmp_path):
        path = JSONReporter().save(results, tmp_path / "nested" / "report.json")
        assert json.loads(path.read_text())["summary"]["total"] == 5

    def test_save_requires_path(self, results):
        with pytest.raises(ValueError, match="Output path required"):
            JSONReporter().save(results)

    def test_constructor_path(self, results, tmp_path):
        path = JSONReporter(output_path=tmp_path / "r.json").save(results)
        assert path == tmp_path / "r.json"


class TestJUnitReporter:
    """Tests for JUnitReporter."""

    def test_suites_per_scenario(self, results):
        root = ET.fromstring(JUnitReporter().generate(results))

        assert root.get("tests") == "5"
        assert root.get("failures") == "1"
        suites = {s.get("name"): s for s in root.findall("testsuite")}
        assert set(suites) == {"plugin", "es-8.19", "es-9.3", "ls-8.19", "ls-9.3"}

        failure = suites["ls-9.3"].find("testcase/failure")
        assert failure.get("message") == "Container not running | no activity"
        assert failure.text == "Artifact: results/ls9.3_logs.log"

    def test_soft_pass_is_not_failure(self, results):
        root = ET.fromstring(JUnitReporter().generate(results))
        suite = next(s for s in root.findall("testsuite") if s.get("name") == "es-9.3")

        assert suite.get("failures") == "0"
        assert suite.find("testcase/system-out").text == "SOFT PASS: database downloading"

    def test_empty_run(self):
        root = ET.fromstring(JUnitReporter().generate(ResultAggregator()))
        assert root.get("tests") == "0"
        assert root.findall("testsuite") == []


class TestMarkdownReporter:
    """Tests for MarkdownReporter."""

    def test_generate(self, results):
        text = MarkdownReporter().generate(results)

        assert "# GeoIP Compatibility Report" in text
        assert "| Passed | 4 |" in text
        assert "| Status | FAILED |" in text
        assert "## Soft Passes" in text
        assert "Container not running \\| no activity" in text
        assert "`results/ls9.3_logs.log`" in text

    def test_empty_run(self):
        text = MarkdownReporter().generate(ResultAggregator())
        assert "No checks were run." in text
        assert "| Status | PASSED |" in text


class TestMatrixReporter:
    """Tests for the compatibility matrix."""

    def test_pair_statuses(self, results):
        matrix = {p.label: s for p, s in compatibility_matrix(results)}

        assert matrix["es-8.19/ls-8.19"] is OutcomeStatus.PASSED
        assert matrix["es-9.3/ls-9.3"] is OutcomeStatus.FAILED

    def test_unwired_cross_pairs_not_tested(self):
        agg = ResultAggregator()
        for version in ("8.19", "9.3"):
            agg.record(outcome(es_scenario(version), "es-geoip-processor"))
            agg.record(outcome(ls_scenario(version), "ls-geoip-filter"))

        matrix = {p.label: s for p, s in compatibility_matrix(agg)}

        assert matrix["es-8.19/ls-8.19"] is OutcomeStatus.PASSED
        assert matrix["es-9.3/ls-9.3"] is OutcomeStatus.PASSED
        assert matrix["es-8.19/ls-9.3"] is None
        assert matrix["es-9.3/ls-8.19"] is None

    def test_cross_pair_from_own_outcomes(self):
        agg = ResultAggregator()
        agg.record(outcome(pair_scenario("9.3", "8.19"), "ls-geoip-filter", OutcomeStatus.SOFT_PASSED))

        matrix = {p.label: s for p, s in compatibility_matrix(agg)}

        assert matrix["es-9.3/ls-8.19"] is OutcomeStatus.SOFT_PASSED
        assert matrix["es-8.19/ls-9.3"] is None

    def test_not_tested(self):
        agg = ResultAggregator()
        agg.record(outcome(es_scenario("8.19"), "es-geoip-processor"))

        text = MatrixReporter().generate(agg)

        assert "ES 8.19 -> LS 8.19: NOT TESTED" in text

    def test_generate(self, results):
        text = MatrixReporter().generate(results)
        assert text.startswith("GeoIP Compatibility Matrix\n")
        assert "ES 8.19 -> LS 8.19: PASSED" in text
        assert MatrixReporter().file_extension == ".txt"


def test_registry():
    assert set(REPORTERS) == {"json", "junit", "markdown"}
    assert {cls().file_extension for cls in REPORTERS.values()} == {".json", ".xml", ".md"}
