"""Markdown reporter for human-readable summaries."""

from __future__ import annotations

from io import StringIO

from geoipqa.aggregator import ResultAggregator
from geoipqa.core.models import OutcomeStatus
from geoipqa.reporters.base import BaseReporter

_BADGES = {
    OutcomeStatus.PASSED: "PASS",
    OutcomeStatus.SOFT_PASSED: "**SOFT PASS**",
    OutcomeStatus.FAILED: "**FAIL**",
}


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


class MarkdownReporter(BaseReporter):
    """Formats a run's outcomes as Markdown."""

    @property
    def file_extension(self) -> str:
        return ".md"

    def generate(self, results: ResultAggregator) -> str:
        out = StringIO()
        out.write("# GeoIP Compatibility Report\n\n")

        out.write("## Summary\n\n")
        out.write("| Metric | Value |\n")
        out.write("|--------|-------|\n")
        out.write(f"| Started | {results.started_at:%Y-%m-%d %H:%M:%S} |\n")
        out.write(f"| Passed | {results.passed} |\n")
        out.write(f"| Soft-passed | {results.soft_passed} |\n")
        out.write(f"| Failed | {results.failed} |\n")
        out.write(f"| Status | {'PASSED' if results.success else 'FAILED'} |\n")
        out.write("\n")

        if not results.outcomes:
            out.write("No checks were run.\n")
            return out.getvalue()

        out.write("## Checks\n\n")
        out.write("| Scenario | Check | Status | Detail |\n")
        out.write("|----------|-------|--------|--------|\n")
        for o in results.outcomes:
            out.write(f"| {o.scenario.label} | {o.check} | {_BADGES[o.status]} | {_cell(o.detail)} |\n")
        out.write("\n")

        if results.soft_passes:
            out.write("## Soft Passes\n\n")
            out.write(
                "These checks could not be verified because the GeoIP database was "
                "still downloading. They count as passed.\n\n"
            )
            for o in results.soft_passes:
                out.write(f"- {o.scenario.label} `{o.check}`: {o.detail}\n")
            out.write("\n")

        artifacts = [o for o in results.failures if o.artifact]
        if artifacts:
            out.write("## Failure Artifacts\n\n")
            for o in artifacts:
                out.write(f"- {o.scenario.label} `{o.check}`: `{_cell(o.artifact or '')}`\n")

        return out.getvalue()
