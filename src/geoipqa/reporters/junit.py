"""JUnit XML reporter for CI/CD integration.

One testsuite per scenario, one testcase per check. Soft-passes are
reported as passing testcases with a ``system-out`` note so CI stays
green while the condition remains visible.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from io import StringIO
from itertools import groupby
from pathlib import Path

from geoipqa.aggregator import ResultAggregator
from geoipqa.core.models import OutcomeStatus
from geoipqa.reporters.base import BaseReporter


class JUnitReporter(BaseReporter):
    """Formats a run's outcomes as JUnit XML."""

    def __init__(self, output_path: str | Path | None = None, suite_name: str = "geoipqa") -> None:
        super().__init__(output_path)
        self.suite_name = suite_name

    @property
    def file_extension(self) -> str:
        return ".xml"

    def generate(self, results: ResultAggregator) -> str:
        root = ET.Element("testsuites")
        root.set("name", self.suite_name)
        root.set("tests", str(results.total))
        root.set("failures", str(results.failed))
        root.set("errors", "0")

        ordered = sorted(results.outcomes, key=lambda o: o.scenario.label)
        for label, group in groupby(ordered, key=lambda o: o.scenario.label):
            outcomes = list(group)
            suite = ET.SubElement(root, "testsuite")
            suite.set("name", label)
            suite.set("tests", str(len(outcomes)))
            suite.set("failures", str(sum(1 for o in outcomes if not o.passed)))
            suite.set("errors", "0")
            suite.set("timestamp", outcomes[0].recorded_at.isoformat())

            for o in outcomes:
                case = ET.SubElement(suite, "testcase")
                case.set("name", o.check)
                case.set("classname", f"{self.suite_name}.{label}")
                if o.status is OutcomeStatus.FAILED:
                    failure = ET.SubElement(case, "failure")
                    failure.set("message", o.detail)
                    failure.set("type", "failed")
                    if o.artifact:
                        failure.text = f"Artifact: {o.artifact}"
                elif o.status is OutcomeStatus.SOFT_PASSED:
                    out = ET.SubElement(case, "system-out")
                    out.text = f"SOFT PASS: {o.detail}"

        ET.indent(root)
        buf = StringIO()
        buf.write('<?xml version="1.0" encoding="UTF-8"?>\n')
        ET.ElementTree(root).write(buf, encoding="unicode")
        return buf.getvalue()
