"""JSON reporter for machine-readable output."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from geoipqa.aggregator import ResultAggregator
from geoipqa.reporters.base import BaseReporter


class JSONReporter(BaseReporter):
    """Formats a run's outcomes as JSON."""

    def __init__(self, output_path: str | Path | None = None, indent: int | None = 2) -> None:
        super().__init__(output_path)
        self.indent = indent

    @property
    def file_extension(self) -> str:
        return ".json"

    def generate(self, results: ResultAggregator) -> str:
        return json.dumps(self._to_dict(results), indent=self.indent, default=str)

    def _to_dict(self, results: ResultAggregator) -> dict[str, Any]:
        return {
            "summary": {
                "total": results.total,
                "passed": results.passed,
                "soft_passed": results.soft_passed,
                "failed": results.failed,
                "success": results.success,
            },
            "outcomes": [o.to_dict() for o in results.outcomes],
            "started_at": results.started_at.isoformat(),
            "generated_at": datetime.now().isoformat(),
        }
