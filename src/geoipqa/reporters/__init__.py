"""Reporters for run outcomes."""

from geoipqa.reporters.base import BaseReporter
from geoipqa.reporters.json import JSONReporter
from geoipqa.reporters.junit import JUnitReporter
from geoipqa.reporters.markdown import MarkdownReporter
from geoipqa.reporters.matrix import MatrixReporter, compatibility_matrix

REPORTERS: dict[str, type[BaseReporter]] = {
    "json": JSONReporter,
    "junit": JUnitReporter,
    "markdown": MarkdownReporter,
}

__all__ = [
    "BaseReporter",
    "JSONReporter",
    "JUnitReporter",
    "MarkdownReporter",
    "MatrixReporter",
    "REPORTERS",
    "compatibility_matrix",
]
