"""Abstract base reporter.

Reporters turn the outcomes collected by a ResultAggregator into a file
format for CI systems or humans.

Example:
    >>> class CsvReporter(BaseReporter):
    ...     @property
    ...     def file_extension(self) -> str:
    ...         return ".csv"
    ...
    ...     def generate(self, results: ResultAggregator) -> str:
    ...         return "scenario,check,status\\n"
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geoipqa.aggregator import ResultAggregator


class BaseReporter(ABC):
    """Abstract base class for all reporters.

    Attributes:
        output_path: Optional default path for saving reports.
    """

    def __init__(self, output_path: str | Path | None = None) -> None:
        self.output_path = Path(output_path) if output_path else None

    @abstractmethod
    def generate(self, results: ResultAggregator) -> str:
        """Render the run's outcomes. Must handle a run with no outcomes."""
        ...

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """File extension including the dot, e.g. ``.xml``."""
        ...

    def save(self, results: ResultAggregator, path: str | Path | None = None) -> Path:
        """Write the report, creating parent directories.

        Raises:
            ValueError: No path given here or in the constructor.
        """
        output_path = Path(path) if path else self.output_path
        if not output_path:
            raise ValueError(
                "Output path required for saving report. "
                "Provide 'path' argument or set 'output_path' in constructor."
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.generate(results), encoding="utf-8")
        return output_path
