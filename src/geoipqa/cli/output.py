"""Rich console output for the geoipqa CLI."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.panel import Panel

from geoipqa.core.models import OutcomeStatus, VerificationOutcome

_MARKERS = {
    OutcomeStatus.PASSED: "[green][PASS][/green]",
    OutcomeStatus.SOFT_PASSED: "[yellow][WARN][/yellow]",
    OutcomeStatus.FAILED: "[red][FAIL][/red]",
}


class CLIOutput:
    """Banners and per-outcome lines on a rich console.

    Example:
        >>> out = CLIOutput()
        >>> out.banner("GeoIP Filter Quick Validation")
        >>> out.info("Step 1: Checking GeoIP library versions...")
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def banner(self, title: str, *lines: str) -> None:
        body = "\n".join(lines) if lines else ""
        self.console.print(Panel(body or title, title=title if lines else None, expand=False))

    def info(self, message: str) -> None:
        self.console.print(f"[blue][INFO][/blue] {message}")

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow][WARN][/yellow] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red][FAIL][/red] {message}")

    def outcome(self, outcome: VerificationOutcome) -> None:
        self.console.print(
            f"{_MARKERS[outcome.status]} {outcome.scenario.label} {outcome.check}: {outcome.detail}",
            highlight=False,
        )

    def outcomes(self, outcomes: Iterable[VerificationOutcome]) -> None:
        for o in outcomes:
            self.outcome(o)
