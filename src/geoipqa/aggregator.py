"""Collect verification outcomes and derive the run's exit status."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime

from rich.console import Console
from rich.table import Table

from geoipqa.core.models import (
    OutcomeStatus,
    Scenario,
    ScenarioState,
    VerificationOutcome,
    can_transition,
)
from geoipqa.errors import ScenarioStateError

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Append-only record of every assertion made during a run.

    The aggregator is passed explicitly through the run; nothing else
    keeps pass/fail totals. Soft-passes count toward ``passed`` and are
    also reported on their own.

    Each (scenario, check) pair is one assertion point and follows
    ``NOT_STARTED -> PROVISIONING -> VERIFYING -> terminal``. Recording a
    second outcome for the same point is an error.

    Example:
        >>> agg = ResultAggregator()
        >>> agg.record(VerificationOutcome(scenario, "es-geoip", OutcomeStatus.PASSED, "US/N/A"))
        >>> agg.passed, agg.failed, agg.exit_code
        (1, 0, 0)
    """

    def __init__(self) -> None:
        self._outcomes: list[VerificationOutcome] = []
        self._states: dict[tuple[str, str], ScenarioState] = {}
        self.started_at = datetime.now()

    @property
    def outcomes(self) -> tuple[VerificationOutcome, ...]:
        return tuple(self._outcomes)

    def state(self, scenario: Scenario, check: str) -> ScenarioState:
        return self._states.get((scenario.label, check), ScenarioState.NOT_STARTED)

    def advance(self, scenario: Scenario, check: str, target: ScenarioState) -> None:
        """Move an assertion point to a non-terminal ``target`` state.

        Raises:
            ScenarioStateError: The transition is not allowed.
        """
        current = self.state(scenario, check)
        if current == target:
            return
        if target.is_terminal or not can_transition(current, target):
            raise ScenarioStateError(
                f"Illegal state transition for {scenario} {check}: {current.value} -> {target.value}",
                check=check,
            )
        self._states[(scenario.label, check)] = target

    def record(self, outcome: VerificationOutcome) -> VerificationOutcome:
        """Append an outcome, settling its assertion point.

        Raises:
            ScenarioStateError: The assertion point already has an outcome
                or cannot be settled from its current state.
        """
        key = (outcome.scenario.label, outcome.check)
        current = self._states.get(key, ScenarioState.NOT_STARTED)
        terminal = ScenarioState.from_outcome(outcome.status)
        if current.is_terminal:
            raise ScenarioStateError(
                f"{outcome.scenario} {outcome.check} already recorded as {current.value}",
                check=outcome.check,
            )
        # Checks with nothing to provision are verified directly.
        if current is ScenarioState.NOT_STARTED and terminal is not ScenarioState.FAILED:
            current = ScenarioState.VERIFYING
        if not can_transition(current, terminal):
            raise ScenarioStateError(
                f"Illegal state transition for {outcome.scenario} {outcome.check}: "
                f"{current.value} -> {terminal.value}",
                check=outcome.check,
            )
        self._states[key] = terminal
        self._outcomes.append(outcome)

        log = logger.info if outcome.passed else logger.error
        log(f"[{outcome.status.value.upper()}] {outcome.scenario} {outcome.check}: {outcome.detail}")
        return outcome

    def for_scenario(self, scenario: Scenario) -> list[VerificationOutcome]:
        return [o for o in self._outcomes if o.scenario.label == scenario.label]

    @property
    def counts(self) -> Counter[OutcomeStatus]:
        return Counter(o.status for o in self._outcomes)

    @property
    def total(self) -> int:
        return len(self._outcomes)

    @property
    def passed(self) -> int:
        """Passing outcomes, soft-passes included."""
        return sum(1 for o in self._outcomes if o.passed)

    @property
    def soft_passed(self) -> int:
        return self.counts[OutcomeStatus.SOFT_PASSED]

    @property
    def failed(self) -> int:
        return self.counts[OutcomeStatus.FAILED]

    @property
    def failures(self) -> list[VerificationOutcome]:
        return [o for o in self._outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def soft_passes(self) -> list[VerificationOutcome]:
        return [o for o in self._outcomes if o.soft]

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def print_summary(self, console: Console | None = None) -> None:
        console = console or Console()
        console.print()
        console.print("[bold]Test Summary[/bold]")
        console.print(f"  [green]Passed:[/green] {self.passed}")
        if self.soft_passed:
            console.print(f"  [yellow]Soft-passed:[/yellow] {self.soft_passed} (counted as passed)")
        console.print(f"  [red]Failed:[/red] {self.failed}")

        notable = self.failures + self.soft_passes
        if notable:
            table = Table(title="Attention")
            table.add_column("Status")
            table.add_column("Scenario", style="cyan")
            table.add_column("Check")
            table.add_column("Detail")
            for o in notable:
                style = "red" if o.status is OutcomeStatus.FAILED else "yellow"
                table.add_row(
                    f"[{style}]{o.status.value.upper()}[/{style}]",
                    o.scenario.label,
                    o.check,
                    o.detail,
                )
            console.print(table)

        if self.success:
            console.print("[bold green]All tests passed![/bold green]")
        else:
            console.print("[bold red]Some tests failed. Check logs for details.[/bold red]")
