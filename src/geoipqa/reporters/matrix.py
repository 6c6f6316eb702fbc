"""Cross-version compatibility matrix.

The compose stack wires each log shipper only to the search engine of the
same version. A same-version pair (A, A) is therefore derived from the
``es-A`` and ``ls-A`` scenarios. A cross pair (A, B) counts only outcomes
recorded against the pair scenario itself, since no run ships data from
log shipper B into search engine A. A pair is failed if any of its outcomes
failed, soft-passed if any soft-passed, otherwise passed. A pair with no
outcomes is "not tested".
"""

from __future__ import annotations

from geoipqa.aggregator import ResultAggregator
from geoipqa.core.models import OutcomeStatus, Scenario
from geoipqa.matrix import cross_matrix, es_scenario, ls_scenario
from geoipqa.reporters.base import BaseReporter


def pair_status(results: ResultAggregator, pair: Scenario) -> OutcomeStatus | None:
    outcomes = results.for_scenario(pair)
    if pair.es_version == pair.ls_version:
        es = results.for_scenario(es_scenario(pair.es_version or ""))
        ls = results.for_scenario(ls_scenario(pair.ls_version or ""))
        if es and ls:
            outcomes = outcomes + es + ls
    if not outcomes:
        return None
    statuses = {o.status for o in outcomes}
    if OutcomeStatus.FAILED in statuses:
        return OutcomeStatus.FAILED
    if OutcomeStatus.SOFT_PASSED in statuses:
        return OutcomeStatus.SOFT_PASSED
    return OutcomeStatus.PASSED


def compatibility_matrix(results: ResultAggregator) -> list[tuple[Scenario, OutcomeStatus | None]]:
    return [(pair, pair_status(results, pair)) for pair in cross_matrix()]


class MatrixReporter(BaseReporter):
    """Plain-text compatibility matrix, one line per version pair."""

    @property
    def file_extension(self) -> str:
        return ".txt"

    def generate(self, results: ResultAggregator) -> str:
        lines = ["GeoIP Compatibility Matrix", "=========================", ""]
        for pair, status in compatibility_matrix(results):
            label = status.value.upper() if status else "NOT TESTED"
            lines.append(f"ES {pair.es_version} -> LS {pair.ls_version}: {label}")
        return "\n".join(lines) + "\n"
