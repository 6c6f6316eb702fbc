"""Data model for compatibility scenarios and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class OutcomeStatus(Enum):
    """Terminal status of a single assertion.

    SOFT_PASSED marks an assertion that could not be verified because of a
    known environmental condition (GeoIP database still downloading). It
    counts toward the pass total but is reported separately.
    """

    PASSED = "passed"
    SOFT_PASSED = "soft_passed"
    FAILED = "failed"

    @property
    def is_passing(self) -> bool:
        return self is not OutcomeStatus.FAILED


class ScenarioState(Enum):
    """Lifecycle of one scenario step."""

    NOT_STARTED = "not_started"
    PROVISIONING = "provisioning"
    VERIFYING = "verifying"
    PASSED = "passed"
    SOFT_PASSED = "soft_passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScenarioState.PASSED, ScenarioState.SOFT_PASSED, ScenarioState.FAILED)

    @classmethod
    def from_outcome(cls, status: OutcomeStatus) -> ScenarioState:
        return cls(status.value)


_TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.NOT_STARTED: {
        ScenarioState.PROVISIONING,
        ScenarioState.VERIFYING,
        ScenarioState.FAILED,
    },
    ScenarioState.PROVISIONING: {ScenarioState.VERIFYING, ScenarioState.FAILED},
    ScenarioState.VERIFYING: {
        ScenarioState.PASSED,
        ScenarioState.SOFT_PASSED,
        ScenarioState.FAILED,
    },
}


def can_transition(current: ScenarioState, target: ScenarioState) -> bool:
    """Whether ``current -> target`` is a legal scenario transition."""
    return target in _TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class Scenario:
    """One cell of the version matrix.

    Attributes:
        es_version: Search engine version under test, if any.
        ls_version: Log shipper version under test, if any.
        label: Stable human-readable name, used in reports.
    """

    es_version: str | None
    ls_version: str | None
    label: str

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class ProbeResult:
    """Result of a readiness probe."""

    ready: bool
    elapsed_attempts: int


@dataclass(frozen=True)
class GeoipLookup:
    """An additional geoip processor on the same source field."""

    target_field: str
    database_file: str | None = None


@dataclass(frozen=True)
class PipelineSpec:
    """Declarative description of a GeoIP ingest pipeline.

    The first processor reads ``field`` into ``target_field``; each entry in
    ``extra_lookups`` adds another geoip processor on the same field, e.g.
    an ASN lookup next to the city lookup.
    """

    name: str
    field: str
    target_field: str
    database_file: str | None = None
    ignore_missing: bool = False
    description: str = "GeoIP test pipeline"
    extra_lookups: tuple[GeoipLookup, ...] = ()

    def _processor(self, target_field: str, database_file: str | None) -> dict[str, Any]:
        geoip: dict[str, Any] = {"field": self.field, "target_field": target_field}
        if database_file:
            geoip["database_file"] = database_file
        if self.ignore_missing:
            geoip["ignore_missing"] = True
        return {"geoip": geoip}

    def to_body(self) -> dict[str, Any]:
        """Serialize to an ingest pipeline request body."""
        processors = [self._processor(self.target_field, self.database_file)]
        processors.extend(
            self._processor(lookup.target_field, lookup.database_file)
            for lookup in self.extra_lookups
        )
        return {"description": self.description, "processors": processors}

    def simplified(self) -> PipelineSpec:
        """The documented fallback: one lookup into ``geoip``, default database."""
        return PipelineSpec(
            name=self.name,
            field=self.field,
            target_field="geoip",
            description=self.description,
        )

    @property
    def namespaces(self) -> tuple[str, ...]:
        """Every target field this pipeline writes to."""
        return (self.target_field,) + tuple(lookup.target_field for lookup in self.extra_lookups)


@dataclass(frozen=True)
class IndexTemplateSpec:
    """Composable index template backing a data stream."""

    name: str
    index_patterns: tuple[str, ...]
    pipeline: str
    priority: int = 200
    mappings: dict[str, Any] = field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        template: dict[str, Any] = {"settings": {"index.default_pipeline": self.pipeline}}
        if self.mappings:
            template["mappings"] = self.mappings
        return {
            "index_patterns": list(self.index_patterns),
            "data_stream": {},
            "priority": self.priority,
            "template": template,
        }


@dataclass(frozen=True)
class ProvisionResult:
    """What came back from a declarative configuration request.

    Attributes:
        acknowledged: Whether the service acknowledged the request.
        body: Raw response body for diagnostics.
        used_fallback: True when the primary spec was rejected and the
            simplified fallback was submitted instead.
        attempts: Number of requests made (1 or 2).
    """

    acknowledged: bool
    body: str
    used_fallback: bool = False
    attempts: int = 1


@dataclass(frozen=True)
class VerificationOutcome:
    """Terminal result of one assertion within a scenario.

    Attributes:
        scenario: The scenario the assertion belongs to.
        check: Short assertion name, e.g. "es-geoip-processor".
        status: Terminal status.
        detail: One-line explanation.
        artifact: Optional path or raw body kept for diagnostics.
    """

    scenario: Scenario
    check: str
    status: OutcomeStatus
    detail: str
    artifact: str | None = None
    recorded_at: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> bool:
        return self.status.is_passing

    @property
    def soft(self) -> bool:
        return self.status is OutcomeStatus.SOFT_PASSED

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "scenario": self.scenario.label,
            "es_version": self.scenario.es_version,
            "ls_version": self.scenario.ls_version,
            "check": self.check,
            "status": self.status.value,
            "passed": self.passed,
            "detail": self.detail,
            "recorded_at": self.recorded_at.isoformat(),
        }
        if self.artifact:
            d["artifact"] = self.artifact
        return d
