"""Core models for geoipqa."""

from geoipqa.core.models import (
    GeoipLookup,
    IndexTemplateSpec,
    OutcomeStatus,
    PipelineSpec,
    ProbeResult,
    ProvisionResult,
    Scenario,
    ScenarioState,
    VerificationOutcome,
    can_transition,
)

__all__ = [
    "GeoipLookup",
    "IndexTemplateSpec",
    "OutcomeStatus",
    "PipelineSpec",
    "ProbeResult",
    "ProvisionResult",
    "Scenario",
    "ScenarioState",
    "VerificationOutcome",
    "can_transition",
]
