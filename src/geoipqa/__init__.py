"""geoipqa - compatibility harness for the Logstash GeoIP filter.

Validates logstash-filter-geoip against Elasticsearch and Logstash 8.19
and 9.3: plugin build and unit tests, the search engine's GeoIP ingest
processor, data streams, the log shipper filter in containers, and the
MaxMind reader library.

Example:
    >>> from geoipqa import HarnessRunner, ResultAggregator, load_config
    >>> from geoipqa.matrix import Mode
    >>> results = HarnessRunner(load_config(), ResultAggregator()).run(Mode.V8)
    >>> results.exit_code
    0
"""

from geoipqa.aggregator import ResultAggregator
from geoipqa.client import ApiResponse, SearchClient
from geoipqa.config import HarnessConfig, load_config
from geoipqa.core.models import (
    OutcomeStatus,
    PipelineSpec,
    ProbeResult,
    Scenario,
    VerificationOutcome,
)
from geoipqa.errors import HarnessError
from geoipqa.probe import ReadinessProber, poll_until
from geoipqa.provisioner import PipelineProvisioner
from geoipqa.runner import HarnessRunner
from geoipqa.verifier import EnrichmentVerifier

__version__ = "1.0.0"

__all__ = [
    "ApiResponse",
    "EnrichmentVerifier",
    "HarnessConfig",
    "HarnessError",
    "HarnessRunner",
    "OutcomeStatus",
    "PipelineProvisioner",
    "PipelineSpec",
    "ProbeResult",
    "ReadinessProber",
    "ResultAggregator",
    "Scenario",
    "SearchClient",
    "VerificationOutcome",
    "load_config",
    "poll_until",
]
