"""Drive a full compatibility run for one mode of the version matrix.

Every step records exactly one outcome per assertion in the aggregator.
Harness errors raised inside a step are caught at the step boundary and
recorded as failures, so one broken scenario never stops the rest.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from geoipqa.aggregator import ResultAggregator
from geoipqa.client import SearchClient
from geoipqa.config import HarnessConfig
from geoipqa.core.models import (
    GeoipLookup,
    IndexTemplateSpec,
    OutcomeStatus,
    PipelineSpec,
    Scenario,
    ScenarioState,
    VerificationOutcome,
)
from geoipqa.errors import CommandError, HarnessError
from geoipqa.infra.docker import ComposeManager
from geoipqa.logstash import LogstashInspector
from geoipqa.matrix import Mode, ServiceTarget, es_scenario, ls_scenario, plugin_scenario, target
from geoipqa.plugin import CommandRunner, PluginBuilder, QuickValidator, rspec_summary
from geoipqa.probe import ReadinessProber, Sleeper, wait_for_database
from geoipqa.provisioner import PipelineProvisioner
from geoipqa.reporters.matrix import MatrixReporter
from geoipqa.verifier import EnrichmentVerifier

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], SearchClient]

ES_PIPELINE = PipelineSpec(name="geoip-test", field="ip", target_field="geoip")
ES_INDEX = "geoip-test-index"

DATA_STREAM = "logs-geoip.test-default"
DATA_STREAM_PIPELINE = PipelineSpec(
    name=DATA_STREAM,
    field="source.ip",
    target_field="source.geo",
    ignore_missing=True,
    description="GeoIP enrichment pipeline for elastic_integration test",
)
DATA_STREAM_TEMPLATE = IndexTemplateSpec(
    name="logs-geoip.test",
    index_patterns=("logs-geoip.test-*",),
    pipeline=DATA_STREAM,
    priority=200,
    mappings={
        "properties": {
            "@timestamp": {"type": "date"},
            "message": {"type": "text"},
            "source": {
                "properties": {
                    "ip": {"type": "ip"},
                    "geo": {
                        "properties": {
                            "city_name": {"type": "keyword"},
                            "country_name": {"type": "keyword"},
                            "country_iso_code": {"type": "keyword"},
                            "location": {"type": "geo_point"},
                            "continent_name": {"type": "keyword"},
                            "region_name": {"type": "keyword"},
                        }
                    },
                }
            },
            "data_stream": {
                "properties": {
                    "type": {"type": "constant_keyword"},
                    "dataset": {"type": "constant_keyword"},
                    "namespace": {"type": "constant_keyword"},
                }
            },
        }
    },
)

COMPAT_PIPELINE = PipelineSpec(
    name="geoip-compat-test",
    field="ip",
    target_field="geoip_city",
    database_file="GeoLite2-City.mmdb",
    ignore_missing=True,
    description="GeoIP compatibility test pipeline",
    extra_lookups=(GeoipLookup(target_field="geoip_asn", database_file="GeoLite2-ASN.mmdb"),),
)
COMPAT_INDEX = "geoip-compat-test-index"
COMPAT_IPS = ("8.8.8.8", "1.1.1.1", "93.184.216.34", "2606:4700:4700::1111")


class HarnessRunner:
    """Run one mode of the compatibility matrix.

    Args:
        config: Harness configuration.
        results: Aggregator receiving every outcome.
        compose: Compose manager; built from the config if omitted.
        client_factory: Builds a SearchClient for a base URL.
        sleep: Sleep function for every bounded poll, replaced in tests.
    """

    def __init__(
        self,
        config: HarnessConfig,
        results: ResultAggregator,
        compose: ComposeManager | None = None,
        client_factory: ClientFactory | None = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.config = config
        self.results = results
        self.compose = compose or ComposeManager(config.compose_file, config.project_name)
        self.client_factory = client_factory or (
            lambda url: SearchClient(url, timeout=config.request_timeout)
        )
        self._sleep = sleep
        self._ready: dict[str, bool] = {}

        runner = CommandRunner(config.results_path, timeout=config.command_timeout)
        self.builder = PluginBuilder(runner, config.plugin_path, Path(config.gem_dir))

    @property
    def results_dir(self) -> Path:
        return self.config.results_path

    # -- step plumbing ---------------------------------------------------

    def _fail(self, scenario: Scenario, check: str, detail: str, artifact: str | None = None) -> None:
        self.results.record(VerificationOutcome(scenario, check, OutcomeStatus.FAILED, detail, artifact))

    def _step(self, scenario: Scenario, check: str, body: Callable[[], str]) -> bool:
        """Run a pass/fail step; ``body`` returns the pass detail or raises."""
        self.results.advance(scenario, check, ScenarioState.VERIFYING)
        try:
            detail = body()
        except CommandError as exc:
            self._fail(scenario, check, exc.message, exc.log_path)
            return False
        except HarnessError as exc:
            self._fail(scenario, check, str(exc))
            return False
        self.results.record(VerificationOutcome(scenario, check, OutcomeStatus.PASSED, detail))
        return True

    # -- plugin ----------------------------------------------------------

    def build_plugin(self) -> bool:
        scenario = plugin_scenario()
        log_name = f"build_{self.stamp}.log"

        def build() -> str:
            info = self.builder.build_info()
            logger.info(f"MaxMind GeoIP2 version: {info.geoip2_version}")
            self.builder.build(log_name)
            return "Plugin build and tests passed"

        if not self._step(scenario, "plugin-build", build):
            return False

        def gem() -> str:
            path = self.builder.build_gem(log_name)
            return f"Gem built and copied to {path.parent}/"

        self._step(scenario, "plugin-gem", gem)
        return True

    def rspec(self) -> bool:
        log_name = f"rspec_{self.stamp}.log"

        def run() -> str:
            result = self.builder.rspec(log_name)
            return rspec_summary(result.log_path) or "RSpec tests passed"

        return self._step(plugin_scenario(), "plugin-rspec", run)

    def validate(self) -> None:
        """Static validation of the plugin checkout, no containers."""
        scenario = plugin_scenario()
        validator = QuickValidator(self.config.plugin_path, scenario)
        try:
            info = self.builder.build_info()
        except HarnessError as exc:
            self._fail(scenario, "build-gradle", str(exc))
            return
        for outcome in validator.check_versions(info):
            self.results.record(outcome)

        gradle_log = f"gradle_test_{self.stamp}.log"

        def gradle_test() -> str:
            self.builder.gradle(["clean", "test"], gradle_log)
            return "Gradle tests passed"

        def gradle_vendor() -> str:
            self.builder.gradle(["vendor"], f"gradle_vendor_{self.stamp}.log")
            return "Vendor build successful"

        self._step(scenario, "gradle-test", gradle_test)
        self._step(scenario, "gradle-vendor", gradle_vendor)
        self.rspec()

        for outcome in validator.check_vendor_jars():
            self.results.record(outcome)
        self.results.record(validator.scan_deprecations(self.results_dir / gradle_log))

    # -- search engine ---------------------------------------------------

    def probe(self, tgt: ServiceTarget) -> bool:
        scenario = es_scenario(tgt.version)
        with self.client_factory(self.config.es_url(tgt.port)) as client:
            result = ReadinessProber(
                max_attempts=self.config.probe_attempts,
                interval=self.config.probe_interval,
                sleep=self._sleep,
            ).probe(client)
        self._ready[tgt.version] = result.ready
        if not result.ready:
            self._fail(
                scenario,
                "es-ready",
                f"ES {tgt.version} not ready after {result.elapsed_attempts} attempt(s)",
            )
        return result.ready

    def _verifier(self, client: SearchClient) -> EnrichmentVerifier:
        return EnrichmentVerifier(
            client,
            settle_attempts=self.config.settle_attempts,
            settle_interval=self.config.settle_interval,
            results_dir=self.results_dir,
            sleep=self._sleep,
        )

    def es_processor(self, tgt: ServiceTarget) -> None:
        """Ingest processor check: pipeline, database wait, enrich one document."""
        scenario = es_scenario(tgt.version)
        check = "es-geoip-processor"
        logger.info(f"Testing ES {tgt.version} GeoIP processor on port {tgt.port}...")
        if not self.probe(tgt):
            return

        with self.client_factory(self.config.es_url(tgt.port)) as client:
            provisioner = PipelineProvisioner(client)
            provisioner.enable_downloader()

            self.results.advance(scenario, check, ScenarioState.PROVISIONING)
            created = provisioner.provision(ES_PIPELINE)
            if not created.acknowledged:
                self._fail(scenario, check, f"Failed to create pipeline - {created.body[:300]}")
                return

            wait_for_database(
                client,
                attempts=self.config.database_wait_attempts,
                interval=self.config.database_wait_interval,
                sleep=self._sleep,
            )

            self.results.advance(scenario, check, ScenarioState.VERIFYING)
            outcome = self._verifier(client).verify(
                scenario,
                check,
                ES_INDEX,
                {"ip": self.config.test_ip, "message": "test"},
                namespace=ES_PIPELINE.target_field,
                pipeline=ES_PIPELINE.name,
            )
        self.results.record(outcome)

    def data_stream(self, tgt: ServiceTarget) -> None:
        """Data stream check: default pipeline enriches ``source.geo``."""
        scenario = es_scenario(tgt.version)
        check = "es-data-stream"
        logger.info(f"Testing data streams with GeoIP (ES {tgt.version})...")
        if not self._ready.get(tgt.version, False):
            self._fail(scenario, check, f"ES {tgt.version} not ready")
            return

        with self.client_factory(self.config.es_url(tgt.port)) as client:
            provisioner = PipelineProvisioner(client)
            self.results.advance(scenario, check, ScenarioState.PROVISIONING)
            # The template is what routes documents through the pipeline; a
            # pipeline that already exists may come back unacknowledged.
            provisioner.provision(DATA_STREAM_PIPELINE)
            template = provisioner.provision_template(DATA_STREAM_TEMPLATE)
            if not template.acknowledged:
                self._fail(scenario, check, f"Failed to create data stream template - {template.body[:300]}")
                return

            self.results.advance(scenario, check, ScenarioState.VERIFYING)
            document = {
                "@timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                "message": "Direct ES test with GeoIP",
                "source": {"ip": self.config.test_ip},
            }
            outcome = self._verifier(client).verify(
                scenario,
                check,
                DATA_STREAM,
                document,
                namespace=DATA_STREAM_PIPELINE.target_field,
            )
        self.results.record(outcome)

    # -- log shipper -----------------------------------------------------

    def logstash(self, tgt: ServiceTarget) -> None:
        scenario = ls_scenario(tgt.version)
        inspector = LogstashInspector(
            self.compose,
            self.results_dir,
            attempts=self.config.logstash_wait_attempts,
            interval=self.config.logstash_wait_interval,
            sleep=self._sleep,
        )
        self.results.advance(scenario, "ls-geoip-filter", ScenarioState.VERIFYING)
        try:
            outcome = inspector.inspect(tgt, scenario, self.stamp)
        except HarnessError as exc:
            self._fail(scenario, "ls-geoip-filter", str(exc))
            return
        self.results.record(outcome)

    def start_services(self, services: list[str]) -> bool:
        try:
            self.compose.start(services)
        except HarnessError as exc:
            logger.error(f"Could not start {', '.join(services)}: {exc}")
            return False
        return True

    # -- modes -----------------------------------------------------------

    def run(self, mode: Mode) -> ResultAggregator:
        logger.info(f"Running {mode.value} mode: {mode.description}")
        self.results_dir.mkdir(parents=True, exist_ok=True)

        self.build_plugin()
        if mode is not Mode.CROSS:
            self.rspec()
        if mode is Mode.QUICK:
            return self.results

        targets = [target(v) for v in mode.versions]
        try:
            self._run_stack(targets)
            if mode is Mode.CROSS:
                path = MatrixReporter().save(
                    self.results, self.results_dir / f"compatibility_matrix_{self.stamp}.txt"
                )
                logger.info(f"Compatibility matrix generated: {path}")
        finally:
            try:
                self.compose.stop()
            except HarnessError as exc:
                logger.warning(f"docker compose down failed: {exc}")
        return self.results

    def _run_stack(self, targets: list[ServiceTarget]) -> None:
        if not self.start_services([t.es_service for t in targets]):
            for t in targets:
                self._fail(es_scenario(t.version), "es-ready", f"ES {t.version} container failed to start")
                self._fail(ls_scenario(t.version), "ls-geoip-filter", "Stack not started")
            return

        for t in targets:
            self.es_processor(t)
        for t in targets:
            self.data_stream(t)

        if not self.start_services([t.ls_service for t in targets]):
            for t in targets:
                self._fail(ls_scenario(t.version), "ls-geoip-filter", f"LS {t.version} container failed to start")
            return

        for t in targets:
            logger.debug(f"Logstash {t.version} startup logs:\n{self.compose.logs(t.ls_service, tail=80)}")
            self.logstash(t)


def check_search_engine(
    client: SearchClient,
    results: ResultAggregator,
    settle_attempts: int = 10,
    settle_interval: float = 1.0,
    results_dir: Path | None = None,
    sleep: Sleeper = time.sleep,
) -> None:
    """Standalone ingest check against an arbitrary node.

    Provisions a city+ASN pipeline (falling back to a single default
    lookup), enriches a handful of sample addresses and cleans up the
    index and pipeline afterwards.
    """
    version = "unknown"
    try:
        version = client.version() or version
    except HarnessError as exc:
        scenario = Scenario(es_version=None, ls_version=None, label=client.base_url)
        results.record(
            VerificationOutcome(scenario, "es-connect", OutcomeStatus.FAILED, f"Cannot connect: {exc}")
        )
        return
    scenario = Scenario(es_version=version, ls_version=None, label=f"es-{version}")
    logger.info(f"Connected to Elasticsearch {version}")

    _log_stats(client)
    try:
        provisioner = PipelineProvisioner(client)
        for ip in COMPAT_IPS:
            results.advance(scenario, f"es-sample-{ip}", ScenarioState.PROVISIONING)
        created = provisioner.provision(COMPAT_PIPELINE, fallback=COMPAT_PIPELINE.simplified())
        _cleanup(client, index_only=True)

        verifier = EnrichmentVerifier(client, settle_attempts, settle_interval, results_dir, sleep)
        namespace = "geoip" if created.used_fallback else COMPAT_PIPELINE.target_field
        for ip in COMPAT_IPS:
            check = f"es-sample-{ip}"
            if not created.acknowledged:
                results.record(
                    VerificationOutcome(scenario, check, OutcomeStatus.FAILED, "Cannot create GeoIP pipeline")
                )
                continue
            results.advance(scenario, check, ScenarioState.VERIFYING)
            results.record(
                verifier.verify(
                    scenario,
                    check,
                    COMPAT_INDEX,
                    {"ip": ip, "test": True},
                    namespace=namespace,
                    pipeline=COMPAT_PIPELINE.name,
                )
            )
    finally:
        logger.info("Cleaning up test resources...")
        _cleanup(client)


def _log_stats(client: SearchClient) -> None:
    try:
        stats = client.geoip_stats()
    except HarnessError as exc:
        logger.info(f"GeoIP stats not available: {exc}")
        return
    if "databases" in stats.body:
        logger.info(f"GeoIP stats endpoint available: {stats.body[:200]}...")
    else:
        logger.info("GeoIP stats not available (may need the GeoIP downloader enabled)")


def _cleanup(client: SearchClient, index_only: bool = False) -> None:
    deletions = [lambda: client.delete_index(COMPAT_INDEX)]
    if not index_only:
        deletions.append(lambda: client.delete_pipeline(COMPAT_PIPELINE.name))
    for delete in deletions:
        try:
            delete()
        except HarnessError as exc:
            logger.warning(f"Cleanup failed: {exc}")
