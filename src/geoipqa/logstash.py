"""Log shipper checks: container log inspection and a local install check."""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from geoipqa.core.models import OutcomeStatus, Scenario, VerificationOutcome
from geoipqa.errors import HarnessError, WaitTimeoutError
from geoipqa.infra.docker import ComposeManager
from geoipqa.matrix import ServiceTarget
from geoipqa.plugin import CommandRunner
from geoipqa.probe import Sleeper, poll_until
from geoipqa.verifier import UNAVAILABLE_TAG_PREFIX

logger = logging.getLogger(__name__)

PLUGIN_INSTALL_MARKER = "Installing logstash-filter-geoip"
_PIPELINE_RUNNING = re.compile(r"Pipelines running|Pipeline started")
_ERROR_LINE = re.compile(r"error|exception", re.IGNORECASE)


@dataclass
class LogReport:
    """What a log shipper container's log says about the GeoIP filter.

    Filter activity is judged from the ``json_lines`` events the container
    pipeline prints after Logstash reports its pipeline as running. Lines
    written before startup, such as the plugin install banner, do not count.
    """

    running: bool
    pipeline_running: bool
    plugin_installed: bool
    data_stream: bool
    enriched_events: int = 0
    unavailable_events: int = 0
    error_lines: list[str] = field(default_factory=list)

    @property
    def filter_active(self) -> bool:
        return self.pipeline_running and (self.enriched_events + self.unavailable_events) > 0

    @classmethod
    def from_logs(cls, logs: str, running: bool) -> LogReport:
        events = parse_events(logs)
        enriched = [e for e in events if isinstance(e.get("source"), dict) and e["source"].get("geo")]
        unavailable = [
            e
            for e in events
            if e not in enriched
            and any(isinstance(t, str) and t.startswith(UNAVAILABLE_TAG_PREFIX) for t in e.get("tags") or [])
        ]
        return cls(
            running=running,
            pipeline_running=bool(_PIPELINE_RUNNING.search(logs)),
            plugin_installed=PLUGIN_INSTALL_MARKER in logs,
            data_stream=any("data_stream" in e for e in events),
            enriched_events=len(enriched),
            unavailable_events=len(unavailable),
            error_lines=[line for line in logs.splitlines() if _ERROR_LINE.search(line)],
        )


class LogstashInspector:
    """Wait for a log shipper container to show GeoIP activity, then report.

    Args:
        compose: Compose manager used for ``docker ps`` and ``docker logs``.
        results_dir: Where the timestamped container log is saved.
        attempts: Maximum log reads while waiting for filter activity.
        interval: Seconds between reads.
        sleep: Sleep function, replaced in tests.
    """

    def __init__(
        self,
        compose: ComposeManager,
        results_dir: Path,
        attempts: int = 45,
        interval: float = 2.0,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.compose = compose
        self.results_dir = results_dir
        self.attempts = attempts
        self.interval = interval
        self._sleep = sleep

    def _read_logs(self, container: str) -> str:
        try:
            return poll_until(
                lambda: self.compose.container_logs(container),
                lambda logs: LogReport.from_logs(logs, running=True).filter_active,
                attempts=self.attempts,
                interval=self.interval,
                description=f"GeoIP filter activity in {container}",
                sleep=self._sleep,
            )
        except WaitTimeoutError as exc:
            logger.warning(str(exc))
            return exc.last_value or ""

    def inspect(self, target: ServiceTarget, scenario: Scenario, stamp: str) -> VerificationOutcome:
        logger.info(f"Testing Logstash {target.version} GeoIP filter...")
        logs = self._read_logs(target.ls_container)

        self.results_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.results_dir / f"ls{target.version}_logs_{stamp}.log"
        log_file.write_text(logs)
        logger.info(f"Full logs saved to: {log_file} ({len(logs.splitlines())} lines)")

        report = LogReport.from_logs(logs, self.compose.container_running(target.ls_container))

        if not (report.running and report.filter_active):
            for line in logs.splitlines()[-20:]:
                logger.info(f"  {line}")
            if not report.running:
                detail = "Container not running"
            elif not report.pipeline_running:
                detail = "Pipeline never reported as running"
            else:
                detail = "No GeoIP-enriched events in output"
            return VerificationOutcome(
                scenario,
                "ls-geoip-filter",
                OutcomeStatus.FAILED,
                detail,
                artifact=str(log_file),
            )

        if report.enriched_events:
            status = OutcomeStatus.PASSED
            notes = [f"GeoIP filter active ({report.enriched_events} enriched event(s))"]
        else:
            status = OutcomeStatus.SOFT_PASSED
            notes = [f"GeoIP database unavailable ({report.unavailable_events} tagged event(s))"]
        if report.plugin_installed:
            notes.append("upgraded plugin installed")
        if report.data_stream:
            notes.append("data stream fields present")
        if report.error_lines:
            logger.warning(f"LS {target.version}: Some errors in logs (check {log_file})")
            for line in report.error_lines[:10]:
                logger.warning(f"  {line}")
            notes.append(f"{len(report.error_lines)} error line(s) in log")

        return VerificationOutcome(
            scenario,
            "ls-geoip-filter",
            status,
            ", ".join(notes),
            artifact=str(log_file),
        )


# -- local install ----------------------------------------------------------


@dataclass(frozen=True)
class LocalPipeline:
    """A generator-driven Logstash pipeline exercising one filter option."""

    name: str
    lines: tuple[str, ...]
    target: str
    options: dict[str, Any]
    expect_keys: tuple[str, ...]

    def render(self) -> str:
        lines = ", ".join(json.dumps(line) for line in self.lines)
        opts = "".join(f"\n    {key} => {json.dumps(value)}" for key, value in self.options.items())
        return (
            "input {\n"
            "  generator {\n"
            f"    lines => [{lines}]\n"
            "    count => 1\n"
            "  }\n"
            "}\n\n"
            "filter {\n"
            "  geoip {\n"
            '    source => "message"\n'
            f'    target => "{self.target}"{opts}\n'
            "  }\n"
            "}\n\n"
            "output {\n"
            '  stdout { codec => json_lines }\n'
            "}\n"
        )


LOCAL_PIPELINES = (
    LocalPipeline(
        name="simple",
        lines=("8.8.8.8", "1.1.1.1", "93.184.216.34"),
        target="geoip",
        options={},
        expect_keys=("country_code2", "country_iso_code"),
    ),
    LocalPipeline(
        name="asn",
        lines=("8.8.8.8",),
        target="geoip_asn",
        options={"default_database_type": "ASN"},
        expect_keys=("asn", "autonomous_system_number", "number"),
    ),
    LocalPipeline(
        name="custom-fields",
        lines=("8.8.8.8",),
        target="geo",
        options={"fields": ["country_name", "city_name", "location"]},
        expect_keys=("country_name",),
    ),
)


def find_value(obj: Any, keys: tuple[str, ...]) -> Any:
    """Depth-first search for the first non-empty value under any of ``keys``.

    ECS-compatible output nests lookups (``geoip.geo.country_iso_code``)
    where legacy output is flat (``geoip.country_code2``).
    """
    if isinstance(obj, dict):
        for key in keys:
            if obj.get(key) not in (None, "", [], {}):
                return obj[key]
        for value in obj.values():
            found = find_value(value, keys)
            if found is not None:
                return found
    elif isinstance(obj, list):
        for item in obj:
            found = find_value(item, keys)
            if found is not None:
                return found
    return None


def parse_events(output: str) -> list[dict[str, Any]]:
    """Events from ``json_lines`` output, skipping Logstash's own log lines."""
    events = []
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict):
            events.append(event)
    return events


def classify_events(events: list[dict[str, Any]], pipeline: LocalPipeline) -> tuple[OutcomeStatus, str]:
    if not events:
        return OutcomeStatus.FAILED, "Logstash emitted no events"

    hits = [e for e in events if find_value(e.get(pipeline.target), pipeline.expect_keys) is not None]
    if hits:
        return OutcomeStatus.PASSED, f"{len(hits)}/{len(events)} event(s) enriched under {pipeline.target}"

    tags = {t for e in events for t in e.get("tags", []) or [] if isinstance(t, str)}
    unavailable = sorted(t for t in tags if t.startswith(UNAVAILABLE_TAG_PREFIX))
    if unavailable:
        return OutcomeStatus.SOFT_PASSED, f"GeoIP database unavailable ({', '.join(unavailable)})"
    tag_note = f" (tags: {', '.join(sorted(tags))})" if tags else ""
    return OutcomeStatus.FAILED, f"No {'/'.join(pipeline.expect_keys)} under {pipeline.target}{tag_note}"


class LocalLogstashCheck:
    """Run the GeoIP filter in a local Logstash install.

    Args:
        home: LOGSTASH_HOME.
        runner: Command runner; the Logstash output lands in its log dir.
    """

    def __init__(self, home: Path, runner: CommandRunner) -> None:
        self.home = home
        self.runner = runner

    @property
    def logstash(self) -> Path:
        return self.home / "bin" / "logstash"

    @property
    def plugin_tool(self) -> Path:
        return self.home / "bin" / "logstash-plugin"

    def version(self) -> str | None:
        """Version from ``versions.yml``, if the install ships one."""
        versions = self.home / "versions.yml"
        if not versions.is_file():
            return None
        data = yaml.safe_load(versions.read_text()) or {}
        value = data.get("logstash") if isinstance(data, dict) else None
        return str(value) if value is not None else None

    def installed_plugin(self) -> str | None:
        result = self.runner.run(
            [str(self.plugin_tool), "list", "--verbose", "logstash-filter-geoip"],
            self.home,
            "ls_local_plugins.log",
            check=False,
        )
        for line in result.log_path.read_text(errors="replace").splitlines():
            if "logstash-filter-geoip" in line and not line.startswith("$"):
                return line.strip()
        return None

    def install_gem(self, gem: Path) -> None:
        logger.info(f"Installing {gem.name}...")
        self.runner.run([str(self.plugin_tool), "install", str(gem)], self.home, "ls_local_install.log")
        logger.info("Plugin installed")

    def run_pipeline(self, pipeline: LocalPipeline, scenario: Scenario) -> VerificationOutcome:
        check = f"ls-local-{pipeline.name}"
        config = self.runner.results_dir / f"ls_local_{pipeline.name}.conf"
        self.runner.results_dir.mkdir(parents=True, exist_ok=True)
        config.write_text(pipeline.render())

        logger.info(f"Running Logstash with {pipeline.name} config...")
        try:
            result = self.runner.run(
                [str(self.logstash), "-f", str(config)],
                self.home,
                f"ls_local_{pipeline.name}.log",
                check=False,
            )
        except HarnessError as exc:
            return VerificationOutcome(scenario, check, OutcomeStatus.FAILED, str(exc))

        events = parse_events(result.log_path.read_text(errors="replace"))
        status, detail = classify_events(events, pipeline)
        if status is OutcomeStatus.FAILED:
            logger.warning(f"{pipeline.name}: {detail}")
            for line in result.tail(30).splitlines():
                logger.debug(f"  {line}")
        else:
            sample = find_value([e.get(pipeline.target) for e in events], pipeline.expect_keys)
            logger.info(f"  Sample {pipeline.target} value: {sample}")
        return VerificationOutcome(scenario, check, status, detail, artifact=str(result.log_path))

    def run_all(self, scenario: Scenario) -> list[VerificationOutcome]:
        return [self.run_pipeline(p, scenario) for p in LOCAL_PIPELINES]
