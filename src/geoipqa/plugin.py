"""Build, test and statically validate the logstash-filter-geoip checkout.

The build tools (gradle, bundler, rspec) are opaque collaborators: each is
run as a subprocess with its combined output written to a log file in the
results directory, and only its exit status is interpreted.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from geoipqa.core.models import OutcomeStatus, Scenario, VerificationOutcome
from geoipqa.errors import CommandError, CommandNotFoundError, ConfigValidationError

logger = logging.getLogger(__name__)

GEMSPEC = "logstash-filter-geoip.gemspec"
GEM_GLOB = "logstash-filter-geoip-*.gem"
RSPEC_PATTERN = "spec/filters/geoip*"

SUPPORTED_GEOIP2_MAJORS = ("4", "5")
SUPPORTED_JAVA = ("VERSION_11", "VERSION_17", "VERSION_21")

VENDOR_JARS = {
    "GeoIP2 JAR": "geoip2-*.jar",
    "MaxMind DB JAR": "maxmind-db-*.jar",
    "Filter JAR": "logstash-filter-geoip-*.jar",
}

REMOVED_METRO_CODE = re.compile(r"cannot find symbol.*getMetroCode")

_SEMVER = re.compile(r"\d+\.\d+\.\d+")
_JAVA_BLOCK = re.compile(r"^java\s*\{(.*?)^\}", re.MULTILINE | re.DOTALL)
_SOURCE_COMPAT = re.compile(r"sourceCompatibility.*?(VERSION_[0-9_]+)")


@dataclass(frozen=True)
class CommandResult:
    """A finished subprocess and where its output went."""

    command: list[str]
    returncode: int
    log_path: Path

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 20) -> str:
        try:
            text = self.log_path.read_text(errors="replace")
        except OSError:
            return ""
        return "\n".join(text.splitlines()[-lines:])


class CommandRunner:
    """Run external commands with output captured to a results-dir log.

    Args:
        results_dir: Directory that receives the log files.
        timeout: Seconds before a command is abandoned.
    """

    def __init__(self, results_dir: Path, timeout: float = 1800.0) -> None:
        self.results_dir = results_dir
        self.timeout = timeout

    def run(
        self,
        command: list[str],
        cwd: Path,
        log_name: str,
        append: bool = False,
        check: bool = True,
    ) -> CommandResult:
        """Run ``command`` in ``cwd``, writing stdout and stderr to ``log_name``.

        Raises:
            CommandNotFoundError: The executable does not exist.
            CommandError: The command timed out, or exited non-zero and
                ``check`` is set.
        """
        self.results_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.results_dir / log_name
        logger.debug(f"Running {' '.join(command)} in {cwd} (log: {log_path})")

        with open(log_path, "a" if append else "w") as log_file:
            log_file.write(f"$ {' '.join(command)}\n")
            log_file.flush()
            try:
                proc = subprocess.run(
                    command,
                    cwd=cwd,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    timeout=self.timeout,
                    check=False,
                )
            except FileNotFoundError as e:
                raise CommandNotFoundError(
                    f"{command[0]} not found",
                    command=command,
                    log_path=str(log_path),
                    cause=e,
                ) from e
            except subprocess.TimeoutExpired as e:
                raise CommandError(
                    f"{' '.join(command)} timed out after {self.timeout:g}s",
                    command=command,
                    log_path=str(log_path),
                    cause=e,
                ) from e

        result = CommandResult(command=command, returncode=proc.returncode, log_path=log_path)
        if check and not result.ok:
            raise CommandError(
                f"{' '.join(command)} failed (exit code: {proc.returncode}); see {log_path}",
                command=command,
                returncode=proc.returncode,
                log_path=str(log_path),
            )
        return result


@dataclass(frozen=True)
class BuildInfo:
    """Versions declared in the plugin's build.gradle."""

    geoip2_version: str | None
    maxmind_db_version: str | None
    java_compatibility: str | None


def parse_build_gradle(text: str) -> BuildInfo:
    """Pull the GeoIP2, MaxMind DB and Java versions out of build.gradle."""

    def version_of(key: str) -> str | None:
        for line in text.splitlines():
            if key in line:
                match = _SEMVER.search(line)
                return match.group(0) if match else None
        return None

    java = None
    block = _JAVA_BLOCK.search(text)
    if block:
        compat = _SOURCE_COMPAT.search(block.group(1))
        java = compat.group(1) if compat else None

    return BuildInfo(
        geoip2_version=version_of("maxmindGeoip2Version"),
        maxmind_db_version=version_of("maxmindDbVersion"),
        java_compatibility=java,
    )


class PluginBuilder:
    """Drive the plugin's gradle and bundler builds.

    Args:
        runner: Command runner that owns the log directory.
        plugin_dir: The logstash-filter-geoip checkout.
        gem_dir: Where the built gem is copied for the log shipper
            containers to install.
    """

    def __init__(self, runner: CommandRunner, plugin_dir: Path, gem_dir: Path) -> None:
        self.runner = runner
        self.plugin_dir = plugin_dir
        self.gem_dir = gem_dir

    def build_info(self) -> BuildInfo:
        gradle = self.plugin_dir / "build.gradle"
        if not gradle.is_file():
            raise ConfigValidationError(
                f"build.gradle not found in {self.plugin_dir}",
                field="plugin_dir",
                value=str(self.plugin_dir),
            )
        return parse_build_gradle(gradle.read_text())

    def build(self, log_name: str) -> CommandResult:
        """``./gradlew clean vendor test``."""
        logger.info("Building logstash-filter-geoip plugin...")
        return self.runner.run(["./gradlew", "clean", "vendor", "test"], self.plugin_dir, log_name)

    def gradle(self, tasks: list[str], log_name: str) -> CommandResult:
        return self.runner.run(["./gradlew", *tasks], self.plugin_dir, log_name)

    def build_gem(self, log_name: str) -> Path:
        """Vendor, build the gem and copy it into the gem directory.

        Returns:
            Path of the copied gem.

        Raises:
            CommandError: A build step failed or no gem was produced.
        """
        logger.info("Building gem for Docker testing...")
        self.runner.run(["bundle", "exec", "rake", "vendor"], self.plugin_dir, log_name, append=True)
        self.runner.run(["bundle", "exec", "gem", "build", GEMSPEC], self.plugin_dir, log_name, append=True)

        gems = sorted(self.plugin_dir.glob(GEM_GLOB), key=lambda p: p.stat().st_mtime, reverse=True)
        if not gems:
            raise CommandError(
                f"gem build produced no {GEM_GLOB} in {self.plugin_dir}",
                command=["bundle", "exec", "gem", "build", GEMSPEC],
            )

        self.gem_dir.mkdir(parents=True, exist_ok=True)
        for stale in self.gem_dir.glob("*.gem"):
            stale.unlink()
        target = self.gem_dir / gems[0].name
        shutil.copy2(gems[0], target)
        logger.info(f"Gem built and copied to {self.gem_dir}/")
        return target

    def rspec(self, log_name: str) -> CommandResult:
        """Run the filter's RSpec suite.

        The glob is expanded here, since the command does not go through a
        shell.
        """
        logger.info("Running RSpec tests...")
        specs = sorted(str(p.relative_to(self.plugin_dir)) for p in self.plugin_dir.glob(RSPEC_PATTERN))
        return self.runner.run(
            ["bundle", "exec", "rspec", *(specs or [RSPEC_PATTERN])],
            self.plugin_dir,
            log_name,
        )


def rspec_summary(log_path: Path) -> str | None:
    """The ``N examples, M failures`` line near the end of an RSpec log."""
    try:
        lines = log_path.read_text(errors="replace").splitlines()
    except OSError:
        return None
    for line in reversed(lines[-5:]):
        if "examples" in line:
            return line.strip()
    return None


class QuickValidator:
    """Static checks on the plugin checkout that need no containers."""

    def __init__(self, plugin_dir: Path, scenario: Scenario) -> None:
        self.plugin_dir = plugin_dir
        self.scenario = scenario

    def _outcome(self, check: str, ok: bool, detail: str, artifact: str | None = None) -> VerificationOutcome:
        status = OutcomeStatus.PASSED if ok else OutcomeStatus.FAILED
        return VerificationOutcome(self.scenario, check, status, detail, artifact)

    def check_versions(self, info: BuildInfo) -> list[VerificationOutcome]:
        logger.info(f"  GeoIP2 version: {info.geoip2_version}")
        logger.info(f"  MaxMind DB version: {info.maxmind_db_version}")
        logger.info(f"  Java compatibility: {info.java_compatibility}")

        major = (info.geoip2_version or "").split(".")[0]
        if major in SUPPORTED_GEOIP2_MAJORS:
            geoip2 = self._outcome("geoip2-version", True, f"GeoIP2 is version {major}.x")
        else:
            geoip2 = self._outcome(
                "geoip2-version", False, f"GeoIP2 version {info.geoip2_version} may be outdated"
            )

        if info.java_compatibility in SUPPORTED_JAVA:
            java = self._outcome("java-version", True, f"Java version {info.java_compatibility} is compatible")
        else:
            java = self._outcome(
                "java-version",
                False,
                f"Java version {info.java_compatibility} may not be compatible with GeoIP2 4.x+",
            )
        return [geoip2, java]

    def check_vendor_jars(self) -> list[VerificationOutcome]:
        vendor = self.plugin_dir / "vendor"
        outcomes = []
        for label, pattern in VENDOR_JARS.items():
            found = sorted(vendor.rglob(pattern)) if vendor.is_dir() else []
            check = "vendor-" + pattern.split("-*")[0]
            if found:
                outcomes.append(self._outcome(check, True, f"{label} found: {found[0].name}"))
            else:
                outcomes.append(self._outcome(check, False, f"{label} not found"))
        return outcomes

    def scan_deprecations(self, log_path: Path) -> VerificationOutcome:
        """Look for uses of API that GeoIP2 5.x removed.

        ``getMetroCode`` is deprecated from 4.3.0 and still works; only a
        compile error against it fails the check.
        """
        try:
            text = log_path.read_text(errors="replace")
        except OSError:
            text = ""

        count = sum(1 for line in text.splitlines() if "deprecated" in line)
        logger.info(f"  Deprecation mentions in build log: {count}")
        if "getMetroCode" in text:
            logger.info("Note: getMetroCode() is deprecated in GeoIP2 4.3.0+ (still functional)")

        if REMOVED_METRO_CODE.search(text):
            return self._outcome(
                "removed-api",
                False,
                "getMetroCode() removed - using GeoIP2 5.x without code update",
                artifact=str(log_path),
            )
        return self._outcome("removed-api", True, f"No removed GeoIP2 API in use ({count} deprecation mentions)")
