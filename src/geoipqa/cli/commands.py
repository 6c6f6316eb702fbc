"""CLI commands for geoipqa."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from geoipqa.aggregator import ResultAggregator
from geoipqa.cli.output import CLIOutput
from geoipqa.client import SearchClient
from geoipqa.config import HarnessConfig, load_config
from geoipqa.core.models import Scenario
from geoipqa.errors import HarnessError
from geoipqa.geodb import DatabaseLibraryCheck, find_test_databases
from geoipqa.logstash import LocalLogstashCheck
from geoipqa.matrix import VERSION_ALIASES, VERSIONS, Mode, target
from geoipqa.plugin import CommandRunner, PluginBuilder
from geoipqa.probe import ReadinessProber
from geoipqa.reporters import REPORTERS
from geoipqa.runner import HarnessRunner, check_search_engine

logger = logging.getLogger(__name__)

MODE_CHOICES = [m.value for m in Mode] + list(VERSION_ALIASES)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


report_option = click.option(
    "--report",
    "-r",
    "report_formats",
    type=click.Choice(sorted(REPORTERS)),
    multiple=True,
    help="Also write a report in this format to the results directory",
)


def _finish(ctx: click.Context, results: ResultAggregator, report_formats: tuple[str, ...], name: str) -> None:
    """Print the summary, write requested reports and exit with the run status."""
    config: HarnessConfig = ctx.obj["config"]
    output: CLIOutput = ctx.obj["output"]

    output.outcomes(results.outcomes)
    results.print_summary(output.console)
    for fmt in report_formats:
        reporter = REPORTERS[fmt]()
        path = config.results_path / f"{name}{reporter.file_extension}"
        reporter.save(results, path)
        output.info(f"{fmt} report saved to {path}")
    output.info(f"Results saved to: {config.results_path}")
    sys.exit(results.exit_code)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """geoipqa - GeoIP filter compatibility harness for ES/LS 8.19 and 9.3."""
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except HarnessError as e:
        click.echo(e.format_verbose(), err=True)
        sys.exit(2)
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(2)
    if verbose:
        config_obj.verbose = True

    ctx.obj["config"] = config_obj
    ctx.obj["verbose"] = verbose
    ctx.obj["output"] = CLIOutput()

    setup_logging(config_obj.verbose)


@cli.command()
@click.argument("mode", type=click.Choice(MODE_CHOICES), default="quick")
@report_option
@click.pass_context
def run(ctx: click.Context, mode: str, report_formats: tuple[str, ...]) -> None:
    """Run the compatibility tests for MODE.

    \b
    Modes:
      quick - Build and run unit tests only (no Docker)
      8.19  - Full test with ES/LS 8.19 (includes elastic_integration + data streams)
      9.3   - Full test with ES/LS 9.3 (includes elastic_integration + data streams)
      cross - Cross-version compatibility tests (all Docker services)
    """
    config: HarnessConfig = ctx.obj["config"]
    output: CLIOutput = ctx.obj["output"]
    selected = Mode.parse(mode)

    output.banner(
        "GeoIP Compatibility Test Suite",
        f"Mode: {selected.value} ({selected.description})",
        f"Plugin Dir: {config.plugin_path}",
        f"Results Dir: {config.results_path}",
    )
    results = ResultAggregator()
    runner = HarnessRunner(config, results)
    runner.run(selected)
    _finish(ctx, results, report_formats, f"report_{selected.value}_{runner.stamp}")


@cli.command()
@report_option
@click.pass_context
def validate(ctx: click.Context, report_formats: tuple[str, ...]) -> None:
    """Quick validation of the plugin checkout, without Docker."""
    config: HarnessConfig = ctx.obj["config"]
    ctx.obj["output"].banner("GeoIP Filter Quick Validation", f"Plugin Dir: {config.plugin_path}")

    results = ResultAggregator()
    runner = HarnessRunner(config, results)
    runner.validate()
    _finish(ctx, results, report_formats, f"validate_{runner.stamp}")


@cli.command()
@click.option("--version", "version", type=click.Choice(list(VERSIONS) + list(VERSION_ALIASES)), help="Matrix version")
@click.option("--port", "-p", type=int, help="Port to probe (overrides --version)")
@click.pass_context
def probe(ctx: click.Context, version: str | None, port: int | None) -> None:
    """Wait for a search engine node to report cluster health."""
    config: HarnessConfig = ctx.obj["config"]
    output: CLIOutput = ctx.obj["output"]
    if port is None:
        port = target(version or VERSIONS[0]).port

    url = config.es_url(port)
    prober = ReadinessProber(max_attempts=config.probe_attempts, interval=config.probe_interval)
    with SearchClient(url, timeout=config.request_timeout) as client:
        result = prober.probe(client)

    if result.ready:
        output.console.print(f"[green][PASS][/green] {url} ready after {result.elapsed_attempts} attempt(s)")
        sys.exit(0)
    output.error(f"{url} not ready after {result.elapsed_attempts} attempt(s)")
    sys.exit(1)


@cli.command("check-es")
@click.argument("host", default="localhost")
@click.argument("port", type=int, default=9200)
@report_option
@click.pass_context
def check_es(ctx: click.Context, host: str, port: int, report_formats: tuple[str, ...]) -> None:
    """Test the GeoIP ingest processor on the node at HOST:PORT."""
    config: HarnessConfig = ctx.obj["config"]
    url = f"http://{host}:{port}"
    ctx.obj["output"].banner("Elasticsearch GeoIP Processor Test", f"Target: {url}")

    results = ResultAggregator()
    with SearchClient(url, timeout=config.request_timeout) as client:
        check_search_engine(
            client,
            results,
            settle_attempts=config.settle_attempts,
            settle_interval=config.settle_interval,
            results_dir=config.results_path,
        )
    _finish(ctx, results, report_formats, f"check_es_{host}_{port}")


@cli.command("check-ls")
@click.argument("logstash_home", type=click.Path(file_okay=False, path_type=Path), default=Path.home() / "logstash")
@click.option("--install-gem", is_flag=True, help="Build the plugin gem and install it first")
@report_option
@click.pass_context
def check_ls(ctx: click.Context, logstash_home: Path, install_gem: bool, report_formats: tuple[str, ...]) -> None:
    """Run the GeoIP filter in a local Logstash install at LOGSTASH_HOME."""
    config: HarnessConfig = ctx.obj["config"]
    output: CLIOutput = ctx.obj["output"]
    output.banner("Logstash GeoIP Filter Test", f"Logstash: {logstash_home}")

    if not logstash_home.is_dir():
        output.error(f"Logstash not found at {logstash_home}")
        sys.exit(1)

    runner = CommandRunner(config.results_path, timeout=config.command_timeout)
    check = LocalLogstashCheck(logstash_home, runner)
    version = check.version()
    output.info(f"Logstash version: {version}")
    try:
        output.info(f"Installed: {check.installed_plugin()}")
    except HarnessError as e:
        output.warn(f"Could not list installed plugins: {e}")

    scenario = Scenario(es_version=None, ls_version=version, label="ls-local")
    results = ResultAggregator()
    if install_gem:
        builder = PluginBuilder(runner, config.plugin_path, Path(config.gem_dir))
        try:
            check.install_gem(builder.build_gem("ls_local_gem.log"))
        except HarnessError as e:
            output.error(f"Plugin install failed: {e}")
            sys.exit(1)

    for outcome in check.run_all(scenario):
        results.record(outcome)
    _finish(ctx, results, report_formats, "check_ls")


@cli.command()
@click.option(
    "--db-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory of MaxMind test databases",
)
@report_option
@click.pass_context
def geodb(ctx: click.Context, db_dir: Path | None, report_formats: tuple[str, ...]) -> None:
    """Exercise the MaxMind reader library against test databases."""
    config: HarnessConfig = ctx.obj["config"]
    ctx.obj["output"].banner("GeoIP Library Compatibility Test")

    base = find_test_databases(config.plugin_path, extra=(db_dir,) if db_dir else ())
    results = ResultAggregator()
    for outcome in DatabaseLibraryCheck(Scenario(None, None, "geodb")).run(base):
        results.record(outcome)
    _finish(ctx, results, report_formats, "geodb")
