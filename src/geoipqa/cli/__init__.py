"""geoipqa CLI - Command line interface for geoipqa."""

from geoipqa.cli.commands import cli
from geoipqa.cli.output import CLIOutput


def main() -> None:
    """Main entry point for the geoipqa CLI."""
    cli()


__all__ = ["main", "cli", "CLIOutput"]
