"""Main entry point for the freightline CLI.

Commands:
    freightline promote: Promote a specific Freight into a Stage
    freightline promote-downstream: Fan Freight out to downstream Stages
    freightline promote-subscribers: Fan Freight out to legacy subscribers
    freightline reverify: Request re-verification of a Stage's current Freight
    freightline abort-verification: Request abort of a running verification
    freightline available: List Freight admissible to a Stage

Example:
    $ freightline --help
    $ freightline --config freightline.yaml promote prod -p shop --freight 3f1c0a2
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from freightline.cli.promote import (
    promote_command,
    promote_downstream_command,
    promote_subscribers_command,
)
from freightline.cli.stage import (
    abort_verification_command,
    available_command,
    reverify_command,
)
from freightline.cli.utils import ExitCode, error
from freightline.config import ConfigError, load_config
from freightline.telemetry import configure_logging, ensure_telemetry_initialized


def _get_version() -> str:
    """Get the freightline package version, or 'unknown' if not installed."""
    try:
        return get_version("freightline")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="freightline",
    help="freightline - Freight promotion across delivery pipeline Stages.",
    epilog="Use 'freightline <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="freightline",
    message="%(prog)s %(version)s",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    envvar="FREIGHTLINE_CONFIG",
    help="Path to freightline.yaml.",
)
@click.option(
    "--log-level",
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """Root command group for the freightline CLI."""
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config(config_path)
        except ConfigError as e:
            error(str(e))
            ctx.exit(e.exit_code)
    config = obj["config"]

    try:
        configure_logging(
            log_level=log_level or config.logging.level,
            json_output=config.logging.json_output,
        )
    except ValueError as e:
        error(str(e))
        ctx.exit(int(ExitCode.USAGE_ERROR))
    ensure_telemetry_initialized()


cli.add_command(promote_command)
cli.add_command(promote_downstream_command)
cli.add_command(promote_subscribers_command)
cli.add_command(reverify_command)
cli.add_command(abort_verification_command)
cli.add_command(available_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the freightline CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        result = cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(int(ExitCode.GENERAL_ERROR))
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(int(ExitCode.GENERAL_ERROR))
    if isinstance(result, int) and result != 0:
        sys.exit(result)


if __name__ == "__main__":
    main()
