"""easy-sauce CLI - run browser unit tests on Sauce Labs from the command line.

Options come from command-line flags, a config file (-c/--config) or the
"easySauce" field of package.json, with SAUCE_USERNAME and SAUCE_ACCESS_KEY
as the credential fallback. Progress and results stream to stdout; the exit
status is 0 when every platform passes and 1 otherwise.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import click
from click.core import ParameterSource

from easy_sauce.config import setup_logging
from easy_sauce.engine import EasySauce
from easy_sauce.exceptions import ConfigurationError, ExecutionError
from easy_sauce.options import normalize_flags, resolve_options
from easy_sauce.version import __version__

logger = logging.getLogger(__name__)

PROG_NAME = "easy-sauce"


@click.command(name=PROG_NAME, add_help_option=False)
@click.option("-h", "--help", is_flag=True, help="Show this message and exit.")
@click.option("-V", "--version", is_flag=True, help="Show the version and exit.")
@click.option(
    "-c",
    "--config",
    metavar="PATH",
    help="JSON or YAML file with options. Disables the package.json easySauce field.",
)
@click.option(
    "-P",
    "--platforms",
    metavar="JSON",
    help='Platforms as a JSON array, e.g. \'[["Windows 10", "chrome", "latest"]]\'.',
)
@click.option("-t", "--tests", metavar="PATH", help="Path of the test page. [default: /test/]")
@click.option("-p", "--port", metavar="PORT", help="Port to serve tests on. [default: 1337]")
@click.option("-b", "--build", metavar="ID", help="Build identifier.")
@click.option("-n", "--name", metavar="NAME", help="Job name. [default: Unit tests]")
@click.option(
    "-f",
    "--framework",
    metavar="NAME",
    help="mocha, jasmine, qunit, YUI Test or custom. [default: mocha]",
)
@click.option("-u", "--username", metavar="USER", help="Sauce Labs username. [env: SAUCE_USERNAME]")
@click.option("-k", "--key", metavar="KEY", help="Sauce Labs access key. [env: SAUCE_ACCESS_KEY]")
@click.option("-v", "--verbose", is_flag=True, help="Show detailed progress output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show results and errors.")
@click.pass_context
def cli(ctx: click.Context, **params: Any) -> None:
    """Run browser unit tests on Sauce Labs.

    Serves the current directory, opens a Sauce Connect tunnel and runs the
    test page on every configured platform.

    \b
    Examples:
      easy-sauce -P '[["Windows 10", "chrome", "latest"]]' -t /test/
      easy-sauce --config sauce.json --build 42
    """
    setup_logging()
    # Only flags given on the command line take part in option resolution
    flags = {
        name: value
        for name, value in params.items()
        if ctx.get_parameter_source(name) == ParameterSource.COMMANDLINE
    }
    dispatch(flags)


def usage_text() -> str:
    """Return the CLI help text."""
    with click.Context(cli, info_name=PROG_NAME) as ctx:
        return ctx.get_help()


def dispatch(
    flags: Mapping[str, Any],
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> None:
    """Resolve options from flags and run the tests.

    Args:
        flags: Parsed flags keyed by short or long name, e.g. {"p": 1979}.
        cwd: Directory holding package.json. Defaults to the current directory.
        environ: Environment mapping. Defaults to os.environ.

    Raises:
        SystemExit: 1 on a configuration or run error, 0 after a successful
            run. Help and version output return without exiting.
    """
    normalized = normalize_flags(flags)

    if normalized.get("help"):
        click.echo(usage_text())
        return

    if normalized.get("version"):
        click.echo(f"{PROG_NAME}, version {__version__}")
        return

    try:
        options = resolve_options(normalized, cwd=cwd, environ=environ)
    except ConfigurationError as e:
        if e.detail:
            logger.debug("Configuration error detail: %s", e.detail)
        click.echo(e.message, err=True)
        raise SystemExit(1)

    engine = EasySauce(options)
    stream = engine.run_tests_and_log_results()
    try:
        for chunk in stream:
            click.echo(chunk, nl=False)
    except ExecutionError as e:
        if e.detail:
            logger.debug("Run error detail: %s", e.detail)
        click.echo(e.message, err=True)
        raise SystemExit(1)
    except KeyboardInterrupt:
        # The worker owns the tunnel and server; let it shut them down
        click.echo("Interrupted, stopping tests...", err=True)
        engine.stop()
        raise SystemExit(1)

    raise SystemExit(0)


def main() -> None:
    """Entry point for the easy-sauce CLI."""
    cli()


if __name__ == "__main__":
    main()
