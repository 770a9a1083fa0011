"""Stackbuild CLI - Command line interface for Stackbuild.

Usage:
    stackbuild build STACK_FILE [-p provider] [--max-concurrency n]
    stackbuild dev STACK_FILE [--json]
    stackbuild doctor
    stackbuild version

Configuration:
    Set STACKBUILD_DOCKER_HOST (or DOCKER_HOST) to point at the build daemon.
    Set STACKBUILD_MAX_CONCURRENT_BUILDS to bound parallel image builds.
    Set STACKBUILD_CI=true for plain, non-interactive output.
"""

import logging
from importlib import metadata

import typer

from stackbuild.cli import _common
from stackbuild.cli.commands import build, dev, doctor

# Main CLI app
app = typer.Typer(
    name="stackbuild",
    help="Stackbuild CLI - Build container images for stacks of compute units",
    no_args_is_help=True,
)

app.command()(build)
app.command()(dev)
app.command()(doctor)


@app.command()
def version() -> None:
    """Show the Stackbuild version and the configured build daemon."""
    try:
        ver = metadata.version("stackbuild")
    except metadata.PackageNotFoundError:
        ver = "unknown"

    typer.echo(f"stackbuild {ver}")
    typer.echo(f"daemon: {_common.get_settings().docker_host}")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
) -> None:
    """Stackbuild CLI - Build container images for stacks of compute units.

    Use 'stackbuild doctor' to check that the build daemon is reachable.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()
