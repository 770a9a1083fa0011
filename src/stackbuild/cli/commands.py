"""Commands of the Stackbuild CLI."""

import asyncio
import json
from pathlib import Path

import typer

from stackbuild.build import create_build_scheduler, images_from_context
from stackbuild.cli import _common
from stackbuild.cli._render import TyperProgressSink, report_failure
from stackbuild.dev import PrepareDevImagesTask
from stackbuild.exceptions import ConfigurationError
from stackbuild.scheduler import NullProgressSink, RunContext, Scheduler
from stackbuild.stack import Provider


def build(
    stack_file: Path = typer.Argument(
        ..., help="Stack descriptor file, or a directory containing stack.yaml"
    ),
    provider: Provider = typer.Option(
        None,
        "--provider",
        "-p",
        help="Target provider (default: STACKBUILD_DEFAULT_PROVIDER or 'local')",
    ),
    max_concurrency: int = typer.Option(
        None,
        "--max-concurrency",
        min=0,
        help="Maximum image builds in flight at once, 0 for unbounded",
    ),
) -> None:
    """Build container images for every compute unit of a stack.

    Examples:
        stackbuild build stack.yaml
        stackbuild build ./my-stack -p aws --max-concurrency 2
    """
    settings = _common.get_settings(max_concurrent_builds=max_concurrency)
    provider = provider or settings.default_provider
    stack = _common.load_stack_or_exit(stack_file)

    try:
        scheduler = create_build_scheduler(
            stack,
            provider,
            _common.create_daemon(settings),
            settings,
            sink=TyperProgressSink(ci=settings.ci),
        )
    except ConfigurationError as e:
        report_failure(e)
        raise typer.Exit(1)

    context = RunContext()
    _common.run_or_exit(scheduler, context)

    images = images_from_context(context)
    typer.echo("")
    typer.echo(f"Built {len(images)} image(s) for stack '{stack.name}' ({provider}):")
    for name, image in images.items():
        typer.echo(f"  {name}: {image.tag} ({image.id})")


def dev(
    stack_file: Path = typer.Argument(
        ..., help="Stack descriptor file, or a directory containing stack.yaml"
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print run targets as JSON"
    ),
) -> None:
    """Prepare dev images and print how to run each function locally."""
    settings = _common.get_settings()
    stack = _common.load_stack_or_exit(stack_file)

    task = PrepareDevImagesTask(stack, _common.create_daemon(settings))
    context = RunContext()
    # keep stdout clean for machine-readable output
    sink = NullProgressSink() if as_json else TyperProgressSink(ci=settings.ci)
    _common.run_or_exit(Scheduler([task], sink=sink), context)

    targets = context[task.title]
    if as_json:
        typer.echo(
            json.dumps(
                {name: target.model_dump() for name, target in targets.items()},
                indent=2,
            )
        )
        return

    if not targets:
        typer.echo("No functions to run.")
        return
    for name, target in targets.items():
        typer.echo(f"{name}:")
        typer.echo(f"  image:   {target.image.tag} ({target.image.id})")
        typer.echo(f"  command: {' '.join(target.cmd)}")
        for container_path, host_path in target.volumes.items():
            typer.echo(f"  volume:  {host_path} -> {container_path}")


def doctor() -> None:
    """Check that the container build daemon is reachable."""
    settings = _common.get_settings()
    daemon = _common.create_daemon(settings)

    typer.echo(f"Build daemon: {daemon.host}")
    if asyncio.run(daemon.ping()):
        typer.secho("✓ Build daemon is reachable", fg=typer.colors.GREEN)
        return

    typer.secho("✗ Build daemon is not reachable", fg=typer.colors.RED, err=True)
    typer.echo(
        "Make sure Docker (or a compatible daemon) is running, or point "
        "STACKBUILD_DOCKER_HOST at it.",
        err=True,
    )
    raise typer.Exit(1)
