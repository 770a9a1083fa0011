"""Helpers shared by CLI commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from stackbuild.cli._render import report_failure
from stackbuild.config import StackbuildSettings, settings_provider
from stackbuild.daemon import BuildDaemon, DockerDaemon
from stackbuild.exceptions import StackbuildError
from stackbuild.scheduler import RunContext, RunSummary, Scheduler
from stackbuild.stack import Stack, load_stack

logger = logging.getLogger(__name__)


def get_settings(**overrides) -> StackbuildSettings:
    settings = settings_provider.get()
    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def create_daemon(settings: StackbuildSettings) -> BuildDaemon:
    return DockerDaemon.from_settings(settings)


def load_stack_or_exit(path: Path) -> Stack:
    try:
        return load_stack(path)
    except StackbuildError as e:
        report_failure(e)
        raise typer.Exit(1)


def run_or_exit(scheduler: Scheduler, context: RunContext) -> RunSummary:
    """Run a root scheduler, rendering any failure and exiting with status 1."""
    try:
        return asyncio.run(scheduler.run_aio(context))
    except StackbuildError as e:
        logger.debug(f"Run failed: {e!r}")
        report_failure(e)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        typer.secho("Interrupted, in-flight builds were cancelled.", err=True)
        raise typer.Exit(130)
