"""Planning of stack builds into scheduler graphs."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from stackbuild.build._pipeline import BuildImageTask
from stackbuild.build._staging import STAGED_CONTEXTS_KEY, StageStackTask, Stager
from stackbuild.config import StackbuildSettings
from stackbuild.daemon import BuildDaemon
from stackbuild.exceptions import ConfigurationError
from stackbuild.images import Image, check_tag_collisions
from stackbuild.runtimes import RUNTIME_FAMILIES, family_for
from stackbuild.scheduler import (
    ProgressSink,
    RunContext,
    RunMode,
    Scheduler,
    SchedulerTask,
    TaskNode,
)
from stackbuild.stack import ComputeUnit, Provider, Stack, UnitKind

logger = logging.getLogger(__name__)

BUILD_GROUP_TITLE = "Building compute units"
IMAGE_KEY_PREFIX = "image:"


def image_key(unit_name: str) -> str:
    return f"{IMAGE_KEY_PREFIX}{unit_name}"


def images_from_context(context: Mapping[str, Any]) -> dict[str, Image]:
    """Collect the images built so far from a run context, keyed by unit name."""
    return {
        key.removeprefix(IMAGE_KEY_PREFIX): value
        for key, value in context.items()
        if key.startswith(IMAGE_KEY_PREFIX) and isinstance(value, Image)
    }


def validate_units(stack: Stack, provider: Provider, units: list[ComputeUnit]) -> None:
    """Check a build plan before anything runs.

    Raises:
        ConfigurationError: If a context directory is missing, a function's
            runtime is unsupported, or two units share a tag.
    """
    for unit in units:
        stack.context_path(unit)
        if unit.kind == UnitKind.FUNCTION and family_for(unit) is None:
            supported = ", ".join(s for f in RUNTIME_FAMILIES for s in f.suffixes)
            raise ConfigurationError(
                f"function '{unit.name}' has unsupported handler '{unit.handler}'. "
                f"Supported handler types: {supported}"
            )
    check_tag_collisions(stack.name, provider, units)


def _build_node(
    stack: Stack,
    unit: ComputeUnit,
    provider: Provider,
    daemon: BuildDaemon,
) -> TaskNode:
    def factory(context: RunContext) -> BuildImageTask:
        return BuildImageTask(
            unit=unit,
            stack_name=stack.name,
            provider=provider,
            context_path=context[STAGED_CONTEXTS_KEY][unit.name],
            daemon=daemon,
        )

    return TaskNode(
        factory=factory,
        title=unit.name,
        context_key=image_key(unit.name),
        collapse=False,
    )


def create_build_scheduler(
    stack: Stack,
    provider: Provider,
    daemon: BuildDaemon,
    settings: StackbuildSettings,
    sink: ProgressSink | None = None,
    units: list[ComputeUnit] | None = None,
    stager: Stager | None = None,
) -> Scheduler:
    """Plan the build of a stack's compute units.

    The plan is a sequential scheduler: stage every unit, then build all images
    in parallel (bounded by ``settings.max_concurrent_builds``). Staging is
    skipped when the run context already holds staged contexts.

    Args:
        stack: The stack to build.
        provider: Target provider.
        daemon: Build daemon for image builds.
        settings: Stackbuild settings.
        sink: Progress sink for the whole run.
        units: Subset of units to build, defaults to all of them.
        stager: Staging collaborator, defaults to one under
            ``settings.staging_dir``.

    Raises:
        ConfigurationError: If the plan is invalid (see `validate_units`).
    """
    units = list(stack.units) if units is None else units
    validate_units(stack, provider, units)
    stager = stager or Stager(stack, settings.staging_dir)

    builds = Scheduler(
        [_build_node(stack, unit, provider, daemon) for unit in units],
        mode=RunMode.PARALLEL,
        max_concurrency=settings.build_concurrency,
    )
    logger.debug(
        f"Planned {len(units)} build(s) for stack '{stack.name}' ({provider}), "
        f"concurrency {settings.build_concurrency or 'unbounded'}"
    )
    return Scheduler(
        [
            TaskNode(
                task=StageStackTask(stager, units),
                context_key=STAGED_CONTEXTS_KEY,
                skip=lambda context: STAGED_CONTEXTS_KEY in context,
            ),
            TaskNode(task=SchedulerTask(BUILD_GROUP_TITLE, builds), collapse=False),
        ],
        mode=RunMode.SEQUENTIAL,
        sink=sink,
    )
