"""Preparation of local development images and run targets."""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from stackbuild.build import consume_build_events, pack_files
from stackbuild.daemon import BuildDaemon
from stackbuild.exceptions import ConfigurationError
from stackbuild.images import Image
from stackbuild.runtimes import DEV_MOUNT, RUNTIME_FAMILIES, RuntimeFamily, family_for
from stackbuild.stack import ComputeUnit, Provider, Stack, UnitKind
from stackbuild.task import Task

logger = logging.getLogger(__name__)


class RunTarget(BaseModel):
    """How to run one compute unit in dev mode.

    Attributes:
        cmd: Container command, a watch process restarting the handler on change.
        volumes: Container path -> host path. The unit's source context is
            mounted read-write so edits are picked up live.
        image: The shared dev image of the unit's runtime family.
    """

    model_config = ConfigDict(frozen=True)

    cmd: list[str]
    volumes: dict[str, str]
    image: Image


def partition_units(
    units: Iterable[ComputeUnit],
) -> dict[RuntimeFamily, list[ComputeUnit]]:
    """Group function units by runtime family.

    Families without members are absent from the result. Non-function units
    are ignored.

    Raises:
        ConfigurationError: If a function's handler type has no runtime family.
    """
    groups: dict[RuntimeFamily, list[ComputeUnit]] = {}
    for unit in units:
        if unit.kind != UnitKind.FUNCTION:
            continue
        family = family_for(unit)
        if family is None:
            raise ConfigurationError(
                f"function '{unit.name}' has unsupported handler '{unit.handler}'"
            )
        groups.setdefault(family, []).append(unit)
    # stable family order regardless of unit order
    return {f: groups[f] for f in RUNTIME_FAMILIES if f in groups}


class PrepareDevImagesTask(Task[dict[str, RunTarget]]):
    """Builds one shared dev image per runtime family in use and computes the
    run target of every function unit.

    The result maps unit names to run targets. If any shared image fails to
    build the whole task fails and no run targets are returned.

    Args:
        stack: The stack to prepare.
        daemon: Build daemon for the dev images.
        provider: Provider passed to the dev image builds as build arguments.
    """

    def __init__(
        self,
        stack: Stack,
        daemon: BuildDaemon,
        provider: Provider = Provider.LOCAL,
    ) -> None:
        super().__init__("Preparing dev images")
        self.stack = stack
        self.daemon = daemon
        self.provider = provider

    async def build_family_image(self, family: RuntimeFamily) -> str:
        """Build the shared dev image of a family and return its id."""
        self.emit(f"building {family.dev_tag}")
        archive = pack_files({"Dockerfile": family.dev_dockerfile()})
        events = self.daemon.submit(
            archive,
            build_args=self.provider.build_args(),
            tag=family.dev_tag,
        )
        return await consume_build_events(events, self.emit)

    async def do(self) -> dict[str, RunTarget]:
        groups = partition_units(self.stack.units)
        if not groups:
            logger.info(f"Stack '{self.stack.name}' has no functions to prepare")
            return {}

        contexts = {
            unit.name: self.stack.context_path(unit)
            for units in groups.values()
            for unit in units
        }
        targets: dict[str, RunTarget] = {}
        for family, units in groups.items():
            image_id = await self.build_family_image(family)
            for unit in units:
                assert unit.handler is not None
                targets[unit.name] = RunTarget(
                    cmd=family.dev_command(unit.handler),
                    volumes={DEV_MOUNT: str(contexts[unit.name])},
                    image=Image(id=image_id, tag=family.dev_tag, unit_name=unit.name),
                )
            logger.debug(
                f"Dev image {family.dev_tag} ready for {', '.join(u.name for u in units)}"
            )
        return targets
