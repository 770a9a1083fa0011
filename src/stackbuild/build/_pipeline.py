"""Image build tasks.

A build packs a staged context, submits it to the build daemon and follows the
daemon's event stream until it reports an image digest or an error.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator

from stackbuild.build._archive import pack_context
from stackbuild.daemon import BuildDaemon, BuildEvent
from stackbuild.exceptions import BuildFailedError
from stackbuild.images import Image, image_tag
from stackbuild.stack import ComputeUnit, Provider
from stackbuild.task import EmitFn, Task

logger = logging.getLogger(__name__)


def normalize_message(message: str) -> str:
    """Re-join a multi-line daemon message onto a single line."""
    return " ".join(part.strip() for part in message.splitlines() if part.strip())


def strip_digest_algorithm(digest: str) -> str:
    """``sha256:deadbeef`` -> ``deadbeef``"""
    return digest.rsplit(":", 1)[-1]


async def consume_build_events(
    events: AsyncIterator[BuildEvent],
    emit: EmitFn,
) -> str:
    """Follow a build event stream to its terminal record.

    Progress records are emitted as lines. The last success marker wins.

    Returns:
        The image identifier (digest without its algorithm prefix).

    Raises:
        BuildFailedError: On an error record, or if the stream ends without a
            success marker.
    """
    digest: str | None = None
    try:
        async for event in events:
            message = event.error_message
            if message is not None:
                raise BuildFailedError(normalize_message(message))
            if event.digest:
                digest = event.digest
            for line in event.to_line().splitlines():
                if line.strip():
                    emit(line)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

    if digest is None:
        raise BuildFailedError("build finished without producing an image")
    return strip_digest_algorithm(digest)


class BuildImageTask(Task[Image]):
    """Builds the image of one compute unit from its staged context.

    Args:
        unit: The unit to build.
        stack_name: Name of the unit's stack, used for the tag.
        provider: Target provider, passed to the build as build arguments.
        context_path: The unit's staged build context.
        daemon: Build daemon to submit to.
    """

    def __init__(
        self,
        unit: ComputeUnit,
        stack_name: str,
        provider: Provider,
        context_path: Path,
        daemon: BuildDaemon,
    ) -> None:
        super().__init__(unit.name)
        self.unit = unit
        self.stack_name = stack_name
        self.provider = provider
        self.context_path = context_path
        self.daemon = daemon

    @property
    def tag(self) -> str:
        return image_tag(self.stack_name, self.provider, self.unit)

    async def do(self) -> Image:
        tag = self.tag
        self.emit(f"packing build context {self.context_path}")
        archive = await asyncio.to_thread(
            pack_context, self.context_path, self.unit.excludes
        )

        logger.debug(f"Building {tag} ({len(archive)} byte context)")
        events = self.daemon.submit(
            archive,
            build_args=self.provider.build_args(),
            tag=tag,
            dockerfile=self.unit.dockerfile,
        )
        image_id = await consume_build_events(events, self.emit)
        return Image(id=image_id, tag=tag, unit_name=self.unit.name)
