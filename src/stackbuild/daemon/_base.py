"""Build daemon interface."""

from __future__ import annotations

import abc
from typing import AsyncIterable, AsyncIterator

from stackbuild.daemon._events import BuildEvent

ArchiveT = bytes | AsyncIterable[bytes]


class BuildDaemon(metaclass=abc.ABCMeta):
    """Abstract base class for container build daemons.

    Implementations submit a build context archive and stream back the
    daemon's build events. The stream yields progress records and a terminal
    success or error record.
    """

    host: str | None = None

    @abc.abstractmethod
    def submit(
        self,
        archive: ArchiveT,
        build_args: dict[str, str],
        tag: str,
        dockerfile: str | None = None,
    ) -> AsyncIterator[BuildEvent]:
        """Submit a build.

        Args:
            archive: Tar archive of the build context.
            build_args: Build arguments passed to the Dockerfile.
            tag: Tag to apply to the produced image.
            dockerfile: Dockerfile path inside the archive, if not the default.

        Returns:
            Async iterator over build events.

        Raises:
            DaemonUnavailableError: If the daemon cannot be reached before any
                event is produced.
        """
        ...

    async def ping(self) -> bool:
        """Return True if the daemon is reachable."""
        return True
