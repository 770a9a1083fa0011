"""Container build daemon clients.

- BuildDaemon: interface submitting a context archive and streaming events
- DockerDaemon: Docker Engine API client over httpx
- BuildEvent: one record of the daemon's build stream
"""

from stackbuild.daemon._base import ArchiveT, BuildDaemon
from stackbuild.daemon._docker import DockerDaemon
from stackbuild.daemon._events import BuildEvent, ErrorDetail

__all__ = [
    "ArchiveT",
    "BuildDaemon",
    "BuildEvent",
    "DockerDaemon",
    "ErrorDetail",
]
