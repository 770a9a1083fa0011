"""Build daemon client for the Docker Engine HTTP API."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx

from stackbuild.config import DEFAULT_DOCKER_HOST, StackbuildSettings
from stackbuild.daemon._base import ArchiveT, BuildDaemon
from stackbuild.daemon._events import BuildEvent
from stackbuild.exceptions import BuildFailedError, DaemonUnavailableError

logger = logging.getLogger(__name__)

_UDS_BASE_URL = "http://docker"
_CONNECT_TIMEOUT = 10.0


def _error_detail(response: httpx.Response) -> str:
    """Extract the daemon's error message from a failed response."""
    try:
        data = response.json()
        return str(data.get("message", data))
    except (json.JSONDecodeError, ValueError):
        return response.text[:200] if response.text else f"HTTP {response.status_code}"


class DockerDaemon(BuildDaemon):
    """Talks to a Docker-compatible daemon over a unix socket or TCP.

    Args:
        host: ``unix:///path/to.sock``, ``tcp://host:port`` or an http(s) URL.
        timeout: Read timeout in seconds for streamed builds.
        transport: Custom httpx transport (e.g. ``httpx.MockTransport`` in
            tests). Overrides the transport derived from ``host``.
    """

    def __init__(
        self,
        host: str = DEFAULT_DOCKER_HOST,
        timeout: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: StackbuildSettings) -> "DockerDaemon":
        return cls(host=settings.docker_host, timeout=settings.daemon_timeout)

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.timeout, connect=_CONNECT_TIMEOUT)
        if self._transport is not None:
            return httpx.AsyncClient(
                base_url=_UDS_BASE_URL, transport=self._transport, timeout=timeout
            )
        if self.host.startswith("unix://"):
            transport = httpx.AsyncHTTPTransport(uds=self.host.removeprefix("unix://"))
            return httpx.AsyncClient(
                base_url=_UDS_BASE_URL, transport=transport, timeout=timeout
            )
        if self.host.startswith("tcp://"):
            base_url = "http://" + self.host.removeprefix("tcp://")
        else:
            base_url = self.host
        return httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def ping(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/_ping")
        except httpx.TransportError as e:
            logger.debug(f"Daemon ping to {self.host} failed: {e}")
            return False
        return response.status_code == 200

    async def submit(
        self,
        archive: ArchiveT,
        build_args: dict[str, str],
        tag: str,
        dockerfile: str | None = None,
    ) -> AsyncIterator[BuildEvent]:
        params = {"t": tag, "buildargs": json.dumps(build_args), "rm": "1"}
        if dockerfile:
            params["dockerfile"] = dockerfile
        logger.debug(f"Submitting build for {tag} to {self.host}")

        started = False
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    "/build",
                    params=params,
                    content=archive,
                    headers={"Content-Type": "application/x-tar"},
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise BuildFailedError(
                            f"Build request rejected: {_error_detail(response)}"
                        )
                    # The daemon accepted the build, later transport errors are
                    # build failures.
                    started = True
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        yield BuildEvent.model_validate_json(line)
        except httpx.TransportError as e:
            if not started:
                raise DaemonUnavailableError(self.host, str(e) or None) from e
            raise BuildFailedError(f"Lost connection to the build daemon: {e}") from e
