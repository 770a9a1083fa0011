"""Progress channel connecting a running task to its consumer."""

from __future__ import annotations

import asyncio
import typing
from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressEvent:
    """A single human-readable progress line emitted by a task."""

    title: str
    line: str


class _Closed:
    pass


_CLOSED = _Closed()


class ProgressChannel:
    """Ordered, single-consumer channel of progress events.

    The producer side (`send`) never blocks, events are buffered until
    consumed. The channel is closed exactly once, when the owning task
    settles, which ends any `async for` over it.

    Example:
        async for event in task.progress:
            print(event.line)
    """

    def __init__(self, title: str) -> None:
        self.title = title
        self._queue: asyncio.Queue[ProgressEvent | _Closed] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: ProgressEvent) -> None:
        if self._closed:
            raise RuntimeError(f"Progress channel for '{self.title}' is closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> typing.AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> typing.AsyncIterator[ProgressEvent]:
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if isinstance(item, _Closed):
                return
            yield item
