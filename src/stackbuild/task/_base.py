"""The Task abstraction: a single-attempt unit of observable async work."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Awaitable, Callable, Generic, TypeVar

from stackbuild.exceptions import TaskError
from stackbuild.task._channel import ProgressChannel, ProgressEvent

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

EmitFn = Callable[[str], None]


class TaskState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Task(ABC, Generic[ResultT]):
    """Base class for all tasks.

    Subclasses implement `do()`. Constructors must not perform I/O, so that
    run graphs can be planned before anything executes; all I/O happens in
    `do()`.

    A task is single use: it runs at most once and never retries. To retry,
    construct a new instance.

    Progress is published on `progress`, a `ProgressChannel` that is closed
    when the task settles.
    """

    def __init__(self, title: str) -> None:
        self.title = title
        self.state = TaskState.PENDING
        self.progress = ProgressChannel(title)
        self._result: ResultT | None = None
        self._error: BaseException | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(title={self.title!r}, state={self.state})"

    @abstractmethod
    async def do(self) -> ResultT:
        """Perform the task's operation and return its result."""
        ...

    @property
    def done(self) -> bool:
        return self.state in (TaskState.SUCCEEDED, TaskState.FAILED)

    @property
    def result(self) -> ResultT:
        """The task's result.

        Raises:
            RuntimeError: If the task has not succeeded.
        """
        if self.state != TaskState.SUCCEEDED:
            raise RuntimeError(f"Task '{self.title}' has no result ({self.state})")
        return self._result  # type: ignore[return-value]

    @property
    def error(self) -> BaseException | None:
        return self._error

    def emit(self, line: str) -> None:
        """Publish a progress line.

        Raises:
            RuntimeError: If called while the task is not running.
        """
        if self.state != TaskState.RUNNING:
            raise RuntimeError(
                f"Task '{self.title}' cannot emit progress while {self.state}"
            )
        self.progress.send(ProgressEvent(self.title, line))

    async def run_aio(self) -> ResultT:
        """Run the task.

        Returns:
            The value returned by `do()`.

        Raises:
            TaskError: Wrapping any exception raised by `do()`.
            RuntimeError: If the task was already run.
        """
        if self.state != TaskState.PENDING:
            raise RuntimeError(
                f"Task '{self.title}' was already run ({self.state}), tasks are "
                "single use"
            )

        self.state = TaskState.RUNNING
        try:
            result = await self.do()
        except asyncio.CancelledError as e:
            self.state = TaskState.FAILED
            self._error = e
            raise
        except Exception as e:
            self.state = TaskState.FAILED
            self._error = TaskError(self.title, e)
            logger.debug(f"Task '{self.title}' failed: {e}")
            raise self._error from e
        finally:
            self.progress.close()

        self._result = result
        self.state = TaskState.SUCCEEDED
        return result

    def run(self) -> ResultT:
        """Run the task from synchronous code (sync wrapper for run_aio).

        Note:
            This cannot be called from within a running event loop, use
            `await task.run_aio()` instead.
        """
        return asyncio.run(self.run_aio())


class FunctionTask(Task[ResultT]):
    """Task wrapping an async callable.

    The callable receives the task's `emit` function.

    Example:
        async def install(emit):
            emit("installing")
            return True

        task = FunctionTask("Install plugin", install)
    """

    def __init__(
        self,
        title: str,
        fn: Callable[[EmitFn], Awaitable[ResultT]],
    ) -> None:
        super().__init__(title)
        self._fn = fn

    async def do(self) -> ResultT:
        return await self._fn(self.emit)
