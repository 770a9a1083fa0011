"""Data structures and interfaces for the task scheduler.

This module contains:
- Run configuration: RunMode
- Node planning and state: TaskNode, NodeState, NodeOutcome
- Run state: RunContext, RunSummary
- Progress sink protocol: ProgressSink, NullProgressSink, LoggingProgressSink
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Protocol

from stackbuild.task import Task

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


class RunMode(StrEnum):
    """How the nodes of one scheduler are executed.

    Attributes:
        SEQUENTIAL: Strictly in list order, stop at the first failure.
        PARALLEL: All at once, failures are isolated and aggregated.
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class NodeState(StrEnum):
    PLANNED = "planned"
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (NodeState.SKIPPED, NodeState.SUCCEEDED, NodeState.FAILED)


class RunContext(dict[str, Any]):
    """Key-value bag shared by all nodes of one scheduler invocation.

    Successful node results are stored here under the node's context key.
    Concurrent siblings must write disjoint keys; there is no locking.
    """

    pass


TaskFactory = Callable[[RunContext], Task]
SkipPredicate = Callable[[RunContext], bool]


@dataclass
class TaskNode:
    """A scheduler entry pairing a task (or a lazy factory) with run hints.

    Attributes:
        task: The task to run. Mutually exclusive with `factory`.
        factory: Produces the task from the run context right before the node
            starts. Mutually exclusive with `task`.
        title: Display title, defaults to the task's title. Required with a
            factory.
        skip: Evaluated against the run context immediately before the node
            would start. When it returns True the node is skipped.
        context_key: Key the result is stored under, defaults to the title.
        collapse: Rendering hint, whether a renderer should collapse the node's
            output once it settles.
    """

    task: Task | None = None
    factory: TaskFactory | None = None
    title: str | None = None
    skip: SkipPredicate | None = None
    context_key: str | None = None
    collapse: bool = True

    def __post_init__(self) -> None:
        if (self.task is None) == (self.factory is None):
            raise ValueError("TaskNode needs exactly one of 'task' or 'factory'")
        if self.title is None:
            if self.task is None:
                raise ValueError("TaskNode with a factory needs a 'title'")
            self.title = self.task.title

    @property
    def key(self) -> str:
        return self.context_key or self.name

    @property
    def name(self) -> str:
        assert self.title is not None
        return self.title

    def create_task(self, context: RunContext) -> Task:
        if self.task is not None:
            return self.task
        assert self.factory is not None
        return self.factory(context)

    @classmethod
    def of(cls, item: "Task | TaskNode") -> "TaskNode":
        if isinstance(item, TaskNode):
            return item
        return cls(task=item)


@dataclass
class NodeOutcome:
    """Final (or current) state of one node in a run."""

    title: str
    state: NodeState = NodeState.PLANNED
    result: Any = None
    error: BaseException | None = None
    collapse: bool = True


@dataclass
class RunSummary:
    """Summary of a scheduler run."""

    mode: RunMode
    outcomes: list[NodeOutcome] = field(default_factory=list)
    context: RunContext = field(default_factory=RunContext)

    def _with_state(self, state: NodeState) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.state == state]

    @property
    def succeeded(self) -> list[NodeOutcome]:
        return self._with_state(NodeState.SUCCEEDED)

    @property
    def failed(self) -> list[NodeOutcome]:
        return self._with_state(NodeState.FAILED)

    @property
    def skipped(self) -> list[NodeOutcome]:
        return self._with_state(NodeState.SKIPPED)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def results(self) -> dict[str, Any]:
        """Results of succeeded nodes keyed by title."""
        return {o.title: o.result for o in self.succeeded}

    def __repr__(self) -> str:
        """Return a human-readable summary of the run."""
        status_icon = "✓" if self.ok else "✗"
        lines = [
            f"Run {'SUCCESS' if self.ok else 'FAILURE'} {status_icon} ({self.mode})",
            f"  Succeeded: {len(self.succeeded)}",
            f"  Failed: {len(self.failed)}",
            f"  Skipped: {len(self.skipped)}",
        ]
        planned = self._with_state(NodeState.PLANNED)
        if planned:
            lines.append(f"  Not started: {len(planned)}")
        for outcome in self.failed:
            lines.append(f"  Error in {outcome.title}: {outcome.error}")
        return "\n".join(lines)


# =============================================================================
# Progress Sink Protocol
# =============================================================================


class ProgressSink(Protocol):
    """Receives structured progress from a scheduler.

    Implementations render (terminal, logs, ...). The scheduler never formats
    for a terminal itself.
    """

    def on_update(self, title: str, line: str) -> None:
        """A running task emitted a progress line."""
        ...

    def on_error(self, title: str, error: BaseException) -> None:
        """A task failed."""
        ...

    def on_state(self, title: str, state: NodeState, collapse: bool = True) -> None:
        """A node changed state.

        `collapse` carries the node's rendering hint: when True a renderer may
        hide the node's progress lines once it settles.
        """
        ...


class NullProgressSink:
    """Sink that discards everything."""

    def on_update(self, title: str, line: str) -> None:
        pass

    def on_error(self, title: str, error: BaseException) -> None:
        pass

    def on_state(self, title: str, state: NodeState, collapse: bool = True) -> None:
        pass


class LoggingProgressSink:
    """Sink that forwards progress to a logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def on_update(self, title: str, line: str) -> None:
        self.log.info(f"[{title}] {line}")

    def on_error(self, title: str, error: BaseException) -> None:
        self.log.error(f"[{title}] failed: {error}")

    def on_state(self, title: str, state: NodeState, collapse: bool = True) -> None:
        self.log.debug(f"[{title}] {state}")
