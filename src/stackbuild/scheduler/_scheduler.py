"""Scheduler implementation.

This module contains:
- Scheduler: runs task nodes sequentially (fail-fast) or in parallel
  (isolate-and-aggregate)
- SchedulerTask: wraps a nested scheduler as a single task
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from stackbuild.exceptions import AggregateTaskError, TaskError
from stackbuild.scheduler._base import (
    NodeOutcome,
    NodeState,
    NullProgressSink,
    ProgressSink,
    RunContext,
    RunMode,
    RunSummary,
    TaskNode,
)
from stackbuild.task import Task

logger = logging.getLogger(__name__)


class Scheduler:
    """Composes tasks into a sequential or parallel run.

    Sequential mode runs nodes strictly in order; the first failure stops the
    run and is raised as is. Parallel mode starts every node without waiting,
    lets siblings finish when one fails and, once all have settled, raises an
    `AggregateTaskError` listing every failure.

    Cancelling the coroutine running `run_aio()` cancels every node in flight;
    nodes that have not started never start.

    Args:
        nodes: Tasks or TaskNodes, in order.
        mode: Sequential or parallel execution.
        sink: Receives progress lines, errors and state changes.
        max_concurrency: Maximum nodes in flight in parallel mode. None means
            unbounded.

    Example:
        scheduler = Scheduler(
            [BuildImageTask(...), BuildImageTask(...)],
            mode=RunMode.PARALLEL,
            max_concurrency=4,
        )
        summary = await scheduler.run_aio()
    """

    def __init__(
        self,
        nodes: Sequence[Task | TaskNode],
        mode: RunMode = RunMode.SEQUENTIAL,
        sink: ProgressSink | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1 or None")
        self.nodes = [TaskNode.of(item) for item in nodes]
        self.mode = mode
        self.sink: ProgressSink = sink or NullProgressSink()
        self.max_concurrency = max_concurrency

    def __repr__(self) -> str:
        return f"Scheduler(mode={self.mode}, nodes={[n.name for n in self.nodes]})"

    async def run_aio(
        self,
        context: RunContext | None = None,
        sink: ProgressSink | None = None,
    ) -> RunSummary:
        """Run all nodes.

        Args:
            context: Shared run context. A fresh one is created if omitted.
                Passing one in lets callers read results of a failed run.
            sink: Overrides the scheduler's sink for this run.

        Returns:
            RunSummary with per-node outcomes.

        Raises:
            TaskError: Sequential mode, the failing node's error.
            AggregateTaskError: Parallel mode, one or more nodes failed.
        """
        if context is None:
            context = RunContext()
        sink = sink or self.sink
        summary = RunSummary(
            mode=self.mode,
            outcomes=[
                NodeOutcome(title=node.name, collapse=node.collapse)
                for node in self.nodes
            ],
            context=context,
        )
        logger.debug(f"Starting {self!r}")

        if self.mode == RunMode.SEQUENTIAL:
            for node, outcome in zip(self.nodes, summary.outcomes):
                await self._run_node(node, outcome, context, sink)
        else:
            await self._run_parallel(summary, context, sink)
            if summary.failed:
                raise AggregateTaskError(
                    [(o.title, o.error) for o in summary.failed if o.error],
                    summary=summary,
                )

        logger.debug(f"Finished {self!r}: {len(summary.succeeded)} succeeded")
        return summary

    def run(
        self,
        context: RunContext | None = None,
        sink: ProgressSink | None = None,
    ) -> RunSummary:
        """Run all nodes from synchronous code (sync wrapper for run_aio).

        Note:
            This cannot be called from within an already running event loop,
            use `await scheduler.run_aio()` instead.
        """
        try:
            return asyncio.run(self.run_aio(context, sink))
        except RuntimeError as e:
            if "cannot be called from a running event loop" in str(e):
                raise RuntimeError(
                    "Scheduler.run() cannot be used from within an already running "
                    "event loop. Use 'await scheduler.run_aio()' instead."
                ) from e
            raise

    async def _run_parallel(
        self,
        summary: RunSummary,
        context: RunContext,
        sink: ProgressSink,
    ) -> None:
        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )

        async def guarded(node: TaskNode, outcome: NodeOutcome) -> None:
            if semaphore is None:
                await self._run_node(node, outcome, context, sink)
                return
            async with semaphore:
                await self._run_node(node, outcome, context, sink)

        results = await asyncio.gather(
            *(
                guarded(node, outcome)
                for node, outcome in zip(self.nodes, summary.outcomes)
            ),
            return_exceptions=True,
        )
        for outcome, result in zip(summary.outcomes, results):
            # Failures are recorded on the outcome, anything else escaped _run_node.
            if isinstance(result, BaseException) and outcome.error is None:
                self._fail(outcome, TaskError(outcome.title, result), sink)

    async def _run_node(
        self,
        node: TaskNode,
        outcome: NodeOutcome,
        context: RunContext,
        sink: ProgressSink,
    ) -> None:
        try:
            if node.skip is not None and node.skip(context):
                logger.debug(f"Skipping '{node.name}'")
                self._set_state(outcome, NodeState.SKIPPED, sink)
                return
            task = node.create_task(context)
        except Exception as e:
            self._set_state(outcome, NodeState.RUNNING, sink)
            raise self._fail(outcome, TaskError(node.name, e), sink) from e

        if isinstance(task, SchedulerTask):
            task.attach(context, sink)

        self._set_state(outcome, NodeState.RUNNING, sink)
        forwarder = asyncio.create_task(
            self._forward_progress(task, outcome.title, sink)
        )
        try:
            result = await task.run_aio()
        except TaskError as e:
            await self._drain(task, forwarder)
            raise self._fail(outcome, e, sink)
        except Exception as e:
            await self._drain(task, forwarder)
            raise self._fail(outcome, TaskError(node.name, e), sink) from e
        except asyncio.CancelledError as e:
            forwarder.cancel()
            self._fail(outcome, TaskError(node.name, e), sink)
            raise
        await self._drain(task, forwarder)

        context[node.key] = result
        outcome.result = result
        self._set_state(outcome, NodeState.SUCCEEDED, sink)

    @staticmethod
    async def _drain(task: Task, forwarder: asyncio.Task[None]) -> None:
        # Every progress line reaches the sink before the node's final state.
        if task.progress.closed:
            await forwarder
        else:
            forwarder.cancel()

    @staticmethod
    async def _forward_progress(task: Task, title: str, sink: ProgressSink) -> None:
        # Lines are reported under the node title, which may override the task's.
        async for event in task.progress:
            sink.on_update(title, event.line)

    @staticmethod
    def _set_state(outcome: NodeOutcome, state: NodeState, sink: ProgressSink) -> None:
        outcome.state = state
        sink.on_state(outcome.title, state, collapse=outcome.collapse)

    def _fail(
        self,
        outcome: NodeOutcome,
        error: TaskError,
        sink: ProgressSink,
    ) -> TaskError:
        logger.warning(f"Task '{outcome.title}' failed: {error.cause}")
        outcome.error = error
        sink.on_error(outcome.title, error)
        self._set_state(outcome, NodeState.FAILED, sink)
        return error


class SchedulerTask(Task[RunSummary]):
    """Runs a nested scheduler as a single task.

    The nested run's summary is this task's result, its failure (sequential
    `TaskError` or parallel `AggregateTaskError`) is this task's failure. When
    run by a parent scheduler, the nested run shares the parent's context and
    progress sink.
    """

    def __init__(self, title: str, scheduler: Scheduler) -> None:
        super().__init__(title)
        self.scheduler = scheduler
        self._context: RunContext | None = None
        self._sink: ProgressSink | None = None

    def attach(self, context: RunContext, sink: ProgressSink) -> None:
        self._context = context
        self._sink = sink

    async def do(self) -> RunSummary:
        return await self.scheduler.run_aio(self._context, self._sink)
