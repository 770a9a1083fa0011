"""Task scheduler.

Composes tasks into run graphs:
- Scheduler: sequential (fail-fast) or parallel (isolate-and-aggregate) runs
- SchedulerTask: nests a scheduler as a single task of a parent run
- TaskNode: task or lazy factory plus skip predicate and rendering hint
- RunContext / RunSummary: shared run state and per-node outcomes
- ProgressSink: protocol for renderers
"""

from stackbuild.scheduler._base import (
    LoggingProgressSink,
    NodeOutcome,
    NodeState,
    NullProgressSink,
    ProgressSink,
    RunContext,
    RunMode,
    RunSummary,
    SkipPredicate,
    TaskFactory,
    TaskNode,
)
from stackbuild.scheduler._scheduler import Scheduler, SchedulerTask

__all__ = [
    "LoggingProgressSink",
    "NodeOutcome",
    "NodeState",
    "NullProgressSink",
    "ProgressSink",
    "RunContext",
    "RunMode",
    "RunSummary",
    "Scheduler",
    "SchedulerTask",
    "SkipPredicate",
    "TaskFactory",
    "TaskNode",
]
