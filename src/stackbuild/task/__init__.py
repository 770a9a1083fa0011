"""Task abstraction.

- Task: abstract single-attempt unit of async work with progress events
- FunctionTask: Task wrapping an async callable
- ProgressChannel / ProgressEvent: the task's progress stream
"""

from stackbuild.task._base import EmitFn, FunctionTask, Task, TaskState
from stackbuild.task._channel import ProgressChannel, ProgressEvent

__all__ = [
    "EmitFn",
    "FunctionTask",
    "ProgressChannel",
    "ProgressEvent",
    "Task",
    "TaskState",
]
