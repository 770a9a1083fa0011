from importlib.metadata import version

from stackbuild.build import BuildImageTask, create_build_scheduler
from stackbuild.config import StackbuildSettings, settings_provider
from stackbuild.daemon import BuildDaemon, DockerDaemon
from stackbuild.dev import PrepareDevImagesTask, RunTarget
from stackbuild.exceptions import (
    AggregateTaskError,
    BuildFailedError,
    ConfigurationError,
    DaemonUnavailableError,
    StackbuildError,
    TaskError,
)
from stackbuild.images import Image, image_tag
from stackbuild.scheduler import RunContext, RunMode, Scheduler, SchedulerTask, TaskNode
from stackbuild.stack import ComputeUnit, Provider, Stack, load_stack
from stackbuild.task import FunctionTask, Task

__version__ = version("stackbuild")


__all__ = [
    "__version__",
    "AggregateTaskError",
    "BuildDaemon",
    "BuildFailedError",
    "BuildImageTask",
    "ComputeUnit",
    "ConfigurationError",
    "create_build_scheduler",
    "DaemonUnavailableError",
    "DockerDaemon",
    "FunctionTask",
    "Image",
    "image_tag",
    "load_stack",
    "PrepareDevImagesTask",
    "Provider",
    "RunContext",
    "RunMode",
    "RunTarget",
    "Scheduler",
    "SchedulerTask",
    "settings_provider",
    "Stack",
    "StackbuildError",
    "StackbuildSettings",
    "Task",
    "TaskError",
    "TaskNode",
]
