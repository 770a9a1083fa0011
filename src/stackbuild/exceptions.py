"""Stackbuild exceptions.

This module provides the exception taxonomy for planning, building and
scheduling, with clear error messages that can be propagated to CLI output.
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from stackbuild.scheduler import RunSummary


class StackbuildError(Exception):
    """Base exception for all Stackbuild errors."""

    pass


class ConfigurationError(StackbuildError):
    """The stack or the build plan is invalid.

    Raised while loading or planning, before any task starts.
    """

    pass


class StackLoadError(ConfigurationError):
    """A stack descriptor file could not be read or validated."""

    def __init__(self, path: str, detail: str | None = None):
        self.path = path
        self.detail = detail
        message = f"Unable to load stack descriptor '{path}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TagCollisionError(ConfigurationError):
    """Two distinct compute units resolve to the same image tag."""

    def __init__(self, tag: str, unit_names: list[str]):
        self.tag = tag
        self.unit_names = unit_names
        super().__init__(
            f"Compute units {', '.join(repr(n) for n in unit_names)} all resolve to "
            f"image tag '{tag}'. Rename one of them or set an explicit 'tag'."
        )


class DaemonUnavailableError(StackbuildError):
    """The container build daemon could not be reached."""

    def __init__(self, host: str | None = None, detail: str | None = None):
        self.host = host
        self.detail = detail
        location = f" at {host}" if host else ""
        message = (
            f"Unable to connect to the container build daemon{location}, is it "
            "running? Run 'stackbuild doctor' to check."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class BuildFailedError(StackbuildError):
    """The build daemon reported a terminal error for an image build."""

    pass


class StagingError(StackbuildError):
    """Preparing a compute unit's build context failed."""

    def __init__(self, unit_name: str, detail: str):
        self.unit_name = unit_name
        self.detail = detail
        super().__init__(f"Staging '{unit_name}' failed: {detail}")


class TaskError(StackbuildError):
    """A task failed.

    Attributes:
        title: Title of the failed task.
        cause: The exception raised by the task's operation.
    """

    def __init__(self, title: str, cause: BaseException):
        self.title = title
        self.cause = cause
        super().__init__(f"{title}: {cause}")

    def root_cause(self) -> BaseException:
        """Unwrap nested task errors down to the original exception."""
        cause = self.cause
        while isinstance(cause, TaskError):
            cause = cause.cause
        return cause


class AggregateTaskError(StackbuildError):
    """One or more sibling tasks of a parallel run failed.

    Attributes:
        failures: ``(title, error)`` pairs in node order, one per failed branch.
        summary: The summary of the run, including successful results.
    """

    def __init__(
        self,
        failures: list[tuple[str, BaseException]],
        summary: "RunSummary | None" = None,
    ):
        self.failures = failures
        self.summary = summary
        lines = [f"{len(failures)} task(s) failed:"]
        for title, error in failures:
            cause = error.cause if isinstance(error, TaskError) else error
            lines.append(f"  - {title}: {cause}")
        super().__init__("\n".join(lines))

    @property
    def titles(self) -> list[str]:
        return [title for title, _ in self.failures]
