"""In-memory stack model.

A Stack is consumed read-only by the build pipeline. Models are frozen so that
nothing downstream can mutate a unit once it has been loaded.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stackbuild.exceptions import ConfigurationError


class UnitKind(StrEnum):
    FUNCTION = "function"
    CONTAINER = "container"
    SERVICE = "service"


class ComputeUnit(BaseModel):
    """A named buildable unit belonging to a stack.

    Attributes:
        name: Unit name, unique within its stack.
        kind: Function, container or service.
        context: Build context directory relative to the stack directory.
        handler: Entry file relative to ``context`` (required for functions).
        dockerfile: Dockerfile relative to ``context`` (required for containers).
        build_scripts: Shell commands run in the context before staging.
        excludes: Glob patterns left out of the build context.
        min_scale: Minimum number of instances to keep alive.
        max_scale: Maximum number of instances to scale to.
        max_requests: Most requests a single instance should handle.
        tag: Explicit image tag, used verbatim instead of the derived tag.
        version: Version of the supervisor binary installed into the image.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    kind: UnitKind = UnitKind.FUNCTION
    context: str = "."
    handler: str | None = None
    dockerfile: str | None = None
    build_scripts: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    min_scale: int | None = Field(default=None, ge=0)
    max_scale: int | None = Field(default=None, ge=0)
    max_requests: int | None = Field(default=None, ge=1)
    tag: str | None = None
    version: str = "latest"

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "ComputeUnit":
        if self.kind == UnitKind.FUNCTION and not self.handler:
            raise ValueError(f"function '{self.name}' requires a 'handler'")
        if self.kind == UnitKind.CONTAINER and not self.dockerfile:
            raise ValueError(f"container '{self.name}' requires a 'dockerfile'")
        if (
            self.min_scale is not None
            and self.max_scale is not None
            and self.min_scale > self.max_scale
        ):
            raise ValueError(
                f"'{self.name}': min_scale ({self.min_scale}) exceeds "
                f"max_scale ({self.max_scale})"
            )
        return self

    @property
    def handler_suffix(self) -> str:
        """File extension of the handler, e.g. ``.ts``; empty if no handler."""
        if not self.handler:
            return ""
        return PurePosixPath(self.handler).suffix


class Stack(BaseModel):
    """A named collection of compute units.

    Attributes:
        name: Stack name.
        directory: Directory the descriptor was loaded from; unit contexts are
            resolved against it.
        units: The stack's compute units.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    directory: Path = Field(default_factory=Path.cwd)
    units: tuple[ComputeUnit, ...] = ()

    @model_validator(mode="after")
    def _check_unique_names(self) -> "Stack":
        seen: set[str] = set()
        for unit in self.units:
            if unit.name in seen:
                raise ValueError(f"duplicate compute unit name '{unit.name}'")
            seen.add(unit.name)
        return self

    def functions(self) -> list[ComputeUnit]:
        return [u for u in self.units if u.kind == UnitKind.FUNCTION]

    def containers(self) -> list[ComputeUnit]:
        return [u for u in self.units if u.kind == UnitKind.CONTAINER]

    def get_unit(self, name: str) -> ComputeUnit:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise KeyError(name)

    def context_path(self, unit: ComputeUnit) -> Path:
        """Absolute build context directory of a unit.

        Raises:
            ConfigurationError: If the directory does not exist.
        """
        path = (self.directory / unit.context).resolve()
        if not path.is_dir():
            raise ConfigurationError(
                f"context '{unit.context}' for compute unit '{unit.name}' not found. "
                "Directory may have been renamed or removed, check the 'context' "
                "configuration for this unit in the stack file."
            )
        return path
