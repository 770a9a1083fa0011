"""Staging of compute unit build contexts.

Staging runs a unit's build scripts in its source context and copies the
context, minus excluded files, into ``<staging_dir>/<stack>/<unit>``. Function
units without their own Dockerfile get one generated from their runtime family.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path

from stackbuild.build._archive import is_excluded, read_ignore_file
from stackbuild.exceptions import StagingError
from stackbuild.runtimes import family_for
from stackbuild.stack import ComputeUnit, Stack, UnitKind
from stackbuild.task import Task

logger = logging.getLogger(__name__)

DOCKERFILE = "Dockerfile"
STAGED_CONTEXTS_KEY = "staged_contexts"


class Stager:
    """Prepares build contexts for the units of one stack.

    Args:
        stack: The stack whose units are staged.
        staging_dir: Root staging directory.
    """

    def __init__(self, stack: Stack, staging_dir: Path) -> None:
        self.stack = stack
        self.staging_dir = staging_dir

    @property
    def stack_dir(self) -> Path:
        return self.staging_dir / self.stack.name

    def staged_path(self, unit: ComputeUnit) -> Path:
        return self.stack_dir / unit.name

    def stage(self, unit: ComputeUnit) -> Path:
        """Run build scripts and copy the unit's context.

        Returns:
            The staged context directory.

        Raises:
            StagingError: If a build script fails or the copy fails.
        """
        for script in unit.build_scripts:
            self.run_build_script(unit, script)
        return self.copy_context(unit)

    def run_build_script(self, unit: ComputeUnit, script: str) -> None:
        cwd = self.stack.context_path(unit)
        logger.debug(f"Running build script for {unit.name}: {script}")
        result = subprocess.run(
            script, shell=True, cwd=cwd, capture_output=True, text=True
        )
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip().splitlines()
            tail = output[-1] if output else f"exit status {result.returncode}"
            raise StagingError(unit.name, f"build script '{script}' failed: {tail}")

    def copy_context(self, unit: ComputeUnit) -> Path:
        source = self.stack.context_path(unit)
        target = self.staged_path(unit)
        family = family_for(unit) if unit.kind == UnitKind.FUNCTION else None
        patterns = [
            *unit.excludes,
            *(family.ignore if family else ()),
            *read_ignore_file(source),
        ]

        def _ignore(directory: str, names: list[str]) -> set[str]:
            rel = Path(directory).relative_to(source)
            return {
                name
                for name in names
                if is_excluded((rel / name).as_posix(), patterns)
            }

        try:
            if target.exists():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target, ignore=_ignore)
        except OSError as e:
            raise StagingError(unit.name, str(e)) from e

        if family is not None and not (target / DOCKERFILE).exists():
            (target / DOCKERFILE).write_text(family.dockerfile(unit))
        return target


class StageStackTask(Task[dict[str, Path]]):
    """Stages every unit of a stack.

    The result maps unit names to staged context directories.
    """

    def __init__(self, stager: Stager, units: list[ComputeUnit] | None = None) -> None:
        super().__init__(f"Staging stack {stager.stack.name}")
        self.stager = stager
        self.units = list(stager.stack.units) if units is None else units

    async def do(self) -> dict[str, Path]:
        staged: dict[str, Path] = {}
        for unit in self.units:
            for script in unit.build_scripts:
                self.emit(f"executing build script for {unit.name}: {script}")
                await asyncio.to_thread(self.stager.run_build_script, unit, script)
            self.emit(f"staging {unit.name}")
            staged[unit.name] = await asyncio.to_thread(self.stager.copy_context, unit)
        return staged
