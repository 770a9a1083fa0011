"""Stack descriptor loading.

Descriptors are YAML (or JSON) documents of the form::

    name: my-stack
    functions:
      hello:
        handler: index.ts
        context: functions/hello
    containers:
      worker:
        context: worker
        dockerfile: Dockerfile

Each section maps unit names to their fields. The result is a validated,
frozen `Stack`.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stackbuild.exceptions import StackLoadError
from stackbuild.stack._models import Stack, UnitKind

logger = logging.getLogger(__name__)

_SECTIONS: dict[str, UnitKind] = {
    "functions": UnitKind.FUNCTION,
    "containers": UnitKind.CONTAINER,
    "services": UnitKind.SERVICE,
}


def parse_stack(data: dict[str, Any], directory: Path) -> Stack:
    """Build a Stack from an already parsed descriptor mapping."""
    units: list[dict[str, Any]] = []
    for section, kind in _SECTIONS.items():
        entries = data.get(section) or {}
        if not isinstance(entries, dict):
            raise ValueError(f"'{section}' must be a mapping of name to unit")
        for name, fields in entries.items():
            units.append({**(fields or {}), "name": name, "kind": kind})

    return Stack.model_validate(
        {"name": data.get("name"), "directory": directory, "units": units}
    )


def load_stack(path: str | Path) -> Stack:
    """Load and validate a stack descriptor file.

    Raises:
        StackLoadError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    if path.is_dir():
        path = path / "stack.yaml"
    logger.debug(f"Loading stack descriptor from {path}")

    try:
        text = path.read_text()
    except OSError as e:
        raise StackLoadError(str(path), e.strerror or str(e)) from e

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise StackLoadError(str(path), str(e)) from e

    if not isinstance(data, dict):
        raise StackLoadError(str(path), "descriptor must be a mapping")

    try:
        return parse_stack(data, path.parent.resolve())
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'stack'}: {err['msg']}"
            for err in e.errors()
        )
        raise StackLoadError(str(path), details) from e
    except ValueError as e:
        raise StackLoadError(str(path), str(e)) from e
