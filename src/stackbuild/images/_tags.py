"""Deterministic image tag naming."""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Iterable

from stackbuild.exceptions import TagCollisionError
from stackbuild.stack import ComputeUnit, Provider

_UNSAFE = re.compile(r"[^a-z0-9]")


def sanitize(value: str) -> str:
    """Lower-case a string and strip every character outside ``[a-z0-9]``.

    e.g. ``My_Stack-01`` -> ``mystack01``
    """
    return _UNSAFE.sub("", value.lower())


def image_tag(stack_name: str, provider: Provider | str, unit: ComputeUnit) -> str:
    """Get the image tag for a compute unit.

    An explicit ``unit.tag`` is returned verbatim. Otherwise the tag is
    ``sanitize(stack_name) + "-" + sanitize(unit.name)``. The provider does not
    take part in the default rule; it is accepted so callers resolve tags the
    same way for every provider.
    """
    if unit.tag:
        return unit.tag
    return f"{sanitize(stack_name)}-{sanitize(unit.name)}"


def check_tag_collisions(
    stack_name: str,
    provider: Provider | str,
    units: Iterable[ComputeUnit],
) -> dict[str, str]:
    """Resolve tags for all units and reject collisions.

    Returns:
        Mapping of unit name to tag.

    Raises:
        TagCollisionError: If two distinct units resolve to the same tag.
    """
    by_tag: dict[str, list[str]] = defaultdict(list)
    tags: dict[str, str] = {}
    for unit in units:
        tag = image_tag(stack_name, provider, unit)
        by_tag[tag].append(unit.name)
        tags[unit.name] = tag

    for tag, names in by_tag.items():
        if len(names) > 1:
            raise TagCollisionError(tag, names)
    return tags
