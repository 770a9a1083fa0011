"""Build context packaging."""

from __future__ import annotations

import io
import tarfile
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Iterable

DOCKERIGNORE = ".dockerignore"


def read_ignore_file(directory: Path) -> list[str]:
    """Patterns from the directory's .dockerignore, empty if there is none."""
    path = directory / DOCKERIGNORE
    if not path.is_file():
        return []
    return [line.strip() for line in path.read_text().splitlines()]


def _clean_patterns(patterns: Iterable[str]) -> list[str]:
    cleaned = []
    for pattern in patterns:
        pattern = pattern.strip()
        # negations are not supported, comments and blanks are dropped
        if not pattern or pattern.startswith(("#", "!")):
            continue
        cleaned.append(pattern.strip("/").removeprefix("./"))
    return cleaned


def is_excluded(relpath: str, patterns: Iterable[str]) -> bool:
    """Whether a context-relative posix path matches any exclusion glob.

    A pattern matches a path when it matches the full path, any of its parent
    directories or, for patterns without a slash, any single path component.
    """
    path = PurePosixPath(relpath)
    candidates = [str(path), *(str(parent) for parent in path.parents)]
    for pattern in _clean_patterns(patterns):
        if "/" not in pattern:
            if any(fnmatch(part, pattern) for part in path.parts):
                return True
        elif any(fnmatch(candidate, pattern) for candidate in candidates):
            return True
    return False


def pack_context(directory: Path, excludes: Iterable[str] = ()) -> bytes:
    """Tar the contents of a build context directory.

    Entries matching `excludes` or the directory's .dockerignore are left out.
    Paths in the archive are relative to `directory`.
    """
    patterns = [*excludes, *read_ignore_file(directory)]

    def _filter(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
        if is_excluded(info.name, patterns):
            return None
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        return info

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for child in sorted(directory.iterdir()):
            tar.add(child, arcname=child.name, filter=_filter)
    return buffer.getvalue()


def pack_files(files: dict[str, str | bytes]) -> bytes:
    """Tar in-memory files, e.g. a generated Dockerfile, into a build context."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, content in sorted(files.items()):
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()
