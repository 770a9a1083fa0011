"""Runtime families for function compute units.

A function's runtime family is picked from its handler's file extension. Each
family knows how to produce a production Dockerfile for a single function and
the shared "dev" image plus watch command used for local development.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from typing import Callable

from stackbuild.stack import ComputeUnit

MEMBRANE_RELEASES_URL = "https://github.com/nitrictech/nitric/releases"
MEMBRANE_PATH = "/usr/local/bin/membrane"
DEV_MOUNT = "/app/"


def membrane_url(asset: str, version: str = "latest") -> str:
    if version == "latest":
        return f"{MEMBRANE_RELEASES_URL}/latest/download/{asset}"
    return f"{MEMBRANE_RELEASES_URL}/download/{version}/{asset}"


def _membrane_lines(asset: str | None, version: str) -> list[str]:
    # asset None: resolved at build time from the MEMBRANE_ASSET build arg
    if asset is None:
        source = membrane_url("${MEMBRANE_ASSET}", version)
        lines = ["ARG MEMBRANE_ASSET=membrane-local"]
    else:
        source = membrane_url(asset, version)
        lines = []
    return lines + [
        f"ADD {source} {MEMBRANE_PATH}",
        f"RUN chmod +x-rw {MEMBRANE_PATH}",
        f'ENTRYPOINT ["{MEMBRANE_PATH}"]',
    ]


def _json_list(items: list[str]) -> str:
    return "[" + ", ".join(f'"{item}"' for item in items) + "]"


_YARN_INSTALL = (
    "RUN set -ex; yarn install {flags}--frozen-lockfile --cache-folder /tmp/.cache; "
    "rm -rf /tmp/.cache"
)


def _typescript_dockerfile(handler: str, version: str) -> list[str]:
    return [
        "FROM node:alpine",
        "RUN yarn global add typescript ts-node",
        "COPY package.json *.lock *-lock.json /",
        'RUN yarn import || echo "Lockfile already exists"',
        _YARN_INSTALL.format(flags=""),
        *_membrane_lines(None, version),
        "COPY . .",
        f"CMD {_json_list(['ts-node', '-T', handler])}",
    ]


def _javascript_dockerfile(handler: str, version: str) -> list[str]:
    return [
        "FROM node:alpine",
        "COPY package.json *.lock *-lock.json /",
        'RUN yarn import || echo "Lockfile already exists"',
        _YARN_INSTALL.format(flags="--production "),
        *_membrane_lines(None, version),
        "COPY . .",
        f"CMD {_json_list(['node', handler])}",
    ]


def _python_dockerfile(handler: str, version: str) -> list[str]:
    return [
        "FROM python:3.11-slim",
        "RUN pip install --upgrade pip",
        "WORKDIR /app/",
        "COPY requirements.txt requirements.txt",
        "RUN pip install --no-cache-dir -r requirements.txt",
        *_membrane_lines(None, version),
        "COPY . .",
        "ENV PYTHONPATH=/app/:${PYTHONPATH}",
        "EXPOSE 9001",
        f"CMD {_json_list(['python', handler])}",
    ]


def _node_dev_dockerfile(tooling: str) -> list[str]:
    return [
        "FROM node:alpine",
        f"RUN yarn global add {tooling}",
        *_membrane_lines("membrane-dev", "latest"),
        "ENV MIN_WORKERS=0",
        f"WORKDIR {DEV_MOUNT}",
    ]


def _python_dev_dockerfile() -> list[str]:
    return [
        "FROM python:3.11-slim",
        'RUN pip install --no-cache-dir "watchdog[watchmedo]"',
        *_membrane_lines("membrane-dev", "latest"),
        "ENV MIN_WORKERS=0",
        f"ENV PYTHONPATH={DEV_MOUNT}",
        f"WORKDIR {DEV_MOUNT}",
    ]


def _nodemon_watch_flag() -> str:
    # inotify events do not cross the Windows volume boundary
    return "--legacy-watch" if platform.system() == "Windows" else "--watch"


def _nodemon_command(extensions: str, exec_cmd: str) -> list[str]:
    return [
        "nodemon",
        _nodemon_watch_flag(),
        f"{DEV_MOUNT}**",
        "--ext",
        extensions,
        "--exec",
        exec_cmd,
    ]


@dataclass(frozen=True)
class RuntimeFamily:
    """How to build and run functions of one language runtime.

    Attributes:
        name: Short family name, used in the dev image tag.
        suffixes: Handler file extensions belonging to the family.
        ignore: Default exclusion globs for build contexts.
        production: Renders a function's Dockerfile lines from
            ``(handler, membrane_version)``.
        dev: Renders the shared dev image Dockerfile lines.
        dev_command: Renders the watch command for a handler.
    """

    name: str
    suffixes: tuple[str, ...]
    ignore: tuple[str, ...]
    production: Callable[[str, str], list[str]]
    dev: Callable[[], list[str]]
    dev_command: Callable[[str], list[str]]

    @property
    def dev_tag(self) -> str:
        return f"stackbuild-{self.name}-dev"

    def dockerfile(self, unit: ComputeUnit) -> str:
        """Production Dockerfile for a function of this family."""
        assert unit.handler is not None
        return "\n".join(self.production(unit.handler, unit.version)) + "\n"

    def dev_dockerfile(self) -> str:
        return "\n".join(self.dev()) + "\n"


TYPESCRIPT = RuntimeFamily(
    name="ts",
    suffixes=(".ts",),
    ignore=("node_modules/", ".stackbuild/", ".git/", ".idea/"),
    production=_typescript_dockerfile,
    dev=lambda: _node_dev_dockerfile("typescript ts-node nodemon"),
    dev_command=lambda handler: _nodemon_command(
        "ts,json", f"ts-node -T {DEV_MOUNT}{handler}"
    ),
)

JAVASCRIPT = RuntimeFamily(
    name="js",
    suffixes=(".js",),
    ignore=("node_modules/", ".stackbuild/", ".git/", ".idea/"),
    production=_javascript_dockerfile,
    dev=lambda: _node_dev_dockerfile("nodemon"),
    dev_command=lambda handler: _nodemon_command("js,json", f"node {DEV_MOUNT}{handler}"),
)

PYTHON = RuntimeFamily(
    name="py",
    suffixes=(".py",),
    ignore=("__pycache__/", "*.py[cod]", "*$py.class", ".git/"),
    production=_python_dockerfile,
    dev=_python_dev_dockerfile,
    dev_command=lambda handler: [
        "watchmedo",
        "auto-restart",
        f"--directory={DEV_MOUNT}",
        "--pattern=*.py",
        "--recursive",
        "--",
        "python",
        f"{DEV_MOUNT}{handler}",
    ],
)

RUNTIME_FAMILIES: tuple[RuntimeFamily, ...] = (TYPESCRIPT, JAVASCRIPT, PYTHON)


def family_for(unit: ComputeUnit) -> RuntimeFamily | None:
    """The runtime family of a function unit, None if unsupported."""
    suffix = unit.handler_suffix
    for family in RUNTIME_FAMILIES:
        if suffix in family.suffixes:
            return family
    return None
