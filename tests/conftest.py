import os
import typing
from pathlib import Path

import pytest

from stackbuild.config import StackbuildSettings, settings_provider
from stackbuild.stack import ComputeUnit, Stack, UnitKind
from stackbuild.testing import FakeBuildDaemon, RecordingSink


@pytest.fixture(scope="function", autouse=True)
def cleared_stackbuild_env_vars(monkeypatch) -> typing.Generator[None, None, None]:
    """Clear STACKBUILD_* (and DOCKER_HOST) for the duration of the test."""
    for var in [name for name in os.environ if name.startswith("STACKBUILD_")]:
        monkeypatch.delenv(var)
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    settings_provider.reset()
    yield
    settings_provider.reset()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_daemon() -> FakeBuildDaemon:
    return FakeBuildDaemon()


@pytest.fixture
def settings(tmp_path: Path) -> StackbuildSettings:
    return StackbuildSettings(staging_dir=tmp_path / "staging")


def write_files(root: Path, files: dict[str, str]) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


@pytest.fixture
def stack_dir(tmp_path: Path) -> Path:
    """A stack directory with two TypeScript functions, a Python function and
    a container."""
    root = tmp_path / "project"
    write_files(
        root,
        {
            "functions/hello/index.ts": "console.log('hello')\n",
            "functions/hello/package.json": "{}\n",
            "functions/hello/node_modules/dep/index.js": "module.exports = 1\n",
            "functions/orders/orders.ts": "console.log('orders')\n",
            "functions/orders/package.json": "{}\n",
            "functions/report/main.py": "print('report')\n",
            "functions/report/requirements.txt": "\n",
            "worker/Dockerfile": "FROM scratch\n",
            "worker/run.sh": "echo work\n",
        },
    )
    return root


@pytest.fixture
def stack(stack_dir: Path) -> Stack:
    return Stack(
        name="My_Stack",
        directory=stack_dir,
        units=(
            ComputeUnit(name="hello", context="functions/hello", handler="index.ts"),
            ComputeUnit(name="orders", context="functions/orders", handler="orders.ts"),
            ComputeUnit(name="report", context="functions/report", handler="main.py"),
            ComputeUnit(
                name="worker",
                kind=UnitKind.CONTAINER,
                context="worker",
                dockerfile="Dockerfile",
            ),
        ),
    )
